"""Filter graph compilation.

Turns a normalized timeline into an ordered tuple of filter stages. The
video side is a single chain: a black matte is created first and every
visible item, in layer order, is drawn on top of the previous result.
Audio items become independent branches that are mixed at the end.

Compilation is a fold over ``CompileState``; each item handler receives the
current state and returns a new one, so no stage is ever mutated.

Known limitation: the audio track embedded in video media is not mixed in.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from storyreel.render.filters import (
    Background,
    Delay,
    DrawBox,
    DrawText,
    Mix,
    Overlay,
    Scale,
    Stage,
    Trim,
    Volume,
    serialize_graph,
    serialize_stage,
)
from storyreel.render.geometry import FrameSize, resolve_geometry
from storyreel.render.normalizer import TEXT_INPUT_INDEX, NormalizedTimeline
from storyreel.render.text_layout import DEFAULT_METRICS, TextMetrics, layout_text_item
from storyreel.schemas.timeline import Layer, MediaItem, TimelineItem

logger = logging.getLogger(__name__)

BACKGROUND_LABEL = "bg"
AUDIO_MIX_LABEL = "audio_final"


@dataclass(frozen=True)
class CompileState:
    """Accumulated compiler output after each timeline item."""

    stages: tuple[Stage, ...]
    current_video: str
    audio_branches: tuple[str, ...] = ()
    # Monotonic counter for overlay/drawbox/drawtext output labels
    overlay_count: int = 0

    def add(self, *stages: Stage, **changes) -> "CompileState":
        return replace(self, stages=self.stages + stages, **changes)


@dataclass(frozen=True)
class CompileContext:
    timeline: NormalizedTimeline
    frame: FrameSize
    total_duration: float
    metrics: TextMetrics = DEFAULT_METRICS
    default_text_duration: float = 5.0
    fps: int = 30
    platform: Optional[str] = None


@dataclass(frozen=True)
class FilterGraph:
    """Compiled graph plus the labels the command must map."""

    stages: tuple[Stage, ...]
    video_output: str
    audio_output: Optional[str]
    audio_branches: tuple[str, ...] = field(default_factory=tuple)

    @property
    def statements(self) -> list[str]:
        return [serialize_stage(stage) for stage in self.stages]

    @property
    def script(self) -> str:
        return serialize_graph(self.stages)

    @property
    def has_audio(self) -> bool:
        return self.audio_output is not None


def _item_window(item: TimelineItem) -> tuple[float, float]:
    return item.start_time, item.start_time + item.duration


def _compile_image(
    state: CompileState,
    ctx: CompileContext,
    item: TimelineItem,
    media: MediaItem,
    input_index: int,
    tag: str,
) -> CompileState:
    rect = resolve_geometry(item.geometry, media, ctx.frame)
    start, end = _item_window(item)
    scaled = f"item_{tag}"
    out = f"overlay_{state.overlay_count}"
    return state.add(
        Scale(f"{input_index}:v", scaled, rect.width, rect.height, rect.rotation),
        Overlay(state.current_video, scaled, out, rect.x, rect.y, start, end),
        current_video=out,
        overlay_count=state.overlay_count + 1,
    )


def _compile_video(
    state: CompileState,
    ctx: CompileContext,
    item: TimelineItem,
    media: MediaItem,
    input_index: int,
    tag: str,
) -> CompileState:
    if item.duration <= 0:
        logger.warning(f"[COMPILE] Video item {item.id} has no duration, skipping")
        return state

    rect = resolve_geometry(item.geometry, media, ctx.frame)
    start, end = _item_window(item)
    trimmed = f"trim_{tag}"
    scaled = f"item_{tag}"
    out = f"overlay_{state.overlay_count}"
    return state.add(
        Trim(f"{input_index}:v", trimmed, item.duration),
        Scale(trimmed, scaled, rect.width, rect.height, rect.rotation),
        Overlay(state.current_video, scaled, out, rect.x, rect.y, start, end),
        current_video=out,
        overlay_count=state.overlay_count + 1,
    )


def _compile_audio(
    state: CompileState,
    ctx: CompileContext,
    item: TimelineItem,
    media: MediaItem,
    input_index: int,
    tag: str,
) -> CompileState:
    volume = media.volume if media.volume is not None else 100
    if media.muted or volume == 0:
        logger.info(f"[COMPILE] Skipping muted/zero volume audio: {media.id}")
        return state
    if item.duration <= 0:
        logger.warning(f"[COMPILE] Audio item {item.id} has no duration, skipping")
        return state

    factor = volume / 100
    branch = f"audio_{tag}"

    # Build the chain first, then name the last stage after the branch
    ops: list[tuple[str, Callable[[str, str], Stage]]] = [
        ("atrim", lambda src, dst: Trim(src, dst, item.duration, audio=True)),
    ]
    if factor != 1:
        ops.append(("avol", lambda src, dst: Volume(src, dst, factor)))
    if item.start_time > 0:
        ops.append(("adelay", lambda src, dst: Delay(src, dst, item.start_time * 1000)))

    stages: list[Stage] = []
    source = f"{input_index}:a"
    for position, (prefix, make) in enumerate(ops):
        target = branch if position == len(ops) - 1 else f"{prefix}_{tag}"
        stages.append(make(source, target))
        source = target

    logger.info(
        f"[COMPILE] Added {media.type} audio at {item.start_time}s for {item.duration}s "
        f"with volume {volume}%"
    )
    return state.add(*stages, audio_branches=state.audio_branches + (branch,))


def _compile_text(
    state: CompileState,
    ctx: CompileContext,
    item: TimelineItem,
    media: MediaItem,
    input_index: int,
    tag: str,
) -> CompileState:
    rect = resolve_geometry(item.geometry, media, ctx.frame)
    spec = layout_text_item(media, rect, metrics=ctx.metrics, platform=ctx.platform)
    if spec is None:
        return state

    start = item.start_time or 0
    duration = item.duration or media.duration or ctx.default_text_duration
    end = start + duration

    stages: list[Stage] = []
    current = state.current_video
    count = state.overlay_count

    if spec.background_color:
        box_out = f"bgbox_{count}"
        stages.append(
            DrawBox(
                current,
                box_out,
                rect.x,
                rect.y,
                rect.width,
                rect.height,
                spec.background_color,
                start,
                end,
            )
        )
        current = box_out
        count += 1

    text_out = f"text_{count}"
    stages.append(
        DrawText(
            input=current,
            output=text_out,
            text=spec.text,
            font_size=spec.layout.font_size,
            font_color=spec.font_color,
            font_file=spec.font_file,
            x=spec.x_expr,
            y=spec.y_expr,
            start=start,
            end=end,
            line_spacing=spec.layout.line_spacing,
        )
    )
    return state.add(*stages, current_video=text_out, overlay_count=count + 1)


_HANDLERS = {
    "image": _compile_image,
    "video": _compile_video,
    "audio": _compile_audio,
    "voiceover": _compile_audio,
    "text": _compile_text,
}


def _compile_item(
    state: CompileState,
    ctx: CompileContext,
    item: TimelineItem,
    tag: str,
) -> CompileState:
    media = ctx.timeline.media_for(item.media_id)
    if media is None:
        logger.warning(
            f"[COMPILE] No media item found for timeline item {item.id} (mediaId: {item.media_id})"
        )
        return state

    input_index = ctx.timeline.index_for(media.id)
    if input_index is None:
        logger.warning(f"[COMPILE] No input index found for media item {media.id}")
        return state
    if input_index == TEXT_INPUT_INDEX and media.type != "text":
        return state

    handler = _HANDLERS[media.type]
    return handler(state, ctx, item, media, input_index, tag)


def _finish_audio(state: CompileState) -> tuple[CompileState, Optional[str]]:
    branches = state.audio_branches
    if not branches:
        return state, None
    if len(branches) == 1:
        return state, branches[0]
    return state.add(Mix(branches, AUDIO_MIX_LABEL)), AUDIO_MIX_LABEL


def compile_filter_graph(
    layers: list[Layer],
    ctx: CompileContext,
) -> FilterGraph:
    """Compile visible layers into a filter graph.

    Layers are painted in list order (later layers on top); items within a
    layer are painted in list order too.
    """
    state = CompileState(
        stages=(
            Background(
                BACKGROUND_LABEL,
                ctx.frame.width,
                ctx.frame.height,
                ctx.total_duration,
                rate=ctx.fps,
            ),
        ),
        current_video=BACKGROUND_LABEL,
    )

    visible_layers = [layer for layer in layers if layer.visible]
    logger.info(f"[COMPILE] Processing {len(visible_layers)} visible layers")

    for layer_index, layer in enumerate(visible_layers):
        for item_index, item in enumerate(layer.items):
            state = _compile_item(state, ctx, item, f"{layer_index}_{item_index}")

    state, audio_output = _finish_audio(state)

    logger.info(
        f"[COMPILE] {len(state.stages)} filter statements, video={state.current_video}, "
        f"audio branches={len(state.audio_branches)}"
    )
    return FilterGraph(
        stages=state.stages,
        video_output=state.current_video,
        audio_output=audio_output,
        audio_branches=state.audio_branches,
    )
