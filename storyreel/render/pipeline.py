"""Render pipeline orchestration.

Flow:
1. Normalize the timeline (media -> FFmpeg inputs)
2. Compile the filter graph (geometry, text layout, audio branches)
3. Validate and write the filter script
4. Run FFmpeg under the process supervisor (with fallback)

``RenderPipeline.render`` is an async generator of ``RenderEvent``s and
always ends with exactly one terminal event (``error`` or ``filePath``).
"""

import logging
import shutil
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from storyreel.config import Settings, get_settings
from storyreel.exceptions import InputError, RenderInProgressError, StoryreelError, UnexpectedError
from storyreel.render.command import (
    build_fallback_args,
    build_render_args,
    output_path_for,
    remove_filter_script,
    validate_render,
    write_filter_script,
)
from storyreel.render.compiler import CompileContext, FilterGraph, compile_filter_graph
from storyreel.render.geometry import FrameSize, resolve_frame_size
from storyreel.render.normalizer import normalize_timeline
from storyreel.render.supervisor import (
    CancellationToken,
    ExternalRenderer,
    FFmpegRenderer,
    ProcessSupervisor,
)
from storyreel.render.text_layout import DEFAULT_METRICS, TextMetrics
from storyreel.schemas.render import RenderEvent
from storyreel.schemas.timeline import RenderPayload

logger = logging.getLogger(__name__)


class RenderGate:
    """Single-flight flag: at most one render runs per process."""

    def __init__(self):
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def acquire(self) -> bool:
        if self._busy:
            return False
        self._busy = True
        return True

    def release(self) -> None:
        self._busy = False


render_gate = RenderGate()


@dataclass
class RenderJob:
    """Everything needed to run one render. Built fresh per request."""

    job_id: str
    input_files: list[str]
    input_index: dict[str, int]
    graph: FilterGraph
    frame: FrameSize
    total_duration: float
    output_path: str
    script_path: Optional[str] = None
    render_args: list[str] = field(default_factory=list)
    fallback_args: list[str] = field(default_factory=list)


class RenderPipeline:
    """Turns a render payload into a rendered MP4."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        renderer: Optional[ExternalRenderer] = None,
        metrics: TextMetrics = DEFAULT_METRICS,
        gate: Optional[RenderGate] = None,
        platform: Optional[str] = None,
    ):
        self.settings = settings or get_settings()
        self.renderer = renderer
        self.metrics = metrics
        self.gate = gate or render_gate
        self.platform = platform

    def _total_duration(self, payload: RenderPayload) -> float:
        duration = payload.timeline.total_duration if payload.timeline else None
        if not duration or duration <= 0:
            return self.settings.render_default_duration_s
        return duration

    def prepare(self, payload: RenderPayload) -> RenderJob:
        """Normalize and compile the payload. Nothing is written or spawned.

        Raises:
            InputError: if no usable media remains.
        """
        video_style = payload.editor_settings.video_style if payload.editor_settings else None
        frame = resolve_frame_size(video_style)
        total_duration = self._total_duration(payload)

        timeline = normalize_timeline(
            payload.layers, payload.media_library, self.settings.media_root
        )

        ctx = CompileContext(
            timeline=timeline,
            frame=frame,
            total_duration=total_duration,
            metrics=self.metrics,
            default_text_duration=self.settings.render_default_text_duration_s,
            fps=self.settings.render_fps,
            platform=self.platform,
        )
        graph = compile_filter_graph(payload.layers, ctx)

        output_path = output_path_for(self.settings)
        job = RenderJob(
            job_id=uuid.uuid4().hex,
            input_files=list(timeline.input_files),
            input_index=dict(timeline.input_index),
            graph=graph,
            frame=frame,
            total_duration=total_duration,
            output_path=output_path,
            fallback_args=build_fallback_args(frame, total_duration, output_path, self.settings),
        )
        logger.info(
            f"[RENDER] Job {job.job_id}: {frame.width}x{frame.height}, {total_duration}s, "
            f"{len(job.input_files)} inputs, {len(graph.stages)} filters"
        )
        return job

    def _get_renderer(self) -> ExternalRenderer:
        if self.renderer is not None:
            return self.renderer
        binary = shutil.which(self.settings.ffmpeg_path)
        if binary is None:
            logger.error(f"[RENDER] FFmpeg not found: {self.settings.ffmpeg_path}")
            raise InputError("FFmpeg not available. Please check the FFmpeg installation.")
        return FFmpegRenderer(binary)

    async def render(
        self,
        payload: RenderPayload,
        cancel: Optional[CancellationToken] = None,
    ) -> AsyncIterator[RenderEvent]:
        if not self.gate.acquire():
            logger.warning("[RENDER] Rejected: a render is already in progress")
            yield RenderEvent(error=RenderInProgressError().message)
            return

        job: Optional[RenderJob] = None
        try:
            yield RenderEvent(progress=0, message="Starting render process...")

            job = self.prepare(payload)
            yield RenderEvent(message=f"Found {len(job.input_files)} input files")

            validate_render(job.input_files, job.graph)
            renderer = self._get_renderer()

            job.script_path = write_filter_script(job.graph, self.settings)
            job.render_args = build_render_args(
                job.input_files,
                job.graph,
                job.script_path,
                job.total_duration,
                job.output_path,
                self.settings,
            )
            yield RenderEvent(
                message=f"Filter complex created with {len(job.graph.stages)} filters"
            )

            supervisor = ProcessSupervisor(renderer, binary_name=self.settings.ffmpeg_path)
            events = supervisor.run(
                job.render_args,
                job.fallback_args,
                job.output_path,
                script_path=job.script_path,
                cancel=cancel,
                fallback_duration=job.total_duration,
            )
            async with aclosing(events):
                async for event in events:
                    yield event

        except StoryreelError as e:
            logger.error(f"[RENDER] {e.code}: {e.message}")
            yield RenderEvent(error=e.message)
        except Exception as e:
            logger.exception("[RENDER] Error in render handler")
            yield RenderEvent(error=f"{UnexpectedError.message}: {e}")
        finally:
            if job is not None:
                remove_filter_script(job.script_path)
            self.gate.release()
