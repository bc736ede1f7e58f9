"""Typed filter-graph stages and their FFmpeg serialization.

Each stage becomes exactly one filter statement of the form
``[in1][in2] filter=args [out]``. Stages are plain frozen dataclasses so the
compiler output can be inspected without parsing filter text; the
``serialize_*`` functions are the only place that knows FFmpeg's grammar.
"""

from dataclasses import dataclass
from typing import Union


def format_number(value: float) -> str:
    """Format a number without trailing zeros (10.0 -> "10", 2.5 -> "2.5")."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.6f}".rstrip("0").rstrip(".")


def enable_between(start: float, end: float) -> str:
    return f"between(t,{format_number(start)},{format_number(end)})"


def _escape_option_value(value: str) -> str:
    # Drive letters (C:/...) would otherwise split the option list
    return value.replace("\\", "/").replace(":", "\\:")


# ============================================================================
# Stages
# ============================================================================


@dataclass(frozen=True)
class Background:
    """Solid matte covering the whole output for the whole timeline."""

    output: str
    width: int
    height: int
    duration: float
    rate: int = 30
    color: str = "black"


@dataclass(frozen=True)
class Trim:
    """Cut a stream to ``duration`` seconds and restart its timestamps."""

    input: str
    output: str
    duration: float
    audio: bool = False


@dataclass(frozen=True)
class Scale:
    """Fit into a box keeping aspect ratio (no padding), optionally rotated."""

    input: str
    output: str
    width: int
    height: int
    rotation: float = 0.0


@dataclass(frozen=True)
class Overlay:
    base: str
    overlay: str
    output: str
    x: int
    y: int
    start: float
    end: float


@dataclass(frozen=True)
class DrawBox:
    """Filled rectangle drawn onto the stream."""

    input: str
    output: str
    x: int
    y: int
    width: int
    height: int
    color: str
    start: float
    end: float


@dataclass(frozen=True)
class DrawText:
    input: str
    output: str
    text: str
    font_size: float
    font_color: str
    font_file: str
    x: str
    y: str
    start: float
    end: float
    line_spacing: int = 0
    shadow_color: str = "black"
    shadow_offset: int = 2


@dataclass(frozen=True)
class Volume:
    input: str
    output: str
    factor: float


@dataclass(frozen=True)
class Delay:
    """Delay both stereo channels by ``delay_ms`` milliseconds."""

    input: str
    output: str
    delay_ms: float


@dataclass(frozen=True)
class Mix:
    inputs: tuple[str, ...]
    output: str
    duration: str = "longest"


Stage = Union[Background, Trim, Scale, Overlay, DrawBox, DrawText, Volume, Delay, Mix]


# ============================================================================
# Serialization
# ============================================================================


def _label(name: str) -> str:
    return f"[{name}]"


def serialize_background(stage: Background) -> str:
    return (
        f"color={stage.color}:size={stage.width}x{stage.height}"
        f":duration={format_number(stage.duration)}:rate={stage.rate} {_label(stage.output)}"
    )


def serialize_trim(stage: Trim) -> str:
    if stage.audio:
        body = f"atrim=duration={format_number(stage.duration)}, asetpts=PTS-STARTPTS"
    else:
        body = f"trim=duration={format_number(stage.duration)}, setpts=PTS-STARTPTS"
    return f"{_label(stage.input)} {body} {_label(stage.output)}"


def serialize_scale(stage: Scale) -> str:
    body = f"scale={stage.width}:{stage.height}:force_original_aspect_ratio=decrease"
    if stage.rotation:
        # rgba + expanded canvas keeps the rotated corners transparent
        body += (
            f",format=rgba,rotate={format_number(stage.rotation)}*PI/180"
            f":ow='hypot(iw,ih)':oh='hypot(iw,ih)':fillcolor=none"
        )
    return f"{_label(stage.input)} {body} {_label(stage.output)}"


def serialize_overlay(stage: Overlay) -> str:
    return (
        f"{_label(stage.base)}{_label(stage.overlay)} "
        f"overlay={stage.x}:{stage.y}:enable='{enable_between(stage.start, stage.end)}' "
        f"{_label(stage.output)}"
    )


def serialize_drawbox(stage: DrawBox) -> str:
    return (
        f"{_label(stage.input)} "
        f"drawbox=x={stage.x}:y={stage.y}:w={stage.width}:h={stage.height}"
        f":color={stage.color}:t=fill:enable='{enable_between(stage.start, stage.end)}' "
        f"{_label(stage.output)}"
    )


def serialize_drawtext(stage: DrawText) -> str:
    params = [
        f"drawtext=text='{stage.text}'",
        # Literal text; no %{...} expansion
        "expansion=none",
        f"fontsize={format_number(stage.font_size)}",
        f"fontcolor={stage.font_color}",
        f"fontfile='{_escape_option_value(stage.font_file)}'",
        f"x={stage.x}",
        f"y={stage.y}",
    ]
    if stage.line_spacing:
        params.append(f"line_spacing={stage.line_spacing}")
    params.extend([
        f"shadowcolor={stage.shadow_color}",
        f"shadowx={stage.shadow_offset}",
        f"shadowy={stage.shadow_offset}",
        f"enable='{enable_between(stage.start, stage.end)}'",
    ])
    return f"{_label(stage.input)} {':'.join(params)} {_label(stage.output)}"


def serialize_volume(stage: Volume) -> str:
    return f"{_label(stage.input)} volume={format_number(stage.factor)} {_label(stage.output)}"


def serialize_delay(stage: Delay) -> str:
    delay = format_number(stage.delay_ms)
    return f"{_label(stage.input)} adelay={delay}|{delay} {_label(stage.output)}"


def serialize_mix(stage: Mix) -> str:
    inputs = "".join(_label(name) for name in stage.inputs)
    return (
        f"{inputs} amix=inputs={len(stage.inputs)}:duration={stage.duration} "
        f"{_label(stage.output)}"
    )


_SERIALIZERS = {
    Background: serialize_background,
    Trim: serialize_trim,
    Scale: serialize_scale,
    Overlay: serialize_overlay,
    DrawBox: serialize_drawbox,
    DrawText: serialize_drawtext,
    Volume: serialize_volume,
    Delay: serialize_delay,
    Mix: serialize_mix,
}


def serialize_stage(stage: Stage) -> str:
    """Render one stage as an FFmpeg filter statement."""
    serializer = _SERIALIZERS.get(type(stage))
    if serializer is None:
        raise TypeError(f"Unknown filter stage: {type(stage).__name__}")
    return serializer(stage)


def serialize_graph(stages: tuple[Stage, ...], separator: str = ";\n") -> str:
    """Join all statements into the text written to the filter script."""
    return separator.join(serialize_stage(stage) for stage in stages)
