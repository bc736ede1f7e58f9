"""Relative-to-pixel geometry resolution.

Timeline geometry is expressed as fractions of the output frame. Values
outside [0, 1] are clamped so every resolved rectangle lies inside the frame.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from storyreel.schemas.timeline import Geometry, MediaItem

logger = logging.getLogger(__name__)


class VideoStyle(Enum):
    """Output aspect presets."""

    LANDSCAPE = "landscape"
    SQUARE = "square"
    VERTICAL = "vertical"


@dataclass(frozen=True)
class FrameSize:
    width: int
    height: int


FRAME_SIZES: dict[VideoStyle, FrameSize] = {
    VideoStyle.LANDSCAPE: FrameSize(1920, 1080),
    VideoStyle.SQUARE: FrameSize(1080, 1080),
    VideoStyle.VERTICAL: FrameSize(1080, 1920),
}

FULL_FRAME = Geometry(x=0, y=0, width=1, height=1, rotation=0)


@dataclass(frozen=True)
class PixelRect:
    """Absolute placement in output pixels."""

    x: int
    y: int
    width: int
    height: int
    rotation: float = 0.0


def resolve_frame_size(video_style: Optional[str]) -> FrameSize:
    """Map a video style name to output resolution (unknown -> landscape)."""
    try:
        style = VideoStyle(video_style)
    except ValueError:
        if video_style:
            logger.warning(f"[GEOMETRY] Unknown video style '{video_style}', using landscape")
        style = VideoStyle.LANDSCAPE
    return FRAME_SIZES[style]


def effective_geometry(
    item_geometry: Optional[Geometry],
    media: Optional[MediaItem] = None,
) -> Geometry:
    """Pick the geometry to use for a timeline item.

    Order: the item's own geometry, then the media item's x/y/width/height,
    then the full frame.
    """
    if item_geometry is not None:
        return item_geometry
    if media is None:
        return FULL_FRAME
    return Geometry(
        x=media.x or 0,
        y=media.y or 0,
        width=media.width or 1,
        height=media.height or 1,
        rotation=0,
    )


def _clamp_unit(value: float, name: str) -> float:
    if value < 0 or value > 1:
        logger.warning(f"[GEOMETRY] {name}={value} outside [0,1], clamping")
        return min(max(value, 0.0), 1.0)
    return value


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def to_pixels(geometry: Geometry, frame: FrameSize) -> PixelRect:
    """Convert relative geometry to a rounded pixel rectangle inside the frame."""
    rel_x = _clamp_unit(geometry.x, "x")
    rel_y = _clamp_unit(geometry.y, "y")
    rel_w = _clamp_unit(geometry.width, "width")
    rel_h = _clamp_unit(geometry.height, "height")

    x = _round_half_up(rel_x * frame.width)
    y = _round_half_up(rel_y * frame.height)
    width = _round_half_up(rel_w * frame.width)
    height = _round_half_up(rel_h * frame.height)

    # Keep the far edge inside the frame; a box is never narrower than 1px
    x = min(x, frame.width - 1)
    y = min(y, frame.height - 1)
    width = max(1, min(width, frame.width - x))
    height = max(1, min(height, frame.height - y))

    return PixelRect(
        x=x,
        y=y,
        width=width,
        height=height,
        rotation=geometry.rotation or 0.0,
    )


def resolve_geometry(
    item_geometry: Optional[Geometry],
    media: Optional[MediaItem],
    frame: FrameSize,
) -> PixelRect:
    """Resolve a timeline item's placement to pixels using the fallback chain."""
    return to_pixels(effective_geometry(item_geometry, media), frame)
