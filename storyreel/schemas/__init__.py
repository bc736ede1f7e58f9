from storyreel.schemas.render import RenderEvent
from storyreel.schemas.timeline import (
    EditorSettings,
    Geometry,
    Layer,
    MediaItem,
    RenderPayload,
    TimelineInfo,
    TimelineItem,
)

__all__ = [
    "Geometry",
    "MediaItem",
    "TimelineItem",
    "Layer",
    "TimelineInfo",
    "EditorSettings",
    "RenderPayload",
    "RenderEvent",
]
