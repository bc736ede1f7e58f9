"""Timeline payload schemas.

The editing UI sends camelCase JSON. Every field accepts both its camelCase
alias and its snake_case name.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MediaType = Literal["video", "image", "audio", "voiceover", "text"]
VideoStyle = Literal["landscape", "square", "vertical"]


class Geometry(BaseModel):
    """Relative placement of an item on the canvas (0-1 of the frame)."""

    x: float = 0
    y: float = 0
    width: float = 1
    height: float = 1
    rotation: float | None = None


class MediaItem(BaseModel):
    """Reusable asset definition referenced by timeline items."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: MediaType
    file_path: str = Field(default="", alias="filePath")
    duration: float | None = None

    # Audio/video
    volume: float | None = None  # 0-100
    muted: bool = False

    # Default geometry (used when the timeline item carries none)
    x: float | None = None
    y: float | None = None
    width: float | None = None
    height: float | None = None

    # Text
    text: str | None = None
    font_family: str | None = Field(default=None, alias="fontFamily")
    font_size: float | None = Field(default=None, alias="fontSize")
    font_bold: bool = Field(default=False, alias="fontBold")
    font_italic: bool = Field(default=False, alias="fontItalic")
    font_color: str | None = Field(default=None, alias="fontColor")
    background_color: str | None = Field(default=None, alias="backgroundColor")
    background_transparent: bool = Field(default=False, alias="backgroundTransparent")
    # Accepted from the editor; rendered text is always centered in its box
    text_alignment: Literal["left", "center", "right"] | None = Field(
        default=None, alias="textAlignment"
    )


class TimelineItem(BaseModel):
    """A placed instance of a media item."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    media_id: str = Field(alias="mediaId")
    start_time: float = Field(default=0, alias="startTime")
    duration: float = 0
    track: int = 0
    geometry: Geometry | None = None


class Layer(BaseModel):
    """Named, z-ordered track. Later layers paint on top of earlier ones."""

    id: str
    name: str = ""
    visible: bool = True
    locked: bool = False
    type: str | None = None
    items: list[TimelineItem] = Field(default_factory=list)


class TimelineInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_duration: float | None = Field(default=None, alias="totalDuration")


class EditorSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Unknown styles are accepted and rendered as landscape
    video_style: str | None = Field(default=None, alias="videoStyle")


class RenderPayload(BaseModel):
    """Complete render request as sent by the editing UI."""

    model_config = ConfigDict(populate_by_name=True)

    layers: list[Layer] = Field(default_factory=list)
    media_library: list[MediaItem] = Field(default_factory=list, alias="mediaLibrary")
    timeline: TimelineInfo = Field(default_factory=TimelineInfo)
    editor_settings: EditorSettings = Field(
        default_factory=EditorSettings, alias="editorSettings"
    )
