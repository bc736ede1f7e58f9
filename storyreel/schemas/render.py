from pydantic import BaseModel, ConfigDict, Field


class RenderEvent(BaseModel):
    """One message on the render event stream.

    A job is finished once ``error`` or ``file_path`` is set.
    """

    model_config = ConfigDict(populate_by_name=True)

    progress: float | None = Field(default=None, ge=0, le=100)
    message: str | None = None
    error: str | None = None
    file_path: str | None = Field(default=None, alias="filePath")

    @property
    def is_terminal(self) -> bool:
        return self.error is not None or self.file_path is not None

    def to_wire(self) -> dict:
        """Serialize with camelCase keys, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)
