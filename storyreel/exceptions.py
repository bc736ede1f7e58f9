"""Custom exceptions for the storyreel render pipeline.

Each exception carries a machine-readable error code (see
``storyreel.constants.error_codes``) and an HTTP status used by the API layer.
"""

from typing import Any

from storyreel.constants.error_codes import get_error_spec


class StoryreelError(Exception):
    """Base exception for all storyreel errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API error responses."""
        spec = get_error_spec(self.code)
        data: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "retryable": spec.get("retryable", False),
        }
        if "suggested_fix" in spec:
            data["suggested_fix"] = spec["suggested_fix"]
        return data


# =============================================================================
# Input Errors (400) - raised before FFmpeg is started
# =============================================================================


class InputError(StoryreelError):
    """The timeline cannot be turned into a valid FFmpeg invocation."""

    code = "INVALID_INPUT"
    status_code = 400
    message = "Invalid render input"


# =============================================================================
# Process Errors (500)
# =============================================================================


class ProcessError(StoryreelError):
    """FFmpeg exited with a non-zero return code."""

    code = "PROCESS_FAILED"
    status_code = 500
    message = "FFmpeg process failed"

    def __init__(
        self,
        returncode: int | None = None,
        *,
        command: list[str] | None = None,
        stderr: str = "",
    ):
        self.returncode = returncode
        self.command = command or []
        self.stderr = stderr
        message = (
            f"FFmpeg exited with code {returncode}" if returncode is not None else self.message
        )
        super().__init__(message)


class RenderCancelledError(StoryreelError):
    """Render was cancelled by the caller."""

    code = "RENDER_CANCELLED"
    status_code = 409
    message = "Render cancelled"


class RenderInProgressError(StoryreelError):
    """Another render is already running in this process."""

    code = "RENDER_IN_PROGRESS"
    status_code = 409
    message = "A render is already in progress"


# =============================================================================
# System Errors (500)
# =============================================================================


class RenderIOError(StoryreelError):
    """Temporary file could not be written or removed."""

    code = "RENDER_IO_ERROR"
    status_code = 500
    message = "Render file I/O failed"


class UnexpectedError(StoryreelError):
    """Any other failure inside the render handler."""

    code = "INTERNAL_ERROR"
    status_code = 500
    message = "Render process failed"
