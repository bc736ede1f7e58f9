"""Error codes dictionary for the render API.

Single source of truth for error codes and their retryability. Used by the
exception handlers to produce machine-readable error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Input errors (fix the timeline, FFmpeg is never started)
    # ==========================================================================
    "INVALID_INPUT": {
        "retryable": False,
        "suggested_fix": "Check that the timeline has visible layers with resolvable media",
    },
    # ==========================================================================
    # Process errors
    # ==========================================================================
    "PROCESS_FAILED": {
        "retryable": True,
    },
    "RENDER_CANCELLED": {
        "retryable": True,
    },
    "RENDER_IN_PROGRESS": {
        "retryable": True,
        "suggested_fix": "Wait for the running render to finish",
    },
    # ==========================================================================
    # System errors
    # ==========================================================================
    "RENDER_IO_ERROR": {
        "retryable": True,
    },
    "INTERNAL_ERROR": {
        "retryable": True,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag
    """
    return ERROR_CODES.get(code, {"retryable": False})
