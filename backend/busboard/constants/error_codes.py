"""Error codes dictionary.

Single source of truth for error codes, their retryability and suggested
recovery. Used by the exception classes to produce machine-readable errors.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Resource errors
    # ==========================================================================
    "SCENARIO_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Check the scenario id; it may have been deleted",
    },
    "VIDEO_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Update the scenario to request a new video",
    },
    "VIDEO_GENERATING": {
        "retryable": True,
        "suggested_fix": "Video is being generated. Please try again in a moment",
    },
    # ==========================================================================
    # Input errors
    # ==========================================================================
    "INVALID_SCENARIO": {
        "retryable": False,
        "suggested_fix": "Provide at least two stops with a non-zero stay or travel time",
    },
    # ==========================================================================
    # Render errors
    # ==========================================================================
    "SYNTHESIS_FAILED": {
        "retryable": True,
    },
    "AUDIO_MIX_FAILED": {
        "retryable": True,
        "suggested_fix": "Check that ffmpeg is installed and the effect sounds exist",
    },
    "ENCODE_FAILED": {
        "retryable": True,
        "suggested_fix": "Check that ffmpeg is installed and supports libx264",
    },
    "INTERNAL_ERROR": {
        "retryable": False,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Look up an error code, falling back to INTERNAL_ERROR."""
    return ERROR_CODES.get(code, ERROR_CODES["INTERNAL_ERROR"])
