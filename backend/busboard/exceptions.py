"""Custom exceptions for the busboard backend.

Every error carries a machine-readable code (see ``constants.error_codes``)
and an HTTP status so the API layer can render it without special cases.
"""

from typing import Any

from busboard.constants.error_codes import get_error_spec


class BusboardError(Exception):
    """Base exception for all busboard application errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        suggested_fix: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.suggested_fix = suggested_fix
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return get_error_spec(self.code).get("retryable", False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an API response body."""
        spec = get_error_spec(self.code)
        return {
            "code": self.code,
            "message": self.message,
            "retryable": spec.get("retryable", False),
            "suggested_fix": self.suggested_fix or spec.get("suggested_fix"),
        }


# =============================================================================
# Resource errors
# =============================================================================


class ScenarioNotFoundError(BusboardError):
    """Scenario not found."""

    code = "SCENARIO_NOT_FOUND"
    status_code = 404
    message = "Scenario not found"

    def __init__(self, scenario_id: str | None = None):
        message = f"Scenario not found: {scenario_id}" if scenario_id else self.message
        super().__init__(message)


class VideoNotFoundError(BusboardError):
    """The video does not exist and is not being generated."""

    code = "VIDEO_NOT_FOUND"
    status_code = 404
    message = "Video not found. Please regenerate the video."


class VideoGeneratingError(BusboardError):
    """The video does not exist yet but a job for it is pending."""

    code = "VIDEO_GENERATING"
    status_code = 409
    message = "Video is being generated. Please try again in a moment."


# =============================================================================
# Input errors
# =============================================================================


class InvalidScenarioError(BusboardError):
    """Scenario cannot produce a video (no stops, zero duration)."""

    code = "INVALID_SCENARIO"
    status_code = 422
    message = "Scenario has nothing to render"


# =============================================================================
# Render errors
# =============================================================================


class SynthesisError(BusboardError):
    """Text-to-speech failed for one announcement."""

    code = "SYNTHESIS_FAILED"
    message = "Speech synthesis failed"


class ProcessError(BusboardError):
    """An external ffmpeg invocation exited with an error."""

    def __init__(self, message: str | None = None, *, stderr: str = ""):
        self.stderr = stderr
        tail = stderr.strip().splitlines()[-5:] if stderr else []
        if tail:
            message = f"{message or self.message}: {' | '.join(tail)}"
        super().__init__(message)


class AudioMixError(ProcessError):
    """Audio mixing failed."""

    code = "AUDIO_MIX_FAILED"
    message = "FFmpeg audio mixing failed"


class EncoderError(ProcessError):
    """Video encoding failed."""

    code = "ENCODE_FAILED"
    message = "FFmpeg encoding failed"
