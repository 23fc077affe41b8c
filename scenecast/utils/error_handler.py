"""Error Handler - pipeline error taxonomy and user-friendly error messages."""

from typing import Any, Optional


# Messages shown to callers. Backend details (keys, URLs, env names) stay in logs.
PROVIDER_ERRORS = {
    "image_failed": "Unable to generate image. Please try again.",
    "video_failed": "Unable to generate video. Please try again.",
    "audio_failed": "Unable to generate audio. Please try again.",
    "image_not_configured": "Image generation service is not configured. Please contact support.",
    "video_not_configured": "Video generation service is not configured. Please contact support.",
    "audio_not_configured": "Audio generation service is not configured. Please contact support.",
    "timeout": "Request timed out. Please try again.",
    "render_failed": "Unable to render video. Please try again.",
    "cancelled": "Video generation cancelled",
}


class PipelineError(Exception):
    """Base class for all pipeline failures.

    ``user_message`` is safe to show to callers; ``detail`` is kept for logs.
    """

    def __init__(self, user_message: str, detail: Optional[str] = None):
        super().__init__(user_message)
        self.user_message = user_message
        self.detail = detail


class InvalidRequestError(PipelineError):
    """Malformed or over-limit request, rejected before any work begins."""

    def __init__(self, user_message: str, errors: Optional[list[dict[str, str]]] = None):
        super().__init__(user_message)
        self.errors = errors or [{"path": "", "message": user_message}]


class GenerationError(PipelineError):
    """A scene's visual or audio fetch exhausted all retries."""

    def __init__(self, user_message: str, scene_index: Optional[int] = None, detail: Optional[str] = None):
        super().__init__(user_message, detail)
        self.scene_index = scene_index


class RenderError(PipelineError):
    """The encoder failed to produce a segment or the final output."""


class StageTimeoutError(PipelineError):
    """A single call or a whole pipeline stage exceeded its deadline."""


class CancellationError(PipelineError):
    """Caller-initiated abort. A benign outcome, not a failure."""

    def __init__(self, user_message: str = PROVIDER_ERRORS["cancelled"]):
        super().__init__(user_message)


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format a log-friendly error message.

    Args:
        operation: What operation was being performed (e.g., "Rendering segment")
        error: The exception that occurred
        context: Additional context (e.g., {"scene_index": 2})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    error_type = type(error).__name__
    error_msg = str(error)
    if isinstance(error, PipelineError) and error.detail:
        error_msg = f"{error_msg} ({error.detail})"

    context_str = ""
    if context:
        context_parts = [f"{k}={v}" for k, v in context.items()]
        context_str = f" ({', '.join(context_parts)})"

    message = f"❌ {operation} failed{context_str}\n"
    message += f"   Error: {error_type}: {error_msg}"

    if suggestion:
        message += f"\n   💡 Suggestion: {suggestion}"

    return message


def to_user_message(error: Exception, kind: str) -> str:
    """
    Map a backend failure to a fixed, human-readable message.

    Args:
        error: The exception raised by the backend
        kind: Backend kind ("image", "video" or "audio")

    Returns:
        Message that omits backend-specific detail
    """
    if isinstance(error, PipelineError) and not isinstance(error, GenerationError):
        if isinstance(error, StageTimeoutError):
            return PROVIDER_ERRORS["timeout"]
        return error.user_message

    error_msg = str(error).lower()
    if "not configured" in error_msg or "api key" in error_msg:
        return PROVIDER_ERRORS.get(f"{kind}_not_configured", PROVIDER_ERRORS["render_failed"])
    if "timed out" in error_msg or "timeout" in error_msg:
        return PROVIDER_ERRORS["timeout"]
    return PROVIDER_ERRORS.get(f"{kind}_failed", PROVIDER_ERRORS["render_failed"])


def error_payload(error: PipelineError, code: str, details: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Build the standard JSON error body returned by the HTTP surface."""
    payload: dict[str, Any] = {"error": error.user_message, "code": code}
    if details:
        payload["details"] = details
    return payload
