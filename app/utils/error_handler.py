"""Error Handler - turns exceptions into reason codes and readable log messages."""

from typing import Optional

from app.core.errors import PipelineError
from app.models.schemas import ErrorInfo, PipelineStep


def format_error_message(
    operation: str,
    error: BaseException,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format a readable error message.

    Args:
        operation: What operation was being performed (e.g., "Generating image for scene 3")
        error: The exception that occurred
        context: Additional context (e.g., {"scene_index": 2, "attempt": 3})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    context_str = ""
    if context:
        context_parts = [f"{k}={v}" for k, v in context.items()]
        context_str = f" ({', '.join(context_parts)})"

    message = f"{operation} failed{context_str}: {type(error).__name__}: {error}"
    if suggestion:
        message += f" | Suggestion: {suggestion}"
    return message


def get_fallback_suggestion(service: str, error: BaseException) -> Optional[str]:
    """
    Get a suggestion for how to handle a service failure.

    Args:
        service: Service name ("TTS", "Image Generation", "Composition")
        error: The exception

    Returns:
        Suggestion string or None
    """
    error_msg = str(error).lower()

    if "api key" in error_msg or "not configured" in error_msg or "401" in error_msg or "403" in error_msg:
        return f"Check the {service} credentials in your .env file."
    if "rate limit" in error_msg or "429" in error_msg:
        return "Rate limit exceeded. Wait a few minutes and try again."
    if "503" in error_msg or "overloaded" in error_msg or "unavailable" in error_msg:
        return "The service is overloaded. Retrying later usually helps."
    if "network" in error_msg or "timeout" in error_msg or "timed out" in error_msg:
        return "Network error. Check your internet connection."

    if service == "Image Generation":
        return "The scene keeps an empty slot; the video will use the remaining images."
    if service == "Composition":
        return "Check that ffmpeg is installed and the audio/image files are readable."
    return None


def to_error_info(error: BaseException, step: PipelineStep) -> ErrorInfo:
    """Reason code plus detail for the pipeline state."""
    if isinstance(error, PipelineError):
        return ErrorInfo(reason=error.reason, detail=error.detail, step=step)
    return ErrorInfo(reason="unexpected_error", detail=f"{type(error).__name__}: {error}", step=step)
