"""Text utility functions for scene processing."""

# This module is part of app.utils package

from typing import Optional


def truncate_text(text: str, max_chars: int) -> str:
    """
    Cut text to at most ``max_chars`` characters, preferring a word boundary.

    Args:
        text: Text to truncate.
        max_chars: Maximum length of the result.

    Returns:
        Truncated text without trailing whitespace.
    """
    text = " ".join((text or "").split())
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    last_space = cut.rfind(" ")
    # Only back off to the word boundary if it doesn't lose too much
    if last_space > max_chars * 0.7:
        cut = cut[:last_space]
    return cut.rstrip()


def build_image_prompt(
    text: str,
    visual_description: Optional[str],
    style: str,
    excerpt_chars: int = 100,
) -> str:
    """
    Image prompt for one scene.

    Uses the scene's visual description when present, otherwise an excerpt of
    the narration text, and appends the style.
    """
    if visual_description and visual_description.strip():
        subject = visual_description.strip()
    else:
        subject = truncate_text(text, excerpt_chars) or "an abstract illustration"
    return f"{subject}, {style} style image"


def estimate_spoken_seconds(text: str, words_per_minute: int = 150, speed: float = 1.0) -> float:
    """
    Estimate how long ``text`` takes to speak.

    Args:
        text: Text to estimate duration for.
        words_per_minute: Average speaking rate (default 150 WPM).
        speed: Speaking-rate multiplier.

    Returns:
        Estimated duration in seconds (at least one second).
    """
    word_count = len((text or "").split())
    return max(1.0, word_count / words_per_minute * 60 / max(speed, 0.1))
