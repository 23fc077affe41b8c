"""Text utility functions for narration and caption processing."""

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_QUOTES = re.compile(r"[\"'`‘’“”]")
_WHITESPACE = re.compile(r"\s+")


def normalize_narration(text: str, max_chars: int) -> str:
    """
    Collapse whitespace, drop NUL bytes and cap the length of narration text.

    Args:
        text: Raw narration text
        max_chars: Maximum characters kept

    Returns:
        Single-line narration, at most ``max_chars`` long
    """
    text = _WHITESPACE.sub(" ", text.replace("\0", "")).strip()
    return text[:max_chars].rstrip()


def clean_caption_text(text: str) -> str:
    """
    Strip control characters and quote characters from caption text.

    Quotes would terminate the quoted text argument of the overlay filter, so
    they are removed rather than escaped.
    """
    text = _CONTROL_CHARS.sub(" ", text)
    text = _QUOTES.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def escape_drawtext(text: str) -> str:
    """
    Escape caption text for a quoted ``drawtext`` text argument.

    Backslashes and the option separator ``:`` are escaped; quotes and
    control characters are removed.
    """
    text = clean_caption_text(text)
    return text.replace("\\", "\\\\").replace(":", "\\:")


def count_words(text: str) -> int:
    """Number of whitespace-delimited words."""
    return len(text.split())


def estimate_spoken_duration(text: str, words_per_minute: int = 150) -> float:
    """
    Estimate the spoken duration of text in seconds.

    Args:
        text: Text to estimate duration for.
        words_per_minute: Average speaking rate (default 150 WPM).

    Returns:
        Estimated duration in seconds.
    """
    return count_words(text) / words_per_minute * 60
