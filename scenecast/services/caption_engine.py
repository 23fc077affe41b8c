"""Caption Engine - splits narration into timed caption segments.

Narration is split into sentences; sentences longer than the segment width
are greedily packed word by word. Each segment is shown for a share of the
scene duration proportional to its word count, so longer phrases stay on
screen longer.
"""

import re

from scenecast.models.schemas import CaptionSegment
from scenecast.utils.text_utils import clean_caption_text, count_words

DEFAULT_MAX_CHARS_PER_SEGMENT = 45

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def pack_words(text: str, max_chars: int) -> list[str]:
    """
    Greedily pack whitespace-delimited words into chunks of at most ``max_chars``.

    A single word longer than ``max_chars`` becomes a chunk of its own.
    """
    chunks: list[str] = []
    current = ""
    for word in text.split():
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= max_chars:
            current = f"{current} {word}"
        else:
            chunks.append(current)
            current = word
    if current:
        chunks.append(current)
    return chunks


def split_caption_text(text: str, max_chars: int = DEFAULT_MAX_CHARS_PER_SEGMENT) -> list[str]:
    """
    Split narration into caption chunks of at most ``max_chars``.

    Args:
        text: Narration text (already cleaned)
        max_chars: Maximum characters per chunk

    Returns:
        Chunks in reading order; empty for empty text
    """
    chunks: list[str] = []
    for sentence in _SENTENCE_BOUNDARY.split(text):
        sentence = sentence.strip()
        if not sentence:
            continue
        if len(sentence) <= max_chars:
            chunks.append(sentence)
        else:
            chunks.extend(pack_words(sentence, max_chars))

    if not chunks:
        chunks = pack_words(text, max_chars)
    return chunks


def build_caption_segments(
    narration: str,
    scene_duration: float,
    max_chars_per_segment: int = DEFAULT_MAX_CHARS_PER_SEGMENT,
) -> list[CaptionSegment]:
    """
    Compute timed caption segments for one scene.

    Each segment lasts ``scene_duration * words / total_words``. Segments are
    contiguous, start at 0 and the last one ends exactly at ``scene_duration``.

    Args:
        narration: Narration text of the scene
        scene_duration: Effective scene duration in seconds
        max_chars_per_segment: Maximum characters shown at once

    Returns:
        Ordered caption segments; empty when there is nothing to show
    """
    if not narration or scene_duration <= 0:
        return []

    chunks = split_caption_text(clean_caption_text(narration), max_chars_per_segment)
    word_counts = [count_words(chunk) for chunk in chunks]
    total_words = sum(word_counts)
    if total_words == 0:
        return []

    segments: list[CaptionSegment] = []
    cumulative_words = 0
    start = 0.0
    for idx, (chunk, words) in enumerate(zip(chunks, word_counts)):
        cumulative_words += words
        if idx == len(chunks) - 1:
            end = scene_duration
        else:
            end = scene_duration * cumulative_words / total_words
        segments.append(CaptionSegment(text=chunk, start=start, end=end))
        start = end
    return segments
