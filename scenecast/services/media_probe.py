"""Media Probe - audio duration discovery and payload type sniffing."""

import tempfile
from pathlib import Path

from moviepy import AudioFileClip

_AUDIO_SUFFIXES = {
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/aac": ".aac",
}


def audio_suffix(content_type: str) -> str:
    """File suffix for an audio MIME type (defaults to .mp3)."""
    return _AUDIO_SUFFIXES.get(content_type.split(";")[0].strip().lower(), ".mp3")


def probe_audio_duration(data: bytes, content_type: str = "audio/mpeg") -> float:
    """
    Return the duration in seconds of an encoded audio payload.

    Args:
        data: Encoded audio bytes
        content_type: MIME type, used to pick the decoder

    Returns:
        Duration in seconds
    """
    with tempfile.TemporaryDirectory(prefix="scene-probe-") as tmp_dir:
        path = Path(tmp_dir) / f"probe{audio_suffix(content_type)}"
        path.write_bytes(data)
        with AudioFileClip(str(path)) as clip:
            return float(clip.duration)


def guess_image_suffix(data: bytes) -> str:
    """File suffix for an image payload, from its magic bytes (defaults to .png)."""
    if data[:3] == b"\xff\xd8\xff":
        return ".jpg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ".webp"
    return ".png"


def guess_audio_suffix(data: bytes) -> str:
    """File suffix for an audio payload, from its magic bytes (defaults to .mp3)."""
    if data[:4] == b"RIFF" and data[8:12] == b"WAVE":
        return ".wav"
    if data[:4] == b"OggS":
        return ".ogg"
    if data[:4] == b"\x1a\x45\xdf\xa3":
        return ".webm"
    return ".mp3"
