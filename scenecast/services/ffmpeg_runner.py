"""FFmpeg Runner - runs the encoding subprocess with a deadline."""

import re
import shutil
import subprocess
import time
from typing import Any, Optional

import imageio_ffmpeg

from scenecast.core.config import Settings
from scenecast.utils.error_handler import PROVIDER_ERRORS, RenderError, StageTimeoutError

# populated lazily; one `-filters` query per binary per process
_drawtext_support: dict[str, bool] = {}
_drawtext_warned = False


def supports_drawtext(binary: str, timeout: float = 15.0) -> bool:
    """Return True if ``binary -filters`` lists the drawtext filter."""
    if binary not in _drawtext_support:
        try:
            completed = subprocess.run(
                [binary, "-hide_banner", "-filters"],
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
            _drawtext_support[binary] = completed.returncode == 0 and bool(
                re.search(r"^\s*\S+\s+drawtext\s", completed.stdout or "", flags=re.MULTILINE)
            )
        except (OSError, subprocess.TimeoutExpired):
            _drawtext_support[binary] = False
    return _drawtext_support[binary]


def resolve_ffmpeg_binary(settings: Settings, logger: Any) -> str:
    """
    Pick the ffmpeg binary: explicit setting, else the first of the bundled
    imageio-ffmpeg build and the PATH ffmpeg whose filter list has drawtext.

    Builds without drawtext (some imageio-ffmpeg wheels are among them) still
    render, but every captioned segment falls back to the captionless path,
    so that case is logged as a warning.
    """
    configured = getattr(settings, "ffmpeg_binary", None)
    if configured:
        return configured

    candidates = []
    try:
        candidates.append(imageio_ffmpeg.get_ffmpeg_exe())
    except RuntimeError as e:
        logger.debug(f"Bundled ffmpeg not available: {e}")
    system = shutil.which("ffmpeg")
    if system and system not in candidates:
        candidates.append(system)

    if not candidates:
        logger.warning("No ffmpeg binary found; set FFMPEG_BINARY")
        return "ffmpeg"

    for candidate in candidates:
        if supports_drawtext(candidate):
            return candidate

    global _drawtext_warned
    if not _drawtext_warned:
        _drawtext_warned = True
        logger.warning(
            f"No ffmpeg build with the drawtext filter found ({', '.join(candidates)}); videos will have no captions"
        )
    return candidates[0]


class FFmpegRunner:
    """Thin wrapper around the ffmpeg command line."""

    def __init__(self, settings: Settings, logger: Any, binary: Optional[str] = None):
        """
        Initialize runner.

        Args:
            settings: Application settings
            logger: Logger instance
            binary: Optional explicit ffmpeg path
        """
        self.settings = settings
        self.logger = logger
        self._binary = binary

    @property
    def binary(self) -> str:
        if self._binary is None:
            self._binary = resolve_ffmpeg_binary(self.settings, self.logger)
        return self._binary

    def run(self, args: list[str], timeout: Optional[float], stage: str) -> None:
        """
        Run ffmpeg with ``args``.

        Args:
            args: Arguments after the binary and global flags
            timeout: Deadline in seconds; the process is killed when it passes
            stage: Stage name for logs and errors (e.g. "segment 2", "concatenation")

        Raises:
            StageTimeoutError: If the deadline passes
            RenderError: If ffmpeg cannot be started or exits non-zero
        """
        command = [self.binary, "-y", "-hide_banner", "-loglevel", "error", *args]
        self.logger.debug(f"ffmpeg {stage}: {' '.join(command)[:500]}")
        start_time = time.time()

        try:
            completed = subprocess.run(command, capture_output=True, text=True, timeout=timeout, check=False)
        except subprocess.TimeoutExpired:
            raise StageTimeoutError(
                "Video assembly timed out" if stage == "concatenation" else PROVIDER_ERRORS["timeout"],
                detail=f"ffmpeg {stage} exceeded {timeout}s",
            ) from None
        except OSError as e:
            raise RenderError(PROVIDER_ERRORS["render_failed"], detail=f"could not start ffmpeg: {e}") from e

        if completed.returncode != 0:
            stderr_tail = (completed.stderr or "").strip()[-1000:]
            raise RenderError(
                PROVIDER_ERRORS["render_failed"],
                detail=f"ffmpeg {stage} exited with {completed.returncode}: {stderr_tail}",
            )

        self.logger.debug(f"ffmpeg {stage} finished in {time.time() - start_time:.2f}s")
