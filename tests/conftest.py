"""Shared pytest fixtures and configuration."""

import re
import threading
import time
from pathlib import Path

import pytest

from scenecast.core.config import Settings
from scenecast.core.logging_config import get_logger
from scenecast.models.schemas import AudioAsset, SceneAsset, VisualAsset, VisualKind
from scenecast.utils.error_handler import RenderError

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
WAV_BYTES = b"RIFF\x24\x00\x00\x00WAVEfmt " + b"\x00" * 32


@pytest.fixture
def settings(tmp_path):
    """Create test settings instance with fast retries and a private workspace root."""
    return Settings(
        retry_initial_delay_seconds=0.0,
        generation_timeout_seconds=5.0,
        workspace_root=str(tmp_path / "workspaces"),
        enable_visual_throttle=False,
    )


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)


class FakeVisualClient:
    """Visual generator returning a fixed PNG, with optional failures and delays.

    With ``blocking=True`` delays are plain sleeps that ignore the token, like
    a request stuck inside the HTTP client.
    """

    def __init__(self, fail_scenes=(), delays=None, cost=0.04, blocking=False):
        self.fail_scenes = set(fail_scenes)
        self.delays = delays or {}
        self.cost = cost
        self.blocking = blocking
        self.calls = []
        self._lock = threading.Lock()

    def generate(self, prompt, *, scene_index, style_guide=None, narration=None, duration_hint=None,
                 use_video=False, cancel_token=None):
        with self._lock:
            self.calls.append(scene_index)
        delay = self.delays.get(scene_index, 0)
        if delay:
            if cancel_token is not None and not self.blocking:
                cancel_token.wait(delay)
            else:
                time.sleep(delay)
        if cancel_token is not None and not self.blocking:
            cancel_token.raise_if_cancelled()
        if scene_index in self.fail_scenes:
            raise Exception(f"backend error for scene {scene_index} (key=secret)")
        if use_video:
            return VisualAsset(kind=VisualKind.VIDEO, data=b"clip-%d" % scene_index, duration_hint=2.0, cost=0.56)
        return VisualAsset(kind=VisualKind.IMAGE, data=PNG_BYTES + prompt.encode(), cost=self.cost)


class FakeTTSClient:
    """Audio generator returning a WAV payload with a known duration."""

    def __init__(self, duration=4.0, cost=0.01):
        self.duration = duration
        self.cost = cost
        self.calls = []
        self._lock = threading.Lock()

    def synthesize(self, text, *, voice=None, cancel_token=None):
        with self._lock:
            self.calls.append(text)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        return AudioAsset(data=WAV_BYTES + text.encode(), content_type="audio/wav",
                          duration_seconds=self.duration, cost=self.cost)


class FakeRunner:
    """Stands in for FFmpegRunner: records commands and writes plausible outputs.

    Segment renders write a small file naming the stage; the concatenation
    joins the files listed in the manifest. ``fail_if`` receives the argument
    list and returns True to make that command fail.
    """

    def __init__(self, fail_if=None):
        self.fail_if = fail_if
        self.calls = []

    def run(self, args, timeout, stage):
        self.calls.append({"args": list(args), "timeout": timeout, "stage": stage})
        if self.fail_if is not None and self.fail_if(args):
            raise RenderError("Unable to render video. Please try again.", detail=f"ffmpeg {stage} failed")

        output = Path(args[-1])
        if stage == "concatenation":
            manifest = Path(args[args.index("-i") + 1])
            parts = re.findall(r"^file '(.*)'$", manifest.read_text(), flags=re.MULTILINE)
            output.write_bytes(b"|".join(Path(part).read_bytes() for part in parts))
        else:
            output.write_bytes(stage.encode())

    @property
    def segment_calls(self):
        return [call for call in self.calls if call["stage"] != "concatenation"]


@pytest.fixture
def fake_visual_client():
    return FakeVisualClient()


@pytest.fixture
def fake_tts_client():
    return FakeTTSClient()


@pytest.fixture
def fake_runner():
    return FakeRunner()


def make_asset(index, duration=4.0, narration="Check the horn.", video=False):
    """Build a SceneAsset for tests."""
    if video:
        return SceneAsset(scene_index=index, video=b"clip", audio=WAV_BYTES,
                          duration_seconds=duration, narration=narration)
    return SceneAsset(scene_index=index, image=PNG_BYTES, audio=WAV_BYTES,
                      duration_seconds=duration, narration=narration)


@pytest.fixture
def sample_assets():
    """Three image scene assets, indices 0..2."""
    return [make_asset(i, narration=f"Scene number {i}. It is short.") for i in range(3)]


@pytest.fixture
def sample_scenes():
    """Three scenes as handed over by the script step."""
    return [
        {"narration": "Check the horn.", "imagePrompt": "A car horn close-up"},
        {"narration": "Then look left and right before moving.", "imagePrompt": "A driver looking left"},
        {"narration": "Drive safely.", "imagePrompt": "A quiet road at dusk", "duration": 5.0},
    ]


@pytest.fixture
def asset_factory():
    """Factory building SceneAssets: asset_factory(index, duration=..., narration=..., video=...)."""
    return make_asset


@pytest.fixture
def visual_client_factory():
    """Factory for FakeVisualClient with failures or delays per scene index."""
    return FakeVisualClient


@pytest.fixture
def runner_factory():
    """Factory for FakeRunner with a ``fail_if`` predicate."""
    return FakeRunner
