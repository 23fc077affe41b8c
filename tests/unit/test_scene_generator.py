"""Tests for Scene Generator."""

import threading
import time

import pytest

from scenecast.models.schemas import GenerationOptions, VisualKind
from scenecast.services.scene_generator import SceneGenerator
from scenecast.utils.cancellation import CancellationToken
from scenecast.utils.error_handler import CancellationError, GenerationError, InvalidRequestError


@pytest.fixture
def generator(settings, logger, fake_visual_client, fake_tts_client):
    return SceneGenerator(settings, logger, visual_client=fake_visual_client, tts_client=fake_tts_client)


def test_generate_all_preserves_order(settings, logger, visual_client_factory, fake_tts_client, sample_scenes):
    """Test assets come back in scene order even when scene 0 finishes last."""
    visual = visual_client_factory(delays={0: 0.15})
    generator = SceneGenerator(settings, logger, visual_client=visual, tts_client=fake_tts_client)

    assets = generator.generate_all(sample_scenes, GenerationOptions(concurrency=3))

    assert [a.scene_index for a in assets] == [0, 1, 2]
    assert [a.narration for a in assets] == [s["narration"] for s in sample_scenes]
    assert all(a.visual_kind == VisualKind.IMAGE for a in assets)


def test_duration_is_max_of_audio_hint_and_floor(settings, logger, fake_visual_client, fake_tts_client):
    """Test effective duration = max(audio, visual hint, minimum)."""
    fake_tts_client.duration = 1.0
    generator = SceneGenerator(settings, logger, visual_client=fake_visual_client, tts_client=fake_tts_client)

    assets = generator.generate_all([{"narration": "Hi.", "imagePrompt": "A wave"}])
    assert assets[0].duration_seconds == settings.min_scene_duration_seconds

    fake_tts_client.duration = 6.5
    assets = generator.generate_all([{"narration": "Hi.", "imagePrompt": "A wave"}])
    assert assets[0].duration_seconds == 6.5


def test_video_clip_duration_hint_extends_scene(generator, fake_tts_client):
    """Test a clip's reported length counts towards the duration."""
    fake_tts_client.duration = 1.5

    assets = generator.generate_all(
        [{"narration": "Hi.", "imagePrompt": "A wave"}], GenerationOptions(use_video=True)
    )

    assert assets[0].visual_kind == VisualKind.VIDEO
    assert assets[0].duration_seconds == 3.0


def test_narration_dropped_without_captions(generator, sample_scenes):
    assets = generator.generate_all(sample_scenes, GenerationOptions(captions=False))

    assert all(a.narration is None for a in assets)


def test_too_many_scenes_makes_no_calls(generator, fake_visual_client, fake_tts_client):
    """Test 11 scenes against a maximum of 10 fail before any generation call."""
    scenes = [{"narration": f"Scene {i}.", "imagePrompt": f"Prompt {i}"} for i in range(11)]

    with pytest.raises(InvalidRequestError):
        generator.generate_all(scenes)

    assert fake_visual_client.calls == []
    assert fake_tts_client.calls == []


def test_empty_scene_list_rejected(generator):
    with pytest.raises(InvalidRequestError):
        generator.generate_all([])


def test_overlong_narration_rejected(generator, settings, fake_tts_client):
    scenes = [{"narration": "x" * (settings.max_narration_chars + 1), "imagePrompt": "A"}]

    with pytest.raises(InvalidRequestError, match="narration too long"):
        generator.generate_all(scenes)

    assert fake_tts_client.calls == []


def test_failure_aborts_batch_with_generic_message(settings, logger, visual_client_factory, fake_tts_client, sample_scenes):
    """Test one failing scene fails the batch without leaking backend details."""
    visual = visual_client_factory(fail_scenes={1})
    generator = SceneGenerator(settings, logger, visual_client=visual, tts_client=fake_tts_client)

    with pytest.raises(GenerationError) as exc_info:
        generator.generate_all(sample_scenes, GenerationOptions(concurrency=1))

    error = exc_info.value
    assert error.scene_index == 1
    assert error.user_message == "Unable to generate image. Please try again."
    assert "secret" not in error.user_message
    # retried the configured number of times
    assert visual.calls.count(1) == settings.retry_attempts


def test_completed_scene_costs_are_kept_on_failure(settings, logger, visual_client_factory, fake_tts_client, sample_scenes):
    """Test completion events already emitted are not rolled back."""
    visual = visual_client_factory(fail_scenes={2})
    generator = SceneGenerator(settings, logger, visual_client=visual, tts_client=fake_tts_client)
    events = []

    with pytest.raises(GenerationError):
        generator.generate_all(sample_scenes, GenerationOptions(concurrency=1), on_scene_complete=events.append)

    assert [e.scene_index for e in events] == [0, 1]
    assert all(e.cost == pytest.approx(0.05) for e in events)
    assert [e.label for e in events] == ["scene-0", "scene-1"]


def test_cancel_mid_batch_yields_cancellation(settings, logger, visual_client_factory, fake_tts_client):
    """Test cancelling produces a cancellation outcome, not a failure, promptly."""
    visual = visual_client_factory(delays={i: 5.0 for i in range(6)})
    generator = SceneGenerator(settings, logger, visual_client=visual, tts_client=fake_tts_client)
    scenes = [{"narration": f"Scene {i}.", "imagePrompt": f"Prompt {i}"} for i in range(6)]
    token = CancellationToken()
    threading.Timer(0.1, token.cancel).start()

    start = time.monotonic()
    with pytest.raises(CancellationError):
        generator.generate_all(scenes, GenerationOptions(concurrency=3), cancel_token=token)

    assert time.monotonic() - start < settings.retry_initial_delay_seconds + 2.0
    assert len(visual.calls) <= 3


def test_generate_one_uses_label(generator):
    events = []

    asset = generator.generate_one(
        {"narration": "Again.", "imagePrompt": "Retry"}, 4, on_scene_complete=events.append, label="regenerate-scene-4"
    )

    assert asset.scene_index == 4
    assert events[0].label == "regenerate-scene-4"
    assert events[0].scene_index == 4


def test_cancel_releases_call_blocked_in_backend(settings, logger, visual_client_factory, fake_tts_client):
    """Test cancellation does not wait for a backend call that ignores the token."""
    settings.retry_initial_delay_seconds = 1.0
    visual = visual_client_factory(delays={0: 4.0, 1: 4.0}, blocking=True)
    generator = SceneGenerator(settings, logger, visual_client=visual, tts_client=fake_tts_client)
    scenes = [{"narration": f"Scene {i}.", "imagePrompt": f"Prompt {i}"} for i in range(2)]
    token = CancellationToken()
    threading.Timer(0.2, token.cancel).start()

    start = time.monotonic()
    with pytest.raises(CancellationError):
        generator.generate_all(scenes, GenerationOptions(concurrency=2), cancel_token=token)

    assert time.monotonic() - start < 1.5


def test_failing_scene_stops_scenes_in_flight(settings, logger, visual_client_factory, fake_tts_client):
    """Test the first failure aborts sibling scenes instead of waiting them out."""
    settings.retry_attempts = 1
    visual = visual_client_factory(fail_scenes={1}, delays={0: 4.0}, blocking=True)
    generator = SceneGenerator(settings, logger, visual_client=visual, tts_client=fake_tts_client)
    scenes = [{"narration": f"Scene {i}.", "imagePrompt": f"Prompt {i}"} for i in range(2)]

    start = time.monotonic()
    with pytest.raises(GenerationError) as exc_info:
        generator.generate_all(scenes, GenerationOptions(concurrency=2))

    assert time.monotonic() - start < 1.5
    assert exc_info.value.scene_index == 1
