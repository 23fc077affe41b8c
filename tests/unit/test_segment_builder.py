"""Tests for Segment Builder."""

import pytest

from scenecast.models.schemas import CaptionSegment, RenderMode, VisualKind
from scenecast.services.segment_builder import CaptionFallbackPolicy, SegmentBuilder
from scenecast.utils.error_handler import RenderError


@pytest.fixture
def builder(settings, logger, fake_runner):
    return SegmentBuilder(settings, logger, runner=fake_runner)


def _paths(tmp_path):
    return {
        "visual_path": tmp_path / "scene_0_image.png",
        "audio_path": tmp_path / "scene_0_audio.wav",
        "output_path": tmp_path / "segment_0.mp4",
    }


def _filter_graph(args):
    return args[args.index("-vf") + 1]


# ============================================================================
# Fallback policy
# ============================================================================


def test_policy_falls_back_once():
    """Test captions → no captions → give up."""
    policy = CaptionFallbackPolicy(captions_requested=True)

    assert policy.mode == RenderMode.WITH_CAPTIONS
    assert policy.on_failure() == RenderMode.WITHOUT_CAPTIONS
    assert policy.captions_enabled is False
    assert policy.on_failure() is None
    assert policy.attempted == [RenderMode.WITH_CAPTIONS, RenderMode.WITHOUT_CAPTIONS]


def test_policy_without_captions_has_no_fallback():
    policy = CaptionFallbackPolicy(captions_requested=False)

    assert policy.on_failure() is None


# ============================================================================
# Filter graph
# ============================================================================


def test_filter_graph_scales_pads_and_fades(builder):
    graph = builder.build_filter_graph(6.0, [])

    assert graph.startswith("scale=1920:1080:force_original_aspect_ratio=decrease,pad=1920:1080:")
    assert "fade=t=in:st=0:d=0.3" in graph
    assert "fade=t=out:st=5.700:d=0.3" in graph
    assert "drawtext" not in graph


def test_fade_out_start_never_negative(builder):
    assert "fade=t=out:st=0.000:" in builder.build_filter_graph(0.2, [])


def test_filter_graph_has_one_overlay_per_caption(builder):
    """Test each caption segment gets a half-open time window."""
    captions = [
        CaptionSegment(text="Check the horn.", start=0.0, end=3.0),
        CaptionSegment(text="Time: now", start=3.0, end=9.0),
    ]

    graph = builder.build_filter_graph(9.0, captions)

    assert graph.count("drawtext=") == 2
    assert "enable='gte(t,0.000)*lt(t,3.000)'" in graph
    assert "enable='gte(t,3.000)*lt(t,9.000)'" in graph
    assert "text='Time\\: now'" in graph
    assert "fontsize=28" in graph
    assert "y=h-text_h-100" in graph


# ============================================================================
# Commands
# ============================================================================


def test_image_is_held_for_full_duration(builder, tmp_path):
    args = builder.build_command(VisualKind.IMAGE, tmp_path / "a.png", tmp_path / "a.wav", tmp_path / "o.mp4", "null", 4.5)

    assert args[:2] == ["-loop", "1"]
    assert args[args.index("-t") + 1] == "4.500"
    assert "apad" in args
    assert "-shortest" not in args
    assert args[-1] == str(tmp_path / "o.mp4")


def test_video_clip_is_looped_and_cut_at_shortest(builder, tmp_path):
    args = builder.build_command(VisualKind.VIDEO, tmp_path / "a.mp4", tmp_path / "a.wav", tmp_path / "o.mp4", "null", 4.5)

    assert args[:2] == ["-stream_loop", "-1"]
    assert "-shortest" in args
    assert args[args.index("-c:v") + 1] == "libx264"
    assert args[args.index("-b:v") + 1] == "2M"


# ============================================================================
# Build
# ============================================================================


def test_build_renders_with_captions(builder, fake_runner, asset_factory, tmp_path):
    asset = asset_factory(0, duration=6.0, narration="Check the horn.")

    output = builder.build(asset, 6.0, True, **_paths(tmp_path))

    assert output == tmp_path / "segment_0.mp4"
    assert len(fake_runner.calls) == 1
    assert "drawtext" in _filter_graph(fake_runner.calls[0]["args"])
    assert fake_runner.calls[0]["timeout"] == builder.settings.render_timeout_seconds


def test_build_without_captions_skips_overlay(builder, fake_runner, asset_factory, tmp_path):
    builder.build(asset_factory(0), 4.0, False, **_paths(tmp_path))

    assert "drawtext" not in _filter_graph(fake_runner.calls[0]["args"])


def test_captioned_failure_falls_back_to_captionless(settings, logger, runner_factory, asset_factory, tmp_path):
    """Test a failure only on the captioned path still yields a segment."""
    runner = runner_factory(fail_if=lambda args: "drawtext" in args[args.index("-vf") + 1])
    builder = SegmentBuilder(settings, logger, runner=runner)

    output = builder.build(asset_factory(0), 4.0, True, **_paths(tmp_path))

    assert output.exists()
    assert len(runner.calls) == 2
    assert "drawtext" not in _filter_graph(runner.calls[1]["args"])


def test_failure_without_captions_propagates(settings, logger, runner_factory, asset_factory, tmp_path):
    runner = runner_factory(fail_if=lambda args: True)
    builder = SegmentBuilder(settings, logger, runner=runner)

    with pytest.raises(RenderError):
        builder.build(asset_factory(0), 4.0, True, **_paths(tmp_path))

    assert len(runner.calls) == 2


def test_caption_text_truncated_to_limit(builder, asset_factory):
    asset = asset_factory(0, narration="word " * 200)

    segments = builder.caption_segments_for(asset, 10.0)

    assert sum(len(s.text) for s in segments) <= builder.settings.max_caption_chars
    assert segments[-1].end == 10.0
