"""Renders a short video with the real ffmpeg binary and checks its length."""

import shutil
from pathlib import Path

import pytest
from moviepy import VideoFileClip

from scenecast.models.schemas import GenerationOptions
from scenecast.pipelines.video_pipeline import VideoPipeline
from scenecast.services.ffmpeg_runner import FFmpegRunner, resolve_ffmpeg_binary, supports_drawtext
from scenecast.services.video_assembler import VideoAssembler


class RecordingRunner(FFmpegRunner):
    """Real runner that remembers the stage of every command it ran."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.stages = []

    def run(self, args, timeout, stage):
        self.stages.append(stage)
        super().run(args, timeout, stage)


@pytest.fixture
def ffmpeg_binary(settings, logger):
    binary = resolve_ffmpeg_binary(settings, logger)
    if not (Path(binary).is_file() or shutil.which(binary)):
        pytest.skip("no ffmpeg binary available")
    return binary


@pytest.fixture
def small_settings(settings):
    settings.output_width = 320
    settings.output_height = 180
    settings.caption_font_size = 12
    settings.caption_margin_bottom = 10
    return settings


def test_output_length_is_sum_of_scene_durations(small_settings, logger, ffmpeg_binary, tmp_path):
    """Test the concatenated file lasts as long as its scenes together."""
    runner = RecordingRunner(small_settings, logger, binary=ffmpeg_binary)
    pipeline = VideoPipeline(small_settings, logger, assembler=VideoAssembler(small_settings, logger, runner=runner))
    scenes = [
        {"narration": "Check the horn.", "imagePrompt": "A car horn"},
        {"narration": "Then look left and right now. Move off slowly.", "imagePrompt": "A junction", "duration": 3.5},
    ]

    pipeline.create_video(scenes, GenerationOptions(concurrency=2))
    output = pipeline.save_video(tmp_path / "video.mp4")

    expected = sum(asset.duration_seconds for asset in pipeline.assets)
    with VideoFileClip(str(output)) as clip:
        assert clip.duration == pytest.approx(expected, abs=0.15)
        assert tuple(clip.size) == (320, 180)

    if supports_drawtext(ffmpeg_binary):
        # captioned renders succeeded first time, no fallback pass
        assert runner.stages == ["segment 0", "segment 1", "concatenation"]
