"""Segment Builder - renders one scene into a fixed-duration video segment."""

from pathlib import Path
from typing import Any, Optional, Sequence

from scenecast.core.config import Settings
from scenecast.models.schemas import CaptionSegment, RenderMode, SceneAsset, VisualKind
from scenecast.services.caption_engine import build_caption_segments
from scenecast.services.ffmpeg_runner import FFmpegRunner
from scenecast.utils.error_handler import RenderError, format_error_message
from scenecast.utils.text_utils import escape_drawtext, normalize_narration

VIDEO_FPS = 30
AUDIO_SAMPLE_RATE = 44100


class CaptionFallbackPolicy:
    """Two-state render policy: render with captions, then without.

    ``on_failure`` moves from WITH_CAPTIONS to WITHOUT_CAPTIONS once and
    returns None when no fallback is left.
    """

    def __init__(self, captions_requested: bool):
        self.mode = RenderMode.WITH_CAPTIONS if captions_requested else RenderMode.WITHOUT_CAPTIONS
        self.attempted: list[RenderMode] = []

    @property
    def captions_enabled(self) -> bool:
        return self.mode == RenderMode.WITH_CAPTIONS

    def on_failure(self) -> Optional[RenderMode]:
        self.attempted.append(self.mode)
        if self.mode == RenderMode.WITH_CAPTIONS:
            self.mode = RenderMode.WITHOUT_CAPTIONS
            return self.mode
        return None


class SegmentBuilder:
    """Builds the filter graph and encoder command for one scene and runs it."""

    def __init__(self, settings: Settings, logger: Any, runner: Optional[FFmpegRunner] = None):
        """
        Initialize segment builder.

        Args:
            settings: Application settings
            logger: Logger instance
            runner: Encoder runner (defaults to FFmpegRunner)
        """
        self.settings = settings
        self.logger = logger
        self.runner = runner or FFmpegRunner(settings, logger)

    def caption_segments_for(self, asset: SceneAsset, effective_duration: float) -> list[CaptionSegment]:
        """Timed caption segments for a scene, or an empty list when it has no narration."""
        if not asset.narration:
            return []
        text = normalize_narration(asset.narration, self.settings.max_caption_chars)
        return build_caption_segments(text, effective_duration, self.settings.caption_max_chars_per_segment)

    def build(
        self,
        asset: SceneAsset,
        effective_duration: float,
        captions_enabled: bool,
        visual_path: Path,
        audio_path: Path,
        output_path: Path,
    ) -> Path:
        """
        Render one segment, falling back to a captionless render if the captioned one fails.

        Args:
            asset: Scene asset being rendered
            effective_duration: Segment duration in seconds
            captions_enabled: Whether captions were requested for the video
            visual_path: Image or clip file in the workspace
            audio_path: Audio file in the workspace
            output_path: Where the segment is written

        Returns:
            Path of the rendered segment

        Raises:
            RenderError: If the render fails without captions too
            StageTimeoutError: If a render exceeds its deadline
        """
        captions = self.caption_segments_for(asset, effective_duration) if captions_enabled else []
        policy = CaptionFallbackPolicy(captions_requested=bool(captions))
        index = asset.scene_index

        if captions:
            self.logger.info(
                f"Scene {index}: {len(captions)} timed caption segments: "
                + ", ".join(f"[{i}] {c.start:.1f}-{c.end:.1f}s" for i, c in enumerate(captions))
            )

        while True:
            filter_graph = self.build_filter_graph(effective_duration, captions if policy.captions_enabled else [])
            args = self.build_command(
                asset.visual_kind, visual_path, audio_path, output_path, filter_graph, effective_duration
            )
            try:
                self.runner.run(args, timeout=self.settings.render_timeout_seconds, stage=f"segment {index}")
            except RenderError as e:
                failed_mode = policy.mode
                if policy.on_failure() is None:
                    self.logger.error(format_error_message("Rendering segment", e, context={"scene_index": index}))
                    raise
                self.logger.warning(f"Scene {index}: {failed_mode.value} render failed ({e.detail}); retrying without captions")
                continue

            if policy.attempted:
                self.logger.info(f"Scene {index}: segment rendered without captions")
            else:
                self.logger.info(f"Scene {index}: segment rendered ({effective_duration:.2f}s)")
            return output_path

    def build_filter_graph(self, duration: float, captions: Sequence[CaptionSegment]) -> str:
        """
        Filter graph: scale and letterbox, fade in at 0, fade out ending at ``duration``,
        then one time-windowed text overlay per caption segment.
        """
        width, height = self.settings.output_width, self.settings.output_height
        fade = self.settings.fade_duration_seconds
        fade_out_start = max(0.0, duration - fade)

        filters = [
            f"scale={width}:{height}:force_original_aspect_ratio=decrease",
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2",
            "setsar=1",
            f"fade=t=in:st=0:d={fade}",
            f"fade=t=out:st={fade_out_start:.3f}:d={fade}",
        ]
        filters.extend(self._drawtext(segment) for segment in captions)
        return ",".join(filters)

    def _drawtext(self, segment: CaptionSegment) -> str:
        # Visible on the half-open window [start, end)
        return (
            f"drawtext=text='{escape_drawtext(segment.text)}':expansion=none"
            f":fontsize={self.settings.caption_font_size}:fontcolor=white:borderw=2:bordercolor=black"
            f":box=1:boxcolor=black@0.6:boxborderw=8"
            f":x=(w-text_w)/2:y=h-text_h-{self.settings.caption_margin_bottom}"
            f":enable='gte(t,{segment.start:.3f})*lt(t,{segment.end:.3f})'"
        )

    def build_command(
        self,
        kind: VisualKind,
        visual_path: Path,
        audio_path: Path,
        output_path: Path,
        filter_graph: str,
        duration: float,
    ) -> list[str]:
        """
        Encoder arguments for one segment.

        An image is looped as a still and the audio padded with silence, so
        the segment lasts exactly ``duration``. A clip is looped to cover the
        duration and cut at the shorter of ``duration`` and the audio.
        """
        if kind == VisualKind.IMAGE:
            inputs = ["-loop", "1", "-framerate", str(VIDEO_FPS), "-i", str(visual_path), "-i", str(audio_path)]
            audio_filter = ["-af", "apad"]
            length = []
        else:
            inputs = ["-stream_loop", "-1", "-i", str(visual_path), "-i", str(audio_path)]
            audio_filter = []
            length = ["-shortest"]

        return [
            *inputs,
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-vf", filter_graph,
            *audio_filter,
            "-c:v", "libx264",
            "-b:v", self.settings.video_bitrate,
            "-pix_fmt", "yuv420p",
            "-r", str(VIDEO_FPS),
            "-c:a", "aac",
            "-b:a", self.settings.audio_bitrate,
            "-ar", str(AUDIO_SAMPLE_RATE),
            "-ac", "2",
            "-t", f"{duration:.3f}",
            *length,
            str(output_path),
        ]
