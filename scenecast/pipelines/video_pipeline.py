"""Video pipeline orchestrator - script → scene assets → captioned video."""

import argparse
import os
import sys
import tempfile
import time
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from pydantic import ValidationError

from scenecast.core.config import Settings, settings
from scenecast.core.logging_config import get_logger, setup_logging
from scenecast.models.schemas import (
    GenerationOptions,
    RegenerationResult,
    Scene,
    SceneAsset,
    SceneCompletedEvent,
    VideoScript,
    format_validation_errors,
)
from scenecast.services.scene_generator import SceneCompletedCallback, SceneGenerator
from scenecast.services.scene_regenerator import SceneRegenerator
from scenecast.services.tts_client import TTSClient
from scenecast.services.usage_meter import UsageMeter
from scenecast.services.video_assembler import VideoAssembler
from scenecast.services.visual_client import VisualClient
from scenecast.utils.cancellation import CancellationToken
from scenecast.utils.error_handler import CancellationError, InvalidRequestError, PipelineError
from scenecast.utils.rate_limiter import CallThrottle, get_shared_throttle

EXIT_CANCELLED = 130


class VideoPipeline:
    """Composes generation, assembly and regeneration behind one facade.

    Keeps the last successful assets and video. A failed or cancelled
    operation leaves them untouched.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        visual_client: Optional[VisualClient] = None,
        tts_client: Optional[TTSClient] = None,
        throttle: Optional[CallThrottle] = None,
        meter: Optional[UsageMeter] = None,
        assembler: Optional[VideoAssembler] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Application settings
            logger: Logger instance
            visual_client: Visual generator (defaults to VisualClient)
            tts_client: Audio generator (defaults to TTSClient)
            throttle: Throttle for visual calls (defaults to the shared one when enabled)
            meter: Usage meter fed by scene completion events
            assembler: Video assembler (defaults to VideoAssembler)
        """
        self.settings = settings
        self.logger = logger

        if throttle is None and settings.enable_visual_throttle:
            throttle = get_shared_throttle("visual", settings.throttle_interval_seconds)

        self.meter = meter or UsageMeter(settings, logger)
        self.generator = SceneGenerator(
            settings, logger, visual_client=visual_client, tts_client=tts_client, throttle=throttle
        )
        self.assembler = assembler or VideoAssembler(settings, logger)
        self.regenerator = SceneRegenerator(settings, logger, self.generator, self.assembler)

        self.assets: list[SceneAsset] = []
        self.video: Optional[bytes] = None
        self._generation_token: Optional[CancellationToken] = None
        self._regeneration_token: Optional[CancellationToken] = None

    # ========================================================================
    # Operations
    # ========================================================================

    def generate_scene_assets(
        self,
        scenes: Sequence[Union[Scene, dict]],
        options: Optional[GenerationOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_scene_complete: Optional[SceneCompletedCallback] = None,
    ) -> list[SceneAsset]:
        """
        Generate assets for a batch of scenes.

        Args:
            scenes: Scenes in playback order
            options: Generation options
            cancel_token: Token for this batch (a fresh one is created when omitted)
            on_scene_complete: Extra progress callback, called after metering

        Returns:
            Ordered scene assets

        Raises:
            InvalidRequestError: If the session cost limit is reached or input is invalid
        """
        if not self.meter.can_proceed():
            raise InvalidRequestError("Session cost limit reached. Start over to reset.")

        token = cancel_token or CancellationToken()
        self._generation_token = token
        assets = self.generator.generate_all(
            scenes, options, cancel_token=token, on_scene_complete=self._progress_callback(on_scene_complete)
        )
        self.assets = assets
        return assets

    def assemble(self, scene_assets: Optional[Sequence[SceneAsset]] = None, captions_enabled: bool = True) -> bytes:
        """Assemble ``scene_assets`` (default: the last generated assets) into a video."""
        assets = list(scene_assets) if scene_assets is not None else self.assets
        video = self.assembler.assemble(assets, captions_enabled=captions_enabled)
        self.assets = assets
        self.video = video
        return video

    def create_video(
        self,
        scenes: Sequence[Union[Scene, dict]],
        options: Optional[GenerationOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_scene_complete: Optional[SceneCompletedCallback] = None,
    ) -> bytes:
        """Generate assets for every scene and assemble them into one video."""
        options = options or GenerationOptions()
        assets = self.generate_scene_assets(
            scenes, options, cancel_token=cancel_token, on_scene_complete=on_scene_complete
        )
        if self._generation_token is not None:
            self._generation_token.raise_if_cancelled()
        return self.assemble(assets, captions_enabled=options.captions)

    def regenerate_scene(
        self,
        index: int,
        scene: Union[Scene, dict],
        current_assets: Optional[Sequence[SceneAsset]] = None,
        options: Optional[GenerationOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_scene_complete: Optional[SceneCompletedCallback] = None,
    ) -> RegenerationResult:
        """
        Replace one scene and reassemble.

        Uses its own cancellation token, independent of batch generation.
        The stored assets and video are replaced only on success.
        """
        assets = list(current_assets) if current_assets is not None else self.assets
        token = cancel_token or CancellationToken()
        self._regeneration_token = token
        result = self.regenerator.regenerate(
            index,
            scene,
            assets,
            options,
            cancel_token=token,
            on_scene_complete=self._progress_callback(on_scene_complete),
        )
        self.assets = result.assets
        self.video = result.video
        return result

    def cancel_generation(self) -> None:
        if self._generation_token is not None:
            self.logger.info("Cancelling scene asset generation")
            self._generation_token.cancel()

    def cancel_regeneration(self) -> None:
        if self._regeneration_token is not None:
            self.logger.info("Cancelling scene regeneration")
            self._regeneration_token.cancel()

    def save_video(self, path: Union[str, Path]) -> Path:
        """
        Write the last assembled video to ``path``, replacing it atomically.

        Raises:
            RuntimeError: If no video has been assembled yet
        """
        if self.video is None:
            raise RuntimeError("No video has been assembled yet")

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(self.video)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        self.logger.info(f"Video saved: {path} ({len(self.video) / 1024:.1f} KB)")
        return path

    def _progress_callback(self, extra: Optional[SceneCompletedCallback]) -> SceneCompletedCallback:
        def on_scene_complete(event: SceneCompletedEvent) -> None:
            self.meter.record(event)
            if extra is not None:
                extra(event)

        return on_scene_complete


def load_script(path: Union[str, Path]) -> VideoScript:
    """
    Load a script JSON file.

    Raises:
        InvalidRequestError: If the file is not a valid script
    """
    try:
        return VideoScript.model_validate_json(Path(path).read_text(encoding="utf-8"))
    except ValidationError as e:
        errors = format_validation_errors(e)
        raise InvalidRequestError(f"Invalid script file {path}: {errors[0]['message']}", errors=errors) from None


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entrypoint for the video pipeline."""
    parser = argparse.ArgumentParser(
        description="SceneCast - generate a captioned video from a scene script",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--script", type=str, required=True, help="Path to the script JSON file")
    parser.add_argument("--output", type=str, required=True, help="Output MP4 path")
    parser.add_argument("--no-captions", action="store_true", help="Do not burn captions into the video")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help=f"Scenes generated concurrently (default: {settings.scene_asset_concurrency})",
    )
    parser.add_argument("--voice", type=str, default=None, help=f"Narration voice (default: {settings.default_voice})")
    parser.add_argument("--use-video", action="store_true", help="Request looping video clips instead of stills")
    parser.add_argument(
        "--regenerate-scene",
        type=int,
        default=None,
        help="After the first render, regenerate this scene index and reassemble",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {settings.log_level})",
    )

    args = parser.parse_args(argv)
    if args.concurrency is not None and args.concurrency < 1:
        parser.error("--concurrency must be at least 1")

    setup_logging(log_level=args.log_level, log_file=settings.log_file)
    logger = get_logger(__name__, script=args.script)

    logger.info("=" * 60)
    logger.info("SceneCast - Video Pipeline")
    logger.info(f"Script: {args.script}")
    logger.info(f"Output: {args.output}")
    logger.info(f"Captions: {'off' if args.no_captions else 'on'}")
    logger.info("=" * 60)

    pipeline = None
    try:
        script = load_script(args.script)
        options = GenerationOptions(
            concurrency=args.concurrency,
            captions=not args.no_captions,
            voice=args.voice,
            style_guide=script.visual_style,
            use_video=True if args.use_video else None,
        )
        if args.regenerate_scene is not None and not 0 <= args.regenerate_scene < len(script.scenes):
            parser.error(f"--regenerate-scene must be between 0 and {len(script.scenes) - 1}")

        pipeline = VideoPipeline(settings, logger)
        start_time = time.time()

        logger.info(f"Step 1: Creating video '{script.title}' ({len(script.scenes)} scenes)...")
        pipeline.create_video(script.scenes, options)

        if args.regenerate_scene is not None:
            index = args.regenerate_scene
            logger.info(f"Step 2: Regenerating scene {index}...")
            pipeline.regenerate_scene(index, script.scenes[index], options=options)

        output_path = pipeline.save_video(args.output)

        logger.info("=" * 60)
        logger.info("PIPELINE COMPLETE!")
        logger.info("=" * 60)
        logger.info(f"Video: {output_path}")
        logger.info(f"Total time: {time.time() - start_time:.2f}s")
        logger.info(f"Estimated cost: ${pipeline.meter.total:.2f}")
        if pipeline.meter.should_warn():
            logger.warning("Session cost is over the warning threshold")
        logger.info("=" * 60)
        return 0

    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user")
        if pipeline is not None:
            pipeline.cancel_generation()
            pipeline.cancel_regeneration()
        return EXIT_CANCELLED
    except CancellationError as e:
        logger.info(str(e))
        return EXIT_CANCELLED
    except PipelineError as e:
        logger.error(f"\n❌ Error: {e.user_message}")
        if e.detail:
            logger.debug(f"Detail: {e.detail}")
        return 1
    except Exception as e:
        logger.exception(f"Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
