"""Scene Generator - fetches visual and audio assets for every scene with bounded concurrency."""

import time
from typing import Any, Callable, Optional, Sequence, Union

from pydantic import ValidationError

from scenecast.core.config import Settings
from scenecast.models.schemas import (
    AudioAsset,
    GenerationOptions,
    Scene,
    SceneAsset,
    SceneCompletedEvent,
    VisualAsset,
    VisualKind,
    format_validation_errors,
)
from scenecast.services.media_probe import probe_audio_duration
from scenecast.services.tts_client import TTSClient
from scenecast.services.visual_client import VisualClient
from scenecast.utils.cancellation import CancellationToken
from scenecast.utils.error_handler import (
    CancellationError,
    GenerationError,
    InvalidRequestError,
    StageTimeoutError,
    format_error_message,
    to_user_message,
)
from scenecast.utils.parallel_executor import ParallelExecutor
from scenecast.utils.rate_limiter import CallThrottle
from scenecast.utils.retry import with_retry
from scenecast.utils.timeout import with_timeout

SceneCompletedCallback = Callable[[SceneCompletedEvent], None]


class SceneGenerator:
    """Generates ordered SceneAssets from scenes using a fixed-size worker pool."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        visual_client: Optional[VisualClient] = None,
        tts_client: Optional[TTSClient] = None,
        throttle: Optional[CallThrottle] = None,
        audio_duration_probe: Callable[[bytes, str], float] = probe_audio_duration,
    ):
        """
        Initialize scene generator.

        Args:
            settings: Application settings
            logger: Logger instance
            visual_client: Visual generator (defaults to VisualClient)
            tts_client: Audio generator (defaults to TTSClient)
            throttle: Optional throttle applied to visual generator calls
            audio_duration_probe: Measures audio the backend did not time
        """
        self.settings = settings
        self.logger = logger
        self.visual_client = visual_client or VisualClient(settings, logger)
        self.tts_client = tts_client or TTSClient(settings, logger)
        self.throttle = throttle
        self.audio_duration_probe = audio_duration_probe
        self.parallel_executor = ParallelExecutor(settings, logger)

    def generate_all(
        self,
        scenes: Sequence[Union[Scene, dict]],
        options: Optional[GenerationOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_scene_complete: Optional[SceneCompletedCallback] = None,
    ) -> list[SceneAsset]:
        """
        Generate assets for every scene, preserving input order.

        Fail-fast: the first scene that exhausts its retries aborts the batch
        and no assets are returned. Scenes still in flight are cancelled
        through a batch token derived from ``cancel_token``, so the error
        surfaces without waiting out their retries and deadlines. Completion events already emitted for
        finished scenes (and the cost they carry) are not rolled back.

        Args:
            scenes: Scenes in playback order
            options: Generation options
            cancel_token: Token governing the whole batch
            on_scene_complete: Callback receiving one event per finished scene

        Returns:
            SceneAssets indexed 0..N-1 in input order

        Raises:
            InvalidRequestError: If the scene list is empty or over the limits
            GenerationError: If any scene fails after all retries
            StageTimeoutError: If a scene's calls keep exceeding their deadline
            CancellationError: If the batch was cancelled
        """
        options = options or GenerationOptions()
        validated = self.validate_scenes(scenes)
        concurrency = options.concurrency or self.settings.scene_asset_concurrency

        self.logger.info(f"Generating assets for {len(validated)} scenes (concurrency: {concurrency})")
        start_time = time.time()

        batch_token = cancel_token.child() if cancel_token is not None else CancellationToken()

        def process(scene: Scene, index: int) -> SceneAsset:
            try:
                asset, cost = self._generate_scene(scene, index, options, batch_token)
            except Exception:
                batch_token.cancel()
                raise
            if on_scene_complete is not None:
                on_scene_complete(SceneCompletedEvent(scene_index=index, cost=cost, label=f"scene-{index}"))
            return asset

        try:
            assets = self.parallel_executor.map_ordered(
                validated,
                process,
                max_workers=concurrency,
                cancel_token=cancel_token,
            )
        except CancellationError:
            self.logger.info("Scene asset generation cancelled")
            raise

        self.logger.info(f"✅ Generated {len(assets)} scene assets in {time.time() - start_time:.2f}s")
        return assets

    def generate_one(
        self,
        scene: Union[Scene, dict],
        scene_index: int,
        options: Optional[GenerationOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_scene_complete: Optional[SceneCompletedCallback] = None,
        label: Optional[str] = None,
    ) -> SceneAsset:
        """
        Generate assets for a single scene without a worker pool.

        Args:
            scene: Scene to generate
            scene_index: Index the asset will occupy
            options: Generation options
            cancel_token: Token governing this single generation
            on_scene_complete: Optional callback for the completion event
            label: Metering label (defaults to "scene-<index>")

        Returns:
            The generated SceneAsset
        """
        options = options or GenerationOptions()
        validated = self.validate_scenes([scene])[0]
        asset, cost = self._generate_scene(validated, scene_index, options, cancel_token)
        if on_scene_complete is not None:
            on_scene_complete(
                SceneCompletedEvent(scene_index=scene_index, cost=cost, label=label or f"scene-{scene_index}")
            )
        return asset

    def validate_scenes(self, scenes: Sequence[Union[Scene, dict]]) -> list[Scene]:
        """
        Validate scene count and narration length before any generation call.

        Raises:
            InvalidRequestError: On an empty, oversized or malformed scene list
        """
        if not scenes:
            raise InvalidRequestError("At least one scene is required")
        if len(scenes) > self.settings.max_scenes:
            raise InvalidRequestError(
                f"Too many scenes: {len(scenes)} (maximum {self.settings.max_scenes})",
                errors=[{"path": "scenes", "message": f"maximum {self.settings.max_scenes} scenes"}],
            )

        validated = []
        for index, scene in enumerate(scenes):
            try:
                model = scene if isinstance(scene, Scene) else Scene.model_validate(scene)
            except ValidationError as e:
                errors = format_validation_errors(e)
                raise InvalidRequestError(f"Scene {index}: {errors[0]['message']}", errors=errors) from None
            if len(model.narration) > self.settings.max_narration_chars:
                raise InvalidRequestError(
                    f"Scene {index}: narration too long (maximum {self.settings.max_narration_chars} characters)",
                    errors=[{"path": f"scenes.{index}.narration", "message": "narration too long"}],
                )
            validated.append(model)
        return validated

    def _generate_scene(
        self,
        scene: Scene,
        index: int,
        options: GenerationOptions,
        cancel_token: Optional[CancellationToken],
    ) -> tuple[SceneAsset, float]:
        """Fetch visual and audio concurrently and combine them into one SceneAsset."""
        use_video = options.use_video if options.use_video is not None else self.settings.use_video_clips
        visual_kind = VisualKind.VIDEO if use_video else VisualKind.IMAGE
        log_prefix = f"[scene {index}] "
        # a failed call releases its sibling instead of waiting for it
        scene_token = cancel_token.child() if cancel_token is not None else CancellationToken()

        def fetch_visual() -> VisualAsset:
            return self._call_backend(
                lambda: self.visual_client.generate(
                    scene.visual_prompt,
                    scene_index=index,
                    style_guide=options.style_guide,
                    narration=scene.narration,
                    duration_hint=scene.duration_hint,
                    use_video=use_video,
                    cancel_token=scene_token,
                ),
                operation=f"{log_prefix}{visual_kind.value} generation",
                cancel_token=scene_token,
                throttle=self.throttle,
            )

        def fetch_audio() -> AudioAsset:
            return self._call_backend(
                lambda: self.tts_client.synthesize(scene.narration, voice=options.voice, cancel_token=scene_token),
                operation=f"{log_prefix}audio generation",
                cancel_token=scene_token,
            )

        (visual, visual_error), (audio, audio_error) = self.parallel_executor.execute_api_calls(
            [fetch_visual, fetch_audio],
            task_names=[f"{visual_kind.value} generation", "audio generation"],
            log_prefix=log_prefix,
        )

        outcomes = ((visual_error, visual_kind.value), (audio_error, "audio"))
        errors = [(e, kind) for e, kind in outcomes if e is not None]
        if errors:
            if cancel_token is not None and cancel_token.cancelled:
                raise CancellationError()
            error, kind = next(((e, k) for e, k in errors if not isinstance(e, CancellationError)), errors[0])
            if isinstance(error, CancellationError):
                raise CancellationError()
            self.logger.error(format_error_message(f"Generating {kind}", error, context={"scene_index": index}))
            if isinstance(error, StageTimeoutError):
                raise StageTimeoutError(to_user_message(error, kind), detail=str(error)) from error
            raise GenerationError(to_user_message(error, kind), scene_index=index, detail=str(error)) from error

        audio_duration = audio.duration_seconds or self.audio_duration_probe(audio.data, audio.content_type)
        duration = max(audio_duration, visual.duration_hint or 0.0, self.settings.min_scene_duration_seconds)

        asset = SceneAsset(
            scene_index=index,
            image=visual.data if visual.kind == VisualKind.IMAGE else None,
            video=visual.data if visual.kind == VisualKind.VIDEO else None,
            audio=audio.data,
            duration_seconds=duration,
            narration=scene.narration if options.captions else None,
        )
        self.logger.info(f"{log_prefix}Assets ready ({visual.kind.value}, {duration:.2f}s)")
        return asset, visual.cost + audio.cost

    def _call_backend(
        self,
        call: Callable[[], Any],
        operation: str,
        cancel_token: Optional[CancellationToken],
        throttle: Optional[CallThrottle] = None,
    ) -> Any:
        """
        Run one backend call behind throttle, deadline and retry.

        When the call finally fails, ``cancel_token`` is cancelled so that
        calls sharing it stop waiting.
        """

        def attempt() -> Any:
            if throttle is not None:
                throttle.wait_if_needed(cancel_token)
            return with_timeout(
                call,
                self.settings.generation_timeout_seconds,
                message=f"{operation} timed out",
                cancel_token=cancel_token,
            )

        try:
            return with_retry(
                attempt,
                attempts=self.settings.retry_attempts,
                initial_delay=self.settings.retry_initial_delay_seconds,
                cancel_token=cancel_token,
                logger=self.logger,
                operation=operation,
            )
        except CancellationError:
            raise
        except Exception:
            if cancel_token is not None:
                cancel_token.cancel()
            raise
