"""Scene Regenerator - replaces one scene's assets and reassembles the video."""

from typing import Any, Optional, Sequence, Union

from scenecast.core.config import Settings
from scenecast.models.schemas import GenerationOptions, RegenerationResult, Scene, SceneAsset
from scenecast.services.scene_generator import SceneCompletedCallback, SceneGenerator
from scenecast.services.video_assembler import VideoAssembler
from scenecast.utils.cancellation import CancellationToken
from scenecast.utils.error_handler import CancellationError, InvalidRequestError

REGENERATION_CANCELLED = "Regeneration cancelled"


class SceneRegenerator:
    """Regenerates a single scene without touching the others."""

    def __init__(self, settings: Settings, logger: Any, generator: SceneGenerator, assembler: VideoAssembler):
        self.settings = settings
        self.logger = logger
        self.generator = generator
        self.assembler = assembler

    def regenerate(
        self,
        index: int,
        scene: Union[Scene, dict],
        current_assets: Sequence[SceneAsset],
        options: Optional[GenerationOptions] = None,
        cancel_token: Optional[CancellationToken] = None,
        on_scene_complete: Optional[SceneCompletedCallback] = None,
    ) -> RegenerationResult:
        """
        Regenerate scene ``index`` and reassemble the full video.

        ``current_assets`` is never modified. Every asset other than the one
        at ``index`` is carried over as the same object, so a failure at any
        stage leaves the caller's previous assets and video intact.

        Args:
            index: Position of the scene to replace
            scene: New scene content
            current_assets: Assets of the current video, in index order
            options: Generation options (captions, voice, style)
            cancel_token: Token scoped to this regeneration only
            on_scene_complete: Callback receiving the completion event

        Returns:
            RegenerationResult with the updated asset list and new video

        Raises:
            InvalidRequestError: If ``index`` is out of range
            CancellationError: If the regeneration was cancelled
        """
        if not 0 <= index < len(current_assets):
            raise InvalidRequestError(
                f"Scene index {index} out of range (0-{len(current_assets) - 1})",
                errors=[{"path": "index", "message": "scene index out of range"}],
            )

        options = options or GenerationOptions()
        self.logger.info(f"Regenerating scene {index} of {len(current_assets)}")

        try:
            new_asset = self.generator.generate_one(
                scene,
                index,
                options,
                cancel_token=cancel_token,
                on_scene_complete=on_scene_complete,
                label=f"regenerate-scene-{index}",
            )
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(REGENERATION_CANCELLED)

            updated = list(current_assets)
            updated[index] = new_asset
            video = self.assembler.assemble(updated, captions_enabled=options.captions)
        except CancellationError:
            self.logger.info(f"Regeneration of scene {index} cancelled")
            raise CancellationError(REGENERATION_CANCELLED) from None

        self.logger.info(f"✅ Scene {index} regenerated")
        return RegenerationResult(assets=updated, video=video)
