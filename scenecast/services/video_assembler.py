"""Video Assembler - renders every scene segment and concatenates them into one video."""

import time
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from scenecast.core.config import Settings
from scenecast.models.schemas import AssemblyRequest, SceneAsset, VisualKind
from scenecast.services.ffmpeg_runner import FFmpegRunner
from scenecast.services.media_probe import guess_audio_suffix, guess_image_suffix
from scenecast.services.segment_builder import SegmentBuilder
from scenecast.services.workspace import Workspace
from scenecast.utils.error_handler import PipelineError, format_error_message


class VideoAssembler:
    """Assembles ordered SceneAssets into the final MP4 inside an ephemeral workspace."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        runner: Optional[FFmpegRunner] = None,
        segment_builder: Optional[SegmentBuilder] = None,
    ):
        """
        Initialize video assembler.

        Args:
            settings: Application settings
            logger: Logger instance
            runner: Encoder runner shared with the segment builder
            segment_builder: Optional segment builder (defaults to one using ``runner``)
        """
        self.settings = settings
        self.logger = logger
        self.runner = runner or FFmpegRunner(settings, logger)
        self.segment_builder = segment_builder or SegmentBuilder(settings, logger, runner=self.runner)

    def effective_duration(self, asset: SceneAsset) -> float:
        """Scene duration after the configured floor."""
        return max(asset.duration_seconds, self.settings.min_scene_duration_seconds)

    def assemble(
        self,
        scene_assets: Sequence[Union[SceneAsset, dict]],
        captions_enabled: bool = True,
    ) -> bytes:
        """
        Render and concatenate all scenes into one video.

        The request is validated before the workspace is created, so invalid
        input never touches the filesystem. The workspace is removed on every
        exit path.

        Args:
            scene_assets: One asset per scene, indices 0..N-1 in any order
            captions_enabled: Burn timed captions into each segment

        Returns:
            Encoded MP4 bytes

        Raises:
            InvalidRequestError: If the request is malformed or over a limit
            RenderError: If a segment or the concatenation fails
            StageTimeoutError: If a render or the concatenation exceeds its deadline
        """
        request = AssemblyRequest.build(scene_assets, captions_enabled, self.settings)
        scenes = request.ordered_scenes
        total_duration = sum(self.effective_duration(scene) for scene in scenes)

        self.logger.info(
            f"Assembling {len(scenes)} scenes ({total_duration:.2f}s, captions: {'on' if request.captions else 'off'})"
        )
        start_time = time.time()

        with Workspace(self.logger, root=self.settings.workspace_root, prefix=self.settings.workspace_prefix) as workspace:
            try:
                segment_paths = [self._render_scene(scene, request.captions, workspace) for scene in scenes]

                manifest = workspace.write_manifest(segment_paths)
                output_path = workspace.file("output.mp4")
                self.runner.run(
                    ["-f", "concat", "-safe", "0", "-i", str(manifest), "-c", "copy", str(output_path)],
                    timeout=self.settings.assemble_timeout_seconds,
                    stage="concatenation",
                )
                video = output_path.read_bytes()
            except PipelineError as e:
                self.logger.error(format_error_message("Assembling video", e, context={"scenes": len(scenes)}))
                raise

        self.logger.info(f"✅ Video assembled: {len(video) / 1024:.1f} KB in {time.time() - start_time:.2f}s")
        return video

    def _render_scene(self, scene: SceneAsset, captions_enabled: bool, workspace: Workspace) -> Path:
        """Write one scene's payloads into the workspace and render its segment."""
        index = scene.scene_index
        if scene.visual_kind == VisualKind.IMAGE:
            visual_path = workspace.write_bytes(f"scene_{index}_image{guess_image_suffix(scene.visual_payload)}", scene.visual_payload)
        else:
            visual_path = workspace.write_bytes(f"scene_{index}_clip.mp4", scene.visual_payload)
        audio_path = workspace.write_bytes(f"scene_{index}_audio{guess_audio_suffix(scene.audio)}", scene.audio)

        return self.segment_builder.build(
            scene,
            self.effective_duration(scene),
            captions_enabled,
            visual_path=visual_path,
            audio_path=audio_path,
            output_path=workspace.file(f"segment_{index}.mp4"),
        )
