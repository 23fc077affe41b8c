"""Visual generator client - still images or looping video clips per scene."""

import base64
import io
import textwrap
from typing import Any, Optional

import requests
from PIL import Image, ImageDraw

from scenecast.core.config import Settings
from scenecast.models.schemas import VisualAsset, VisualKind
from scenecast.utils.cancellation import CancellationToken


class VisualClient:
    """Visual generator supporting an HTTP endpoint or an offline stub."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize visual client.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.provider = self._detect_provider()

    def _detect_provider(self) -> str:
        """Detect which visual provider to use based on available configuration."""
        if getattr(self.settings, "visual_endpoint_url", None):
            return "http"
        return "stub"

    def generate(
        self,
        prompt: str,
        *,
        scene_index: int,
        style_guide: Optional[str] = None,
        narration: Optional[str] = None,
        duration_hint: Optional[float] = None,
        use_video: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> VisualAsset:
        """
        Generate the visual for one scene.

        Args:
            prompt: Visual generation prompt
            scene_index: Index of the scene (0 = opening frame)
            style_guide: Optional style hint shared by all scenes
            narration: Optional narration, helps the backend infer motion
            duration_hint: Optional requested clip length in seconds
            use_video: Request a looping video clip instead of a still image
            cancel_token: Optional cancellation token

        Returns:
            VisualAsset with the encoded payload

        Raises:
            Exception: If generation fails
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        kind = VisualKind.VIDEO if use_video else VisualKind.IMAGE
        self.logger.info(f"Generating {kind.value} for scene {scene_index} using {self.provider} provider")

        if self.provider == "http":
            return self._generate_http(prompt, scene_index, style_guide, narration, duration_hint, kind)
        if kind == VisualKind.VIDEO:
            raise ValueError("Video clips are not configured for the stub visual provider")
        return self._generate_stub(prompt, scene_index)

    def _generate_http(
        self,
        prompt: str,
        scene_index: int,
        style_guide: Optional[str],
        narration: Optional[str],
        duration_hint: Optional[float],
        kind: VisualKind,
    ) -> VisualAsset:
        """Generate a visual using the configured HTTP endpoint."""
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.settings.visual_endpoint_token:
            headers["Authorization"] = f"Bearer {self.settings.visual_endpoint_token}"

        data = {
            "prompt": prompt,
            "styleGuide": style_guide,
            "sceneIndex": scene_index,
            "narration": narration,
            "kind": kind.value,
            "durationSeconds": duration_hint,
        }

        try:
            response = requests.post(
                self.settings.visual_endpoint_url,
                json=data,
                headers=headers,
                timeout=self.settings.generation_timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise Exception(f"Network error calling visual endpoint: {e}")

        if response.status_code != 200:
            raise Exception(f"Visual endpoint returned status {response.status_code}: {response.text[:200]}")

        body = response.json()
        field = "videoBase64" if kind == VisualKind.VIDEO else "imageBase64"
        if not body.get(field):
            raise Exception(f"Visual endpoint response is missing {field}")

        default_cost = (
            self.settings.estimated_video_cost if kind == VisualKind.VIDEO else self.settings.estimated_image_cost
        )
        return VisualAsset(
            kind=kind,
            data=base64.b64decode(body[field]),
            duration_hint=body.get("durationSeconds") or None,
            cost=float(body.get("cost", default_cost)),
        )

    def _generate_stub(self, prompt: str, scene_index: int) -> VisualAsset:
        """
        Generate a placeholder image.

        This creates a dark frame with the scene number and prompt so the
        pipeline can run end to end without a visual backend.
        """
        self.logger.warning("Using stub visual provider - generating placeholder image")
        width, height = self.settings.output_width, self.settings.output_height
        image = Image.new("RGB", (width, height), color=(24, 28, 38))
        draw = ImageDraw.Draw(image)

        lines = [f"Scene {scene_index + 1}", ""] + textwrap.wrap(prompt, width=60)[:8]
        y = height // 3
        for line in lines:
            draw.text((width // 10, y), line, fill=(230, 230, 230))
            y += 28

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return VisualAsset(kind=VisualKind.IMAGE, data=buffer.getvalue(), cost=0.0)
