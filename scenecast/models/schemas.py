"""Pydantic models and schemas for the scene video pipeline."""

import base64
import binascii
from enum import Enum
from typing import Any, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from scenecast.core.config import Settings
from scenecast.utils.error_handler import InvalidRequestError


# ============================================================================
# Enums
# ============================================================================


class VisualKind(str, Enum):
    """Kind of visual payload attached to a scene."""

    IMAGE = "image"
    VIDEO = "video"


class RenderMode(str, Enum):
    """Render attempt modes, in fallback order."""

    WITH_CAPTIONS = "with_captions"
    WITHOUT_CAPTIONS = "without_captions"


# ============================================================================
# Script Input Models
# ============================================================================


class Scene(BaseModel):
    """One narrated unit of the output video, as handed over by the script step."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    narration: str = Field(..., min_length=1, description="Narration text spoken over the scene")
    visual_prompt: str = Field(
        ..., min_length=1, alias="imagePrompt", description="Prompt for the visual generator"
    )
    duration_hint: Optional[float] = Field(
        default=None, gt=0, alias="duration", description="Optional duration hint in seconds"
    )


class VideoScript(BaseModel):
    """Script file consumed by the command line pipeline."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, description="Video title")
    visual_style: Optional[str] = Field(default=None, alias="visualStyle", description="Style guide for visuals")
    scenes: list[Scene] = Field(..., min_length=1, description="Scenes in playback order")


class GenerationOptions(BaseModel):
    """Options for one batch (or single scene) of asset generation."""

    concurrency: Optional[int] = Field(default=None, ge=1, description="Worker pool size (defaults to settings)")
    captions: bool = Field(default=True, description="Keep narration on assets so captions can be rendered")
    voice: Optional[str] = Field(default=None, description="Voice selector for the audio generator")
    style_guide: Optional[str] = Field(default=None, description="Style hint passed to the visual generator")
    use_video: Optional[bool] = Field(default=None, description="Request video clips (defaults to settings)")


# ============================================================================
# Generator Result Models
# ============================================================================


class VisualAsset(BaseModel):
    """Result of one visual generator call."""

    kind: VisualKind = Field(..., description="Image or looping video clip")
    data: bytes = Field(..., min_length=1, description="Encoded image or clip")
    duration_hint: Optional[float] = Field(default=None, gt=0, description="Clip duration, if reported")
    cost: float = Field(default=0.0, ge=0, description="Cost incurred by the call")


class AudioAsset(BaseModel):
    """Result of one audio generator call."""

    data: bytes = Field(..., min_length=1, description="Encoded speech audio")
    content_type: str = Field(default="audio/mpeg", description="MIME type of the audio")
    duration_seconds: Optional[float] = Field(default=None, gt=0, description="Audio duration, if known")
    cost: float = Field(default=0.0, ge=0, description="Cost incurred by the call")


class SceneCompletedEvent(BaseModel):
    """Emitted once per finished scene for progress and usage metering."""

    scene_index: int = Field(..., ge=0)
    cost: float = Field(default=0.0, ge=0)
    label: str = Field(default="", description="Metering label (e.g. 'scene-2', 'regenerate-scene-2')")


# ============================================================================
# Assembly Models
# ============================================================================


class SceneAsset(BaseModel):
    """Generated media for one scene. Immutable; regeneration replaces the whole object."""

    model_config = ConfigDict(frozen=True)

    scene_index: int = Field(..., ge=0, description="Position of the scene in the video")
    image: Optional[bytes] = Field(default=None, description="Still image payload")
    video: Optional[bytes] = Field(default=None, description="Looping video clip payload")
    audio: bytes = Field(..., min_length=1, description="Narration audio payload")
    duration_seconds: float = Field(..., gt=0, description="Scene duration in seconds")
    narration: Optional[str] = Field(default=None, description="Narration copy, present when captions are requested")

    @model_validator(mode="after")
    def _exactly_one_visual(self) -> "SceneAsset":
        if bool(self.image) == bool(self.video):
            raise ValueError("exactly one of image/video required")
        return self

    @property
    def visual_kind(self) -> VisualKind:
        return VisualKind.IMAGE if self.image else VisualKind.VIDEO

    @property
    def visual_payload(self) -> bytes:
        return self.image if self.image else self.video  # type: ignore[return-value]

    @property
    def payload_bytes(self) -> int:
        return len(self.visual_payload) + len(self.audio)


class CaptionSegment(BaseModel):
    """A timed sub-span of a scene's narration."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1)
    start: float = Field(..., ge=0)
    end: float = Field(..., ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> "CaptionSegment":
        if self.end < self.start:
            raise ValueError("caption segment ends before it starts")
        return self

    @property
    def duration(self) -> float:
        return self.end - self.start


class AssemblyRequest(BaseModel):
    """Validated input of one assembly."""

    scenes: list[SceneAsset] = Field(..., min_length=1)
    captions: bool = Field(default=True)

    @model_validator(mode="after")
    def _contiguous_indices(self) -> "AssemblyRequest":
        indices = sorted(scene.scene_index for scene in self.scenes)
        if indices != list(range(len(self.scenes))):
            raise ValueError("scene indices must be unique and contiguous from 0")
        return self

    @property
    def ordered_scenes(self) -> list[SceneAsset]:
        return sorted(self.scenes, key=lambda scene: scene.scene_index)

    @classmethod
    def build(
        cls,
        scenes: Sequence[Union[SceneAsset, dict[str, Any]]],
        captions: bool,
        settings: Settings,
    ) -> "AssemblyRequest":
        """
        Validate an assembly request against the configured limits.

        Raises:
            InvalidRequestError: On any malformed or over-limit input
        """
        if not scenes:
            raise InvalidRequestError("At least one scene is required")
        if len(scenes) > settings.max_scenes:
            raise InvalidRequestError(
                f"Too many scenes: {len(scenes)} (maximum {settings.max_scenes})",
                errors=[{"path": "scenes", "message": f"maximum {settings.max_scenes} scenes"}],
            )

        try:
            request = cls.model_validate({"scenes": list(scenes), "captions": captions})
        except ValidationError as e:
            errors = format_validation_errors(e)
            raise InvalidRequestError(errors[0]["message"], errors=errors) from None

        total_bytes = sum(scene.payload_bytes for scene in request.scenes)
        if total_bytes > settings.max_request_bytes:
            raise InvalidRequestError(
                f"Request payload too large: {total_bytes} bytes (maximum {settings.max_request_bytes})"
            )
        for scene in request.scenes:
            if scene.narration and len(scene.narration) > settings.max_narration_chars:
                raise InvalidRequestError(
                    f"Scene {scene.scene_index}: narration too long (maximum {settings.max_narration_chars} characters)",
                    errors=[{"path": f"scenes.{scene.scene_index}.narration", "message": "narration too long"}],
                )
        return request


class RegenerationResult(BaseModel):
    """Updated asset list and the video assembled from it."""

    assets: list[SceneAsset]
    video: bytes


# ============================================================================
# HTTP Payload Models
# ============================================================================


class SceneAssetPayload(BaseModel):
    """Scene asset as sent over HTTP, with base64-encoded media."""

    model_config = ConfigDict(populate_by_name=True)

    scene_index: int = Field(..., ge=0, alias="sceneIndex")
    image_base64: Optional[str] = Field(default=None, alias="imageBase64")
    video_base64: Optional[str] = Field(default=None, alias="videoBase64")
    audio_base64: str = Field(..., min_length=1, alias="audioBase64")
    duration_seconds: float = Field(..., gt=0, alias="durationSeconds")
    narration: Optional[str] = Field(default=None)

    @field_validator("image_base64", "video_base64", "audio_base64")
    @classmethod
    def _valid_base64(cls, value: Optional[str]) -> Optional[str]:
        if value:
            try:
                base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError):
                raise ValueError("invalid base64 payload")
        return value

    def to_scene_asset_data(self) -> dict[str, Any]:
        """Decode media into the keyword arguments of SceneAsset."""
        return {
            "scene_index": self.scene_index,
            "image": base64.b64decode(self.image_base64) if self.image_base64 else None,
            "video": base64.b64decode(self.video_base64) if self.video_base64 else None,
            "audio": base64.b64decode(self.audio_base64),
            "duration_seconds": self.duration_seconds,
            "narration": self.narration,
        }


class AssembleVideoBody(BaseModel):
    """Request body for POST /videos/assemble."""

    scenes: list[SceneAssetPayload] = Field(..., min_length=1)
    captions: bool = Field(default=True)


def format_validation_errors(error: ValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into ``{path, message}`` entries."""
    errors = []
    for item in error.errors():
        message = str(item.get("msg", "Invalid request"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"path": ".".join(str(part) for part in item.get("loc", ())), "message": message})
    return errors or [{"path": "", "message": "Invalid request"}]
