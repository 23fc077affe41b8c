"""Tests for request validation models."""

import base64

import pytest
from pydantic import ValidationError

from scenecast.models.schemas import AssembleVideoBody, AssemblyRequest, Scene, SceneAsset
from scenecast.utils.error_handler import InvalidRequestError


def test_scene_accepts_script_field_names():
    """Test Scene reads camelCase script fields."""
    scene = Scene.model_validate({"narration": "Hello.", "imagePrompt": "A hill", "duration": 4})

    assert scene.visual_prompt == "A hill"
    assert scene.duration_hint == 4.0


def test_scene_asset_rejects_both_visuals():
    """Test an asset with image and video is rejected."""
    with pytest.raises(ValidationError, match="exactly one of image/video required"):
        SceneAsset(scene_index=0, image=b"img", video=b"vid", audio=b"aud", duration_seconds=3.0)


def test_scene_asset_rejects_neither_visual():
    with pytest.raises(ValidationError, match="exactly one of image/video required"):
        SceneAsset(scene_index=0, audio=b"aud", duration_seconds=3.0)


def test_scene_asset_rejects_non_positive_duration():
    with pytest.raises(ValidationError):
        SceneAsset(scene_index=0, image=b"img", audio=b"aud", duration_seconds=0)


def test_assembly_request_build_maps_both_visuals_to_invalid_request(settings):
    """Test the assembler-level error carries the exclusivity message."""
    scenes = [{"scene_index": 0, "image": b"i", "video": b"v", "audio": b"a", "duration_seconds": 3.0}]

    with pytest.raises(InvalidRequestError) as exc_info:
        AssemblyRequest.build(scenes, True, settings)

    assert exc_info.value.user_message == "exactly one of image/video required"
    assert exc_info.value.errors[0]["message"] == "exactly one of image/video required"


def test_assembly_request_rejects_too_many_scenes(settings, asset_factory):
    assets = [asset_factory(i) for i in range(settings.max_scenes + 1)]

    with pytest.raises(InvalidRequestError, match="Too many scenes"):
        AssemblyRequest.build(assets, True, settings)


def test_assembly_request_rejects_empty(settings):
    with pytest.raises(InvalidRequestError, match="At least one scene"):
        AssemblyRequest.build([], True, settings)


def test_assembly_request_rejects_gap_in_indices(settings, asset_factory):
    with pytest.raises(InvalidRequestError, match="contiguous"):
        AssemblyRequest.build([asset_factory(0), asset_factory(2)], True, settings)


def test_assembly_request_rejects_oversized_payload(settings, asset_factory):
    settings.max_request_bytes = 10

    with pytest.raises(InvalidRequestError, match="too large"):
        AssemblyRequest.build([asset_factory(0)], True, settings)


def test_assembly_request_orders_scenes(settings, asset_factory):
    request = AssemblyRequest.build([asset_factory(1), asset_factory(0)], False, settings)

    assert [s.scene_index for s in request.ordered_scenes] == [0, 1]
    assert request.captions is False


def test_assemble_body_decodes_base64():
    """Test HTTP payloads decode into SceneAsset fields."""
    body = AssembleVideoBody.model_validate(
        {
            "scenes": [
                {
                    "sceneIndex": 0,
                    "imageBase64": base64.b64encode(b"image").decode(),
                    "audioBase64": base64.b64encode(b"audio").decode(),
                    "durationSeconds": 3.5,
                    "narration": "Hi.",
                }
            ]
        }
    )

    data = body.scenes[0].to_scene_asset_data()
    assert data["image"] == b"image"
    assert data["video"] is None
    assert data["audio"] == b"audio"
    assert body.captions is True


def test_assemble_body_rejects_invalid_base64():
    with pytest.raises(ValidationError, match="invalid base64"):
        AssembleVideoBody.model_validate(
            {"scenes": [{"sceneIndex": 0, "imageBase64": "***", "audioBase64": "YQ==", "durationSeconds": 3}]}
        )
