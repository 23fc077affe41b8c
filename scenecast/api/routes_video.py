"""FastAPI routes for video assembly."""

from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from scenecast.core.config import settings
from scenecast.core.logging_config import get_logger
from scenecast.models.schemas import AssembleVideoBody, format_validation_errors
from scenecast.services.video_assembler import VideoAssembler
from scenecast.utils.error_handler import (
    InvalidRequestError,
    PipelineError,
    StageTimeoutError,
    error_payload,
    format_error_message,
)

router = APIRouter(prefix="/videos", tags=["videos"])


def get_assembler() -> VideoAssembler:
    """Assembler used by the routes (overridable in tests)."""
    return VideoAssembler(settings, get_logger(__name__, stage="assemble"))


def _validation_response(error: InvalidRequestError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=error_payload(error, "VALIDATION_ERROR", {"errors": error.errors}),
    )


@router.post("/assemble")
async def assemble_video(request: Request, assembler: VideoAssembler = Depends(get_assembler)) -> Any:
    """
    Assemble pre-generated scene assets into one MP4.

    Body: ``{"scenes": [{sceneIndex, imageBase64 | videoBase64, audioBase64,
    durationSeconds, narration?}], "captions": true}``
    """
    logger = get_logger(__name__, stage="assemble")

    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > settings.max_request_bytes:
        logger.warning(f"Rejected assembly request of {content_length} bytes")
        return JSONResponse(
            status_code=413,
            content={
                "error": f"Request body too large (maximum {settings.max_request_bytes // (1024 * 1024)} MB)",
                "code": "PAYLOAD_TOO_LARGE",
            },
        )

    try:
        body = AssembleVideoBody.model_validate_json(await request.body())
    except ValidationError as e:
        errors = format_validation_errors(e)
        return _validation_response(InvalidRequestError(errors[0]["message"], errors=errors))

    logger.info(f"Assembly request: {len(body.scenes)} scenes, captions: {body.captions}")
    scene_data = [scene.to_scene_asset_data() for scene in body.scenes]

    try:
        video = await run_in_threadpool(assembler.assemble, scene_data, body.captions)
    except InvalidRequestError as e:
        return _validation_response(e)
    except StageTimeoutError as e:
        return JSONResponse(status_code=504, content=error_payload(e, "TIMEOUT"))
    except PipelineError as e:
        return JSONResponse(status_code=500, content=error_payload(e, "ASSEMBLY_FAILED"))
    except Exception as e:
        logger.error(format_error_message("Assembling video", e))
        return JSONResponse(
            status_code=500,
            content={"error": "Unable to assemble video. Please try again.", "code": "INTERNAL_ERROR"},
        )

    return Response(
        content=video,
        media_type="video/mp4",
        headers={"Content-Disposition": 'attachment; filename="video.mp4"'},
    )
