"""
FastAPI entrypoint for the SceneCast API.

* Full generation runs via the CLI (scenecast.pipelines.video_pipeline)
* The API assembles pre-generated scene assets into a video
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scenecast.api.routes_video import router as videos_router
from scenecast.core.config import settings
from scenecast.core.logging_config import get_logger, setup_logging
from scenecast.services.tts_client import TTSClient
from scenecast.services.visual_client import VisualClient

# Setup logging
setup_logging(log_level=settings.log_level, log_file=settings.log_file)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info("=" * 60)
    yield
    # Shutdown
    logger.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="SceneCast - assembles narrated scenes into captioned videos",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(videos_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "endpoints": {
            "assemble_video": "/videos/assemble",
            "config": "/config",
            "docs": "/docs",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/config")
async def config():
    """Provider summary and request limits. Never includes secrets."""
    return {
        "visual_provider": VisualClient(settings, logger).provider,
        "tts_provider": TTSClient(settings, logger).provider,
        "use_video_clips": settings.use_video_clips,
        "limits": {
            "max_scenes": settings.max_scenes,
            "max_request_bytes": settings.max_request_bytes,
            "max_caption_chars": settings.max_caption_chars,
            "min_scene_duration_seconds": settings.min_scene_duration_seconds,
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "scenecast.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
