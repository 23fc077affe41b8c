"""Application configuration using pydantic-settings."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="SceneCast Video Assembler", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")

    # ========================================================================
    # Request Limits
    # ========================================================================
    max_scenes: int = Field(default=10, ge=1, description="Maximum scenes per request")
    max_request_bytes: int = Field(
        default=50 * 1024 * 1024,
        description="Maximum total payload size of an assembly request in bytes (video clips are large)",
    )
    max_narration_chars: int = Field(default=1000, description="Maximum narration length accepted per scene")
    max_caption_chars: int = Field(
        default=120,
        description="Maximum caption text burned into one scene (longer narration is truncated for captions)",
    )
    caption_max_chars_per_segment: int = Field(
        default=45, ge=1, description="Maximum characters shown in one timed caption segment"
    )
    min_scene_duration_seconds: float = Field(
        default=3.0, gt=0, description="Floor applied to every scene duration"
    )

    # ========================================================================
    # Generation & Resilience Settings
    # ========================================================================
    scene_asset_concurrency: int = Field(
        default=3, ge=1, description="Maximum scenes whose assets are generated concurrently"
    )
    retry_attempts: int = Field(default=3, ge=1, description="Attempts per external call")
    retry_initial_delay_seconds: float = Field(
        default=1.0, ge=0, description="Initial back-off delay, doubled after each failed attempt"
    )
    generation_timeout_seconds: float = Field(
        default=90.0, gt=0, description="Deadline for a single visual/audio generation call"
    )
    enable_visual_throttle: bool = Field(
        default=False,
        description="Space calls to the visual backend (for rate-limited providers such as Replicate)",
    )
    throttle_interval_seconds: float = Field(
        default=10.0, ge=0, description="Minimum spacing between throttled backend calls"
    )

    # ========================================================================
    # Rendering Settings
    # ========================================================================
    output_width: int = Field(default=1920, description="Output video width in pixels")
    output_height: int = Field(default=1080, description="Output video height in pixels")
    fade_duration_seconds: float = Field(default=0.3, ge=0, description="Fade in/out duration per scene")
    video_bitrate: str = Field(default="2M", description="Segment video bitrate")
    audio_bitrate: str = Field(default="128k", description="Segment audio bitrate")
    caption_font_size: int = Field(default=28, description="Caption font size")
    caption_margin_bottom: int = Field(default=100, description="Caption distance from the bottom edge in pixels")
    render_timeout_seconds: float = Field(default=180.0, gt=0, description="Deadline for rendering one segment")
    assemble_timeout_seconds: float = Field(
        default=300.0, gt=0, description="Deadline for concatenating all segments"
    )
    ffmpeg_binary: Optional[str] = Field(
        default=None,
        description="Path to ffmpeg. Defaults to the bundled imageio-ffmpeg or PATH ffmpeg, preferring one with drawtext.",
    )
    workspace_root: Optional[str] = Field(
        default=None, description="Directory for ephemeral workspaces (defaults to the system temp dir)"
    )
    workspace_prefix: str = Field(default="scene-video-", description="Workspace directory name prefix")

    # ========================================================================
    # Visual Generator Settings
    # ========================================================================
    visual_endpoint_url: Optional[str] = Field(
        default=None,
        description="Visual generation endpoint. Returns JSON with imageBase64 or videoBase64. Set via VISUAL_ENDPOINT_URL.",
    )
    visual_endpoint_token: Optional[str] = Field(default=None, description="Bearer token for the visual endpoint")
    use_video_clips: bool = Field(
        default=False, description="Request looping video clips instead of still images"
    )

    # ========================================================================
    # TTS (Text-to-Speech) Settings
    # ========================================================================
    elevenlabs_api_key: Optional[str] = Field(default=None, description="ElevenLabs API key")
    elevenlabs_voice_id: Optional[str] = Field(default=None, description="ElevenLabs voice ID")
    tts_endpoint_url: Optional[str] = Field(
        default=None, description="Generic TTS endpoint returning JSON with audioBase64"
    )
    tts_endpoint_token: Optional[str] = Field(default=None, description="Bearer token for the TTS endpoint")
    default_voice: str = Field(default="onyx", description="Voice used when none is requested")

    # ========================================================================
    # Cost Estimates & Session Limits
    # ========================================================================
    estimated_image_cost: float = Field(default=0.04, description="Estimated cost per generated image")
    estimated_video_cost: float = Field(default=0.56, description="Estimated cost per generated video clip")
    estimated_tts_cost_per_1k_chars: float = Field(default=0.03, description="Estimated TTS cost per 1k characters")
    session_cost_warn: float = Field(default=0.25, description="Session cost that triggers a warning")
    session_cost_block: float = Field(default=0.5, description="Session cost that blocks new batches")


# Global settings instance
settings = Settings()
