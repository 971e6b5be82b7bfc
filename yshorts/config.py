"""
YShorts Configuration
Centralized settings management using Pydantic Settings
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # ==========================================================================
    # Application
    # ==========================================================================
    app_name: str = "YShorts"
    debug: bool = False
    app_version: str = "1.0.0"
    api_prefix: str = Field(default="/api/shorts", description="Route prefix used in clip URLs")

    # ==========================================================================
    # Collaborators
    # ==========================================================================
    assemblyai_api_key: str = Field(default="", description="AssemblyAI API Key")
    assemblyai_base_url: str = Field(default="https://api.assemblyai.com/v2")
    transcription_poll_interval: float = Field(default=3.0, gt=0, description="Seconds between status polls")
    transcription_timeout_seconds: int = Field(default=1800, ge=30)
    gemini_api_key: str = Field(default="", description="Google Gemini API Key")
    gemini_model: str = Field(default="gemini-2.0-flash")

    # ==========================================================================
    # External Tools
    # ==========================================================================
    ffmpeg_binary: str = Field(default="ffmpeg")
    ffprobe_binary: str = Field(default="ffprobe")
    ytdlp_binary: str = Field(default="yt-dlp")

    # ==========================================================================
    # Transcoding
    # ==========================================================================
    video_codec: str = "libx264"
    video_preset: str = Field(default="veryfast", description="x264 preset for re-encoded clips")
    video_crf: int = Field(default=23, ge=0, le=51)
    audio_bitrate: str = "128k"
    transcode_timeout_seconds: int = Field(default=600, ge=5, description="Hard limit per ffmpeg process")

    # ==========================================================================
    # Download
    # ==========================================================================
    download_max_attempts: int = Field(default=5, ge=1, le=10)
    download_backoff_seconds: float = Field(default=3.0, ge=0, description="Linear backoff unit")
    download_backoff_cap_seconds: float = Field(default=15.0, ge=0)
    download_timeout_seconds: int = Field(default=1800, ge=30, description="Hard limit per downloader process")
    max_video_height: int = Field(default=1080, ge=144)

    # ==========================================================================
    # Workspace
    # ==========================================================================
    preview_retention_minutes: int = Field(default=60, ge=1, description="Age after which quick previews are reaped")

    # ==========================================================================
    # Security
    # ==========================================================================
    cors_allowed_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:8000",
            "http://127.0.0.1:8000"
        ],
        description="Allowed CORS origins"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================
    output_dir: str = Field(default="output", description="Root for per-session clip folders")
    temp_dir: str = Field(default="temp", description="Scratch directory for downloads and previews")

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("api_prefix")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return "/" + value.strip("/")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
