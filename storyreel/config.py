import json
from functools import lru_cache
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STORYREEL_",
        extra="ignore",
    )

    # Application
    app_name: str = "Storyreel Render API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: str = "INFO"

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "http://localhost:5173,http://localhost:3000"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"

    # Storage
    # Relative media paths in a payload are resolved against this directory
    media_root: str = "/tmp/storyreel/media"
    render_output_dir: str = "/tmp/storyreel/renders"
    # Filter scripts are written here (None = system temp dir)
    render_temp_dir: str | None = None

    # Render settings
    render_fps: int = 30
    render_video_codec: str = "libx264"
    render_preset: str = "medium"
    render_crf: int = 23
    render_pix_fmt: str = "yuv420p"
    render_audio_codec: str = "aac"
    render_audio_sample_rate: int = 48000
    render_default_duration_s: float = 30.0
    render_default_text_duration_s: float = 5.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
