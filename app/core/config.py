"""
Application configuration using pydantic-settings.
"""
from typing import List, Optional, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    PROJECT_NAME: str = "YT Music Backend"
    VERSION: str = "1.0.0"
    PORT: int = 3000
    BACKEND_CORS_ORIGINS: Union[List[str], str] = ["*"]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        return v

    # Extractor (yt-dlp)
    YT_DLP_PATH: Optional[str] = None
    EXTRACTOR_MAX_CONCURRENCY: int = 8
    EXTRACTOR_TIMEOUT_SECONDS: float = 120.0
    STREAM_CHUNK_SIZE: int = 64 * 1024

    # YouTube Data API (bearer token is forwarded, never issued here)
    YOUTUBE_API_BASE_URL: str = "https://www.googleapis.com/youtube/v3"
    YOUTUBE_API_TIMEOUT_SECONDS: float = 15.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
