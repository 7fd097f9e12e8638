"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------
    # Gemini provider
    # ------------------------------------------------------------------
    gemini_api_key: str = ""                  # required at startup (lifespan check)
    gemini_model:   str = "gemini-1.5-flash"

    # ------------------------------------------------------------------
    # Request storage
    # ------------------------------------------------------------------
    uploads_root: Path = Path("uploads")      # relative to the working directory

    # Delete the request directory when the pipeline fails, too
    cleanup_on_failure: bool = True

    # ------------------------------------------------------------------
    # Readiness polling
    # ------------------------------------------------------------------
    poll_interval_seconds:     float = Field(10.0, gt=0)
    poll_backoff_multiplier:   float = Field(1.0, ge=1.0)   # 1.0 = fixed interval
    poll_max_interval_seconds: float = Field(60.0, gt=0)
    poll_max_wait_seconds:     float = Field(600.0, gt=0)   # per file

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    upload_concurrency:  int  = Field(1, ge=1)   # 1 = strictly sequential uploads
    validate_extraction: bool = True             # parse provider JSON server-side

    # ------------------------------------------------------------------
    # HTTP server
    # ------------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 5000
    cors_allow_origins: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug: bool = False

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
