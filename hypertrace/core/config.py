"""
Hypertrace Settings
====================

Ambient configuration read from ``HYPERTRACE_*`` environment variables and
an optional ``.env`` file. Nothing here changes tracing semantics; it only
supplies defaults (base directory for call-site paths, logging, metrics
listener host and timeouts).
"""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Process settings, overridable via ``HYPERTRACE_<FIELD>``."""

    model_config = SettingsConfigDict(
        env_prefix="HYPERTRACE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ENVIRONMENT: str = "development"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool | None = None  # None = JSON outside development
    LOG_DIR: str | None = None

    # Call-site paths are reported relative to this directory
    BASE_DIR: str = Field(default_factory=os.getcwd)

    # Metrics exposition
    METRICS_HOST: str = "0.0.0.0"
    METRICS_STARTUP_TIMEOUT: float = Field(default=5.0, gt=0)
    METRICS_SHUTDOWN_TIMEOUT: float = Field(default=5.0, gt=0)

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Build and cache the settings; ``load_settings.cache_clear()`` forces a re-read."""
    return Settings()

settings: Settings = load_settings()
