"""
Compendium Pipeline - Configuration

Settings are read from upper-case environment variables, optionally backed
by a local .env file. Access them through get_settings(); tests that mutate
the environment call reset_settings() afterwards.

    RECORD_STORE_URL            Base URL of the Record Store REST surface
    RECORD_STORE_TOKEN          Static bearer token (CLI / service use)
    HTTP_TIMEOUT_SECONDS        Timeout for Record Store calls
    BLOB_TIMEOUT_SECONDS        Timeout for full-text PUTs
    EXISTENCE_DEBOUNCE_SECONDS  Quiescence window for existence checks
    LINK_MAX_ATTEMPTS           Attempts for idempotent link calls
    BATCH_FALLBACK_REFORM_DATE  Date substituted for unparseable CSV dates
"""

from __future__ import annotations

import logging
from datetime import date
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Runtime settings for the ingestion pipeline."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # =========================================================================
    # RECORD STORE
    # =========================================================================

    RECORD_STORE_URL: str = Field(
        default="http://localhost:8080/api",
        description="Base URL of the Record Store REST surface",
    )
    RECORD_STORE_TOKEN: str | None = Field(
        default=None,
        description="Static bearer token used by the settings credential provider",
    )
    HTTP_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    BLOB_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0)

    # =========================================================================
    # PIPELINE BEHAVIOUR
    # =========================================================================

    EXISTENCE_DEBOUNCE_SECONDS: float = Field(default=1.0, ge=0)
    LINK_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    BATCH_FALLBACK_REFORM_DATE: date = Field(default=date(1900, 1, 1))

    # =========================================================================
    # ENVIRONMENT / LOGGING
    # =========================================================================

    ENVIRONMENT: Literal["dev", "staging", "prod"] = Field(default="dev")
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    LOG_JSON: bool = Field(default=False)

    # =========================================================================
    # SERVER
    # =========================================================================

    HOST: str = Field(default="127.0.0.1")
    PORT: int = Field(default=8888)

    @field_validator("RECORD_STORE_URL")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("RECORD_STORE_URL must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "prod"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached settings instance."""
    settings = Settings()
    if settings.is_production and not settings.RECORD_STORE_TOKEN:
        logger.warning("RECORD_STORE_TOKEN not set in production - store calls will fail auth")
    return settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
