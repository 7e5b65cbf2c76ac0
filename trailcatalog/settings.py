"""Centralized configuration management for the trail catalog client."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables defined in a local .env file before instantiating the
# settings singleton so every consumer importing :mod:`trailcatalog.settings`
# observes the same values.
load_dotenv()

# -- Application-wide constants -------------------------------------------------

DEFAULT_STORE_BASE_URL = "https://firestore.googleapis.com/v1"
DEFAULT_STORE_DATABASE = "(default)"
DEFAULT_GUIDES_COLLECTION = "trail_guides"
DEFAULT_SNAPSHOT_DATABASE_URL = "sqlite+aiosqlite:///./data/snapshot.db"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_REDIS_RETRY_BACKOFF_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0
DEFAULT_CATALOG_TIMEOUT_SECONDS = 12.0
DEFAULT_PHASE_TIMEOUT_SECONDS = 15.0
DEFAULT_BATCH_SIZE = 6
DEFAULT_SHARE_BASE_URL = "http://localhost:8000"
DEFAULT_LOG_LEVEL = "INFO"


class AppSettings(BaseSettings):
    """Typed configuration surface built on top of ``pydantic-settings``.

    Timeouts and delays are expressed in seconds. The retry defaults mirror the
    load cycle contract: three retries, exponential backoff starting at one
    second, a 12 second budget per catalog query attempt and 15 seconds per
    load phase.
    """

    _explicit_redis_url: bool = PrivateAttr(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def __init__(self, **values: object) -> None:  # noqa: D401 - short override explanation
        """Capture explicit overrides prior to delegating to ``BaseSettings``."""

        normalized_keys = {str(key).lower() for key in values}
        super().__init__(**values)
        self._explicit_redis_url = "redis_url" in normalized_keys
        redis_env = os.getenv("REDIS_URL")
        if redis_env is not None and redis_env.strip():
            self._explicit_redis_url = True

    store_base_url: str = Field(
        default=DEFAULT_STORE_BASE_URL,
        alias="STORE_BASE_URL",
        description="Base URL of the Firestore-compatible REST endpoint.",
    )
    store_project_id: str | None = Field(
        default=None,
        alias="STORE_PROJECT_ID",
        description="Project identifier hosting the trail guide documents.",
    )
    store_database: str = Field(
        default=DEFAULT_STORE_DATABASE,
        alias="STORE_DATABASE",
        description="Database name inside the project.",
    )
    store_api_key: str | None = Field(
        default=None,
        alias="STORE_API_KEY",
        description="Optional API key appended to every document store request.",
    )
    guides_collection: str = Field(
        default=DEFAULT_GUIDES_COLLECTION,
        alias="GUIDES_COLLECTION",
        description="Collection holding trail guide documents.",
    )
    snapshot_database_url: str = Field(
        default=DEFAULT_SNAPSHOT_DATABASE_URL,
        alias="SNAPSHOT_DATABASE_URL",
        description=(
            "SQLAlchemy async URL for the local snapshot used when the remote"
            " store cannot be reached."
        ),
    )
    redis_url: str = Field(
        default=DEFAULT_REDIS_URL,
        alias="REDIS_URL",
        description="Redis connection string backing local key-value storage.",
    )
    redis_retry_backoff_seconds: float = Field(
        default=DEFAULT_REDIS_RETRY_BACKOFF_SECONDS,
        alias="REDIS_RETRY_BACKOFF_SECONDS",
        description="Cooldown duration applied after Redis connection failures.",
    )
    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=0,
        alias="CATALOG_MAX_RETRIES",
        description="Retries granted to transient failures before giving up.",
    )
    base_delay_seconds: float = Field(
        default=DEFAULT_BASE_DELAY_SECONDS,
        ge=0,
        alias="CATALOG_BASE_DELAY_SECONDS",
        description="First backoff delay; doubled on each subsequent retry.",
    )
    catalog_timeout_seconds: float = Field(
        default=DEFAULT_CATALOG_TIMEOUT_SECONDS,
        gt=0,
        alias="CATALOG_TIMEOUT_SECONDS",
        description="Timeout applied to each source read and retry attempt.",
    )
    phase_timeout_seconds: float = Field(
        default=DEFAULT_PHASE_TIMEOUT_SECONDS,
        gt=0,
        alias="CATALOG_PHASE_TIMEOUT_SECONDS",
        description="Budget for a single phase of the load sequence.",
    )
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE,
        gt=0,
        alias="CATALOG_BATCH_SIZE",
        description="Number of trail guides revealed per pagination batch.",
    )
    share_base_url: str = Field(
        default=DEFAULT_SHARE_BASE_URL,
        alias="SHARE_BASE_URL",
        description="Origin used when building shareable trail links.",
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        alias="LOG_LEVEL",
        description="Root logging level (e.g. INFO, DEBUG, WARNING).",
    )

    @property
    def log_level_numeric(self) -> int:
        """Translate ``log_level`` into the numeric constant expected by logging."""

        candidate = logging.getLevelName(self.log_level.upper())
        if isinstance(candidate, int):
            return candidate
        return logging.INFO

    def optional_config_warnings(self) -> list[str]:
        """Return human-readable warnings for unset optional configuration."""

        warnings: list[str] = []

        if not self.store_project_id:
            warnings.append(
                "STORE_PROJECT_ID is not set - remote reads will fail and the"
                " catalog will be served from the local snapshot only"
            )

        if not self._explicit_redis_url and self.redis_url == DEFAULT_REDIS_URL:
            warnings.append(
                "REDIS_URL is not set - liked trails will be kept in memory"
                " when the default Redis instance is unreachable"
            )

        return warnings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached instance of :class:`AppSettings`."""

    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_BASE_DELAY_SECONDS",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_CATALOG_TIMEOUT_SECONDS",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_PHASE_TIMEOUT_SECONDS",
    "DEFAULT_REDIS_RETRY_BACKOFF_SECONDS",
    "DEFAULT_REDIS_URL",
    "DEFAULT_SNAPSHOT_DATABASE_URL",
    "get_settings",
]
