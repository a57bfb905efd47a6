"""
Configuration management for incidentlog.

Uses pydantic-settings for environment variable support.
"""

import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


_VALID_LOG_LEVELS: frozenset[str] = frozenset([
    "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL",
])


class StorageType(str, Enum):
    """Storage backends available for persisting incidents."""
    SQLITE = "sqlite"
    MEMORY = "memory"


def _default_db_path() -> Path:
    return Path.home() / ".incidentlog" / "incidents.db"


class Settings(BaseSettings):
    """incidentlog configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="INCIDENTLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    db_path: Path = Field(
        default_factory=_default_db_path,
        description="SQLite database file holding the incidents table",
    )
    storage_type: StorageType = Field(
        default=StorageType.SQLITE,
        description="Storage backend: sqlite or memory",
    )
    max_stored_incidents: int = Field(
        default=1000,
        ge=0,
        description="Retention count; oldest incidents beyond this are evicted",
    )

    # Metadata attached to every tracked incident
    app_version: str = Field(
        default="0.0.0",
        description="Host application version",
    )
    environment: str = Field(
        default="debug",
        description="Environment: debug, staging, production",
    )

    # Engine tuning
    worker_threads: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Executor threads servicing store operations",
    )
    read_batch_size: int = Field(
        default=256,
        ge=1,
        description="Rows fetched per batch during a full scan",
    )
    busy_timeout_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="How long a connection waits on a locked database",
    )
    cached_statements: int = Field(
        default=128,
        ge=0,
        description="Prepared statement cache size per connection",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_json: bool = Field(
        default=True,
        description="Emit structured JSON log lines",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate log level."""
        level = v.upper()
        if level not in _VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level '{v}'. "
                f"Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
            )
        return level


class IncidentConfig(BaseModel):
    """
    Options for initializing the incident tracker.

    Attributes:
        app_version: Version of the host application, added to every incident
        environment: Deployment environment, added to every incident
        storage_type: Backend used to persist incidents
        max_stored_incidents: Oldest incidents beyond this count are evicted
    """

    app_version: str
    environment: str = "debug"
    storage_type: StorageType = StorageType.SQLITE
    max_stored_incidents: int = Field(default=1000, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "IncidentConfig":
        """Build tracker options from environment-backed settings."""
        settings = settings or get_settings()
        return cls(
            app_version=settings.app_version,
            environment=settings.environment,
            storage_type=settings.storage_type,
            max_stored_incidents=settings.max_stored_incidents,
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded from (in order of precedence):
    1. Environment variables (INCIDENTLOG_* prefix)
    2. .env file in the working directory
    3. Default values
    """
    settings = Settings()
    logger.debug(
        f"Settings loaded: storage={settings.storage_type.value}, "
        f"db_path={settings.db_path}, max_stored={settings.max_stored_incidents}"
    )
    return settings


def reset_settings() -> None:
    """
    Clear the cached settings, forcing reload on next get_settings() call.

    Useful for testing with different configurations.
    """
    get_settings.cache_clear()
