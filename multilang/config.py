"""
Configuration management for the MultiLang locale directory.

Uses Pydantic Settings for type-safe configuration with multiple sources:
- Environment variables (highest priority)
- .env file
- Defaults (lowest priority)

The `storage` key is kept as a plain string here and validated against the
closed set of backends when a reload installs it, so a bad value fails that
reload instead of the whole settings object.
"""

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Relational backend connection parameters."""

    model_config = SettingsConfigDict(
        env_prefix="MULTILANG_DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Embedded (SQLite) backend, relative to the data folder
    sqlite_file: str = Field(default="database.db", min_length=1)

    # Networked (PostgreSQL) backend
    host: str = Field(default="localhost")
    port: int = Field(default=5432, ge=1, le=65535)
    name: str = Field(default="multilang")
    user: str = Field(default="")
    password: SecretStr = Field(default=SecretStr(""))
    connect_timeout_seconds: int = Field(default=10, ge=1, le=300)
    connect_attempts: int = Field(default=3, ge=1, le=10)

    # Circuit breaker for networked store calls
    breaker_fail_max: int = Field(default=5, ge=1)
    breaker_reset_seconds: int = Field(default=60, ge=1)

    @field_validator("sqlite_file")
    @classmethod
    def validate_sqlite_file(cls, v: str) -> str:
        """Keep the database file inside the data folder."""
        if Path(v).is_absolute() or ".." in Path(v).parts:
            raise ValueError("sqlite_file must be a relative path inside the data folder")
        return v


class CacheConfig(BaseSettings):
    """Player cache and maintenance task configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MULTILANG_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    folder_name: str = Field(default="cache", min_length=1)
    max_entries: int = Field(default=1000, ge=1)
    idle_seconds: float = Field(
        default=600.0, gt=0.0, description="Spill entries idle longer than this on each tick"
    )

    # Maintenance task schedule (first run after 60s, then every 120s)
    initial_delay_seconds: float = Field(default=60.0, ge=0.0)
    refresh_interval_seconds: float = Field(default=120.0, gt=0.0)
    refresh_batch_size: int = Field(default=50, ge=0)

    @field_validator("folder_name")
    @classmethod
    def validate_folder_name(cls, v: str) -> str:
        if "/" in v or "\\" in v or v in {".", ".."}:
            raise ValueError("folder_name must be a single directory name")
        return v


class LoggingConfig(BaseSettings):
    """Structured logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    # Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum log level"
    )

    # Output format
    json_output: bool = Field(
        default=False, description="Use JSON output (True for production, False for development)"
    )

    # Console colorization (only for non-JSON output)
    colorized: bool = Field(
        default=False, description="Colorize console output (only for development)"
    )

    # Service metadata (injected into all logs)
    service_name: str = Field(default="multilang", description="Service name for log aggregation")
    service_version: str = Field(default="1.0.0", description="Service version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )


class Settings(BaseSettings):
    """Root configuration for the locale directory."""

    model_config = SettingsConfigDict(
        env_prefix="MULTILANG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    storage: str = Field(
        default="sqlite",
        description="Storage backend name (file, sqlite, postgresql)",
    )
    data_folder: Path = Field(default=Path("./data"))
    default_locale: str = Field(default="en_US", min_length=1, max_length=32)

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def cache_folder(self) -> Path:
        return self.data_folder / self.cache.folder_name

    @property
    def sqlite_path(self) -> Path:
        return self.data_folder / self.database.sqlite_file

    def validate_configuration(self) -> None:
        """
        Validate cross-field constraints and log warnings.
        Called before each reload.
        """
        storage = self.storage.strip().lower()

        if storage in {"postgresql", "postgres", "networked"}:
            if not self.database.user:
                logging.warning("Networked storage selected but no database user configured")
            if not self.database.password.get_secret_value():
                logging.warning("Networked storage selected with an empty database password")

        if self.cache.refresh_interval_seconds < 10:
            logging.warning(
                f"Very short cache refresh interval: {self.cache.refresh_interval_seconds}s"
            )

        if self.cache.idle_seconds < self.cache.refresh_interval_seconds:
            logging.warning(
                "Cache idle timeout is shorter than the refresh interval - "
                "entries will be spilled on every tick"
            )


# Global settings instance (lazy-loaded)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get global settings instance (singleton pattern).

    Returns:
        Settings: Application configuration
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.validate_configuration()
    return _settings


def reload_settings() -> Settings:
    """Drop the cached settings and read them again from the environment."""
    global _settings
    _settings = None
    return get_settings()
