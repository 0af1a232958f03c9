"""
Configuration Management for Meu Bolso

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Where the data lives, how keys are namespaced and what a fresh install
defaults to are all visible in one place.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Persistent key/value store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MEUBOLSO_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_file: Path = Field(
        default=Path("~/.meubolso/data.json"),
        description="JSON document backing the key/value store"
    )
    key_prefix: str = Field(
        default="meubolso_",
        min_length=1,
        description="Namespace prefix for every collection key"
    )

    # Retry policy for writes to disk
    write_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a failed file write is attempted"
    )
    write_retry_wait_seconds: float = Field(
        default=0.1,
        ge=0.0,
        le=5.0,
        description="Base wait between write attempts (exponential backoff)"
    )

    @field_validator('data_file')
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        """Allow ~ in the configured path."""
        return v.expanduser()


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="MEUBOLSO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Defaults applied when the user sets up their PIN
    default_currency: str = Field(
        default="BRL",
        min_length=3,
        max_length=3,
        description="Currency of a freshly created profile"
    )
    default_language: str = Field(
        default="pt-BR",
        description="Language of a freshly created profile"
    )

    # Backup format
    backup_format_version: str = Field(
        default="1.0.0",
        pattern=r"^\d+\.\d+\.\d+$",
        description="Version tag written on exported backups"
    )
    backup_filename_prefix: str = Field(
        default="meubolso-backup",
        description="Prefix of generated backup file names"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum level for the structured log"
    )
    log_json: bool = Field(
        default=True,
        description="Render log lines as JSON (False: console renderer)"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()
