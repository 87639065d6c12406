"""
Configuration Module for the Allscreenshots client

Settings are loaded from environment variables (and an optional ``.env``
file) with validation via Pydantic v2 BaseSettings. Explicit constructor
arguments on the client always take precedence over anything read here.

Usage:
    from allscreenshots.config import get_settings
    print(get_settings().base_url)
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Any, Optional

from pydantic import (
    Field,
    SecretStr,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .retry import RetryConfig


DEFAULT_BASE_URL = "https://api.allscreenshots.com"
DEFAULT_TIMEOUT_MS = 60000
API_KEY_ENV_VAR = "ALLSCREENSHOTS_API_KEY"


# =============================================================================
# ENUMS
# =============================================================================

class LogLevel(str, Enum):
    """Logging level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# BASE CONFIGURATION
# =============================================================================

class BaseConfig(BaseSettings):
    """Base configuration with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


# =============================================================================
# RETRY CONFIGURATION
# =============================================================================

class RetrySettings(BaseConfig):
    """Automatic retry configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ALLSCREENSHOTS_RETRY_",
        env_file=".env",
        extra="ignore",
    )

    max_retries: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Retries after the initial attempt",
    )

    initial_delay_ms: float = Field(
        default=1000.0,
        ge=0,
        description="Delay before the first retry in milliseconds",
    )

    max_delay_ms: float = Field(
        default=30000.0,
        ge=0,
        description="Ceiling for the computed backoff delay in milliseconds",
    )

    backoff_multiplier: float = Field(
        default=2.0,
        gt=1.0,
        le=10.0,
        description="Growth factor between consecutive retries",
    )

    jitter_factor: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Fraction of each delay randomized",
    )

    @model_validator(mode="after")
    def validate_delays(self) -> "RetrySettings":
        """Ensure initial_delay_ms does not exceed max_delay_ms."""
        if self.initial_delay_ms > self.max_delay_ms:
            raise ValueError(
                f"initial_delay_ms ({self.initial_delay_ms}) cannot exceed "
                f"max_delay_ms ({self.max_delay_ms})"
            )
        return self

    def to_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.max_retries,
            initial_delay_ms=self.initial_delay_ms,
            max_delay_ms=self.max_delay_ms,
            backoff_multiplier=self.backoff_multiplier,
            jitter_factor=self.jitter_factor,
        )


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

class LoggingSettings(BaseConfig):
    """Logging configuration for the command line."""

    model_config = SettingsConfigDict(
        env_prefix="ALLSCREENSHOTS_LOG_",
        env_file=".env",
        extra="ignore",
    )

    level: LogLevel = Field(
        default=LogLevel.WARNING,
        description="Logging level",
    )

    format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        description="Log message format",
    )

    date_format: str = Field(
        default="%H:%M:%S",
        description="Log date format",
    )


# =============================================================================
# CLIENT CONFIGURATION
# =============================================================================

class ClientSettings(BaseConfig):
    """
    Client settings aggregating all configuration sections.

    Usage:
        settings = ClientSettings()
        # or
        settings = get_settings()
    """

    model_config = SettingsConfigDict(
        env_prefix="ALLSCREENSHOTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: Optional[SecretStr] = Field(
        default=None,
        description="API key sent in the X-API-Key header",
    )

    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="API base URL",
    )

    timeout_ms: float = Field(
        default=DEFAULT_TIMEOUT_MS,
        gt=0,
        description="Per-attempt request timeout in milliseconds",
    )

    auto_retry: bool = Field(
        default=True,
        description="Retry transient failures automatically",
    )

    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slashes(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v

    @field_validator("api_key", mode="before")
    @classmethod
    def empty_key_is_missing(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def mask_secrets(self) -> dict[str, Any]:
        """
        Return settings dict with the API key masked.
        Safe for logging and debugging.
        """
        data = self.model_dump()
        if self.api_key is not None:
            secret = self.api_key.get_secret_value()
            data["api_key"] = f"{secret[:4]}...{secret[-4:]}" if len(secret) > 8 else "***"
        return data


# =============================================================================
# SINGLETON & CACHING
# =============================================================================

@lru_cache()
def get_settings() -> ClientSettings:
    """
    Get cached settings instance.

    Returns:
        ClientSettings: Cached settings singleton
    """
    return ClientSettings()


def reload_settings() -> ClientSettings:
    """Clear settings cache and reload from environment."""
    get_settings.cache_clear()
    return get_settings()


def load_settings() -> ClientSettings:
    """
    Read settings from the environment and ``.env``.

    Raises:
        ConfigurationError: If any value fails validation
    """
    try:
        return ClientSettings()
    except ValidationError as e:
        first = e.errors()[0]
        setting = ".".join(str(part) for part in first["loc"]) or None
        raise ConfigurationError(
            f"Settings validation failed: {first['msg']} ({setting})",
            setting=setting,
        ) from e


__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_TIMEOUT_MS",
    "API_KEY_ENV_VAR",
    "LogLevel",
    "RetrySettings",
    "LoggingSettings",
    "ClientSettings",
    "get_settings",
    "reload_settings",
    "load_settings",
]
