"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates required fields and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# User-facing messages per error kind
DEFAULT_ERROR_MESSAGES: dict[str, str] = {
    "general": "Something went wrong. Please try again later.",
    "network": "Network error. Please check your connection.",
    "timeout": "The request took too long. Please try again.",
    "not_found": "The requested resource was not found.",
    "unauthorized": "You are not authorized to access this resource.",
    "session_expired": "Your session has expired. Please sign in again.",
    "validation": "Please check your input and try again.",
}

# Development builds get a longer timeout for debugging
DEVELOPMENT_TIMEOUT_SECONDS = 30.0


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Optional:
        API_BASE_URL: Base URL of the storefront REST backend
        API_TIMEOUT_SECONDS: Per-call and per-invocation timeout
        API_RETRY_ATTEMPTS: Retries after the first attempt
        API_RETRY_DELAY_SECONDS: Linear backoff step between attempts
        AUTH_REFRESH_PATH: Credential renewal endpoint
        CACHE_TTL_SECONDS: Default freshness window for cached results
        CACHE_MAX_ENTRIES: Capacity bound for the result cache
        CREDENTIALS_PATH: SQLite file for persisted tokens (in-memory if unset)
        ENVIRONMENT: development | production | test
        LOG_LEVEL: Logging level
        LOG_FILE: Optional JSON Lines log file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend
    API_BASE_URL: str = Field(
        default="http://localhost:3000/api",
        description="Base URL of the storefront REST backend",
    )
    API_TIMEOUT_SECONDS: float | None = Field(
        default=None,
        gt=0.0,
        description="Request timeout in seconds (defaults per environment)",
    )
    API_RETRY_ATTEMPTS: int = Field(
        default=3, ge=0, le=10, description="Retries after the first attempt"
    )
    API_RETRY_DELAY_SECONDS: float = Field(
        default=1.0, ge=0.0, description="Linear backoff step in seconds"
    )
    AUTH_REFRESH_PATH: str = Field(
        default="/auth/refresh-token", description="Credential renewal endpoint"
    )

    # Cache
    CACHE_TTL_SECONDS: float = Field(
        default=300.0, ge=0.0, description="Default cache freshness window"
    )
    CACHE_MAX_ENTRIES: int = Field(
        default=1024, ge=1, description="Maximum number of cached results"
    )

    # Credentials
    CREDENTIALS_PATH: Path | None = Field(
        default=None, description="SQLite file for persisted credentials"
    )

    ENVIRONMENT: Literal["development", "production", "test"] = Field(
        default="production", description="Deployment environment"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON Lines log file")

    ERROR_MESSAGES: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_ERROR_MESSAGES),
        description="User-facing messages per error kind",
    )

    @field_validator("API_BASE_URL")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an absolute http(s) URL without a trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("API_BASE_URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("AUTH_REFRESH_PATH")
    @classmethod
    def validate_refresh_path(cls, v: str) -> str:
        """Normalize the refresh path to start with a slash."""
        return v if v.startswith("/") else f"/{v}"

    @model_validator(mode="after")
    def fill_missing_messages(self) -> Settings:
        """Ensure every default message kind is present."""
        for kind, message in DEFAULT_ERROR_MESSAGES.items():
            self.ERROR_MESSAGES.setdefault(kind, message)
        return self

    @property
    def timeout_seconds(self) -> float:
        """Effective timeout, honoring the environment default."""
        if self.API_TIMEOUT_SECONDS is not None:
            return self.API_TIMEOUT_SECONDS
        if self.ENVIRONMENT == "development":
            return DEVELOPMENT_TIMEOUT_SECONDS
        return 15.0

    @property
    def base_url(self) -> str:
        """Get base URL (lowercase alias)."""
        return self.API_BASE_URL

    @property
    def retry_attempts(self) -> int:
        """Get retry attempts (lowercase alias)."""
        return self.API_RETRY_ATTEMPTS

    @property
    def retry_delay(self) -> float:
        """Get retry delay in seconds (lowercase alias)."""
        return self.API_RETRY_DELAY_SECONDS

    @property
    def cache_ttl(self) -> float:
        """Get cache TTL in seconds (lowercase alias)."""
        return self.CACHE_TTL_SECONDS

    def redacted_display(self) -> dict[str, str | int | float | None]:
        """Return settings for display. Credential paths are shown, never tokens."""
        return {
            "API_BASE_URL": self.API_BASE_URL,
            "API_TIMEOUT_SECONDS": self.timeout_seconds,
            "API_RETRY_ATTEMPTS": self.API_RETRY_ATTEMPTS,
            "API_RETRY_DELAY_SECONDS": self.API_RETRY_DELAY_SECONDS,
            "AUTH_REFRESH_PATH": self.AUTH_REFRESH_PATH,
            "CACHE_TTL_SECONDS": self.CACHE_TTL_SECONDS,
            "CACHE_MAX_ENTRIES": self.CACHE_MAX_ENTRIES,
            "CREDENTIALS_PATH": str(self.CREDENTIALS_PATH) if self.CREDENTIALS_PATH else None,
            "ENVIRONMENT": self.ENVIRONMENT,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
