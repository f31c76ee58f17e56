"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated

from fastapi import Depends, Request
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() and not os.getenv("TESTING") else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def split_csv(value: str | None) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class LLMSettings(BaseSettings):
    """LLM provider configuration.

    Validation of provider-specific requirements happens in the factory.
    """

    provider: str = Field(
        "openai",
        description="LLM provider name (currently only openai)",
    )
    model: str = Field(
        "gpt-4o-mini",
        description="Chat completion model name",
    )
    api_key: str | None = Field(
        None,
        description="API key for the provider; chat is unavailable without it",
    )
    base_url: str | None = Field(
        None,
        description="Custom API endpoint (OpenAI-compatible gateways)",
    )
    timeout_seconds: float = Field(
        45.0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    allowed_origins: str = Field(
        "http://localhost:8080",
        description="Comma-separated list of origins allowed by CORS",
    )
    max_messages: int = Field(
        50,
        description="Maximum number of conversation messages per chat request",
        ge=1,
    )
    max_message_chars: int = Field(
        4000,
        description="Maximum characters in a single chat message",
        ge=1,
    )
    max_sync_bytes: int = Field(
        1024 * 1024,
        description="Maximum serialized size of the synced user state",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class AuthSettings(BaseSettings):
    """Identity provider and admin sign-in configuration."""

    session_jwt_key: str | None = Field(
        None,
        description="Key used to verify end-user session tokens (PEM public key or shared secret)",
    )
    session_jwt_algorithms: str = Field(
        "RS256",
        description="Comma-separated list of accepted session token algorithms",
    )
    session_jwt_issuer: str | None = Field(
        None,
        description="Expected 'iss' claim of session tokens, if enforced",
    )
    session_jwt_audience: str | None = Field(
        None,
        description="Expected 'aud' claim of session tokens, if enforced",
    )
    admin_password_hash: str | None = Field(
        None,
        description="bcrypt hash of the admin password",
    )
    admin_password: str | None = Field(
        None,
        description="Plaintext admin password, used only when no hash is configured",
    )
    admin_jwt_secret: str | None = Field(
        None,
        description="Secret used to sign admin tokens issued by /api/admin/login",
    )
    admin_token_ttl_minutes: int = Field(
        60,
        description="Lifetime of admin tokens in minutes",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Admission limiter policies.

    Remote policies default to the local ones so a failover does not change
    the enforced quota.
    """

    enabled: bool = Field(
        True,
        description="Enable admission rate limiting",
    )
    chat_requests: int = Field(20, description="Chat attempts per window (per user)", ge=1)
    chat_window_seconds: float = Field(300, description="Chat window in seconds", gt=0)
    login_requests: int = Field(5, description="Admin sign-in attempts per window (per IP)", ge=1)
    login_window_seconds: float = Field(900, description="Admin sign-in window in seconds", gt=0)
    max_entries: int = Field(
        10_000,
        description="Maximum keys held by each in-memory limiter before eviction",
        ge=1,
    )
    include_headers: bool = Field(
        True,
        description="Include Retry-After and X-RateLimit-Limit headers when throttling",
    )
    remote_chat_requests: int | None = Field(None, ge=1)
    remote_chat_window_seconds: float | None = Field(None, gt=0)
    remote_login_requests: int | None = Field(None, ge=1)
    remote_login_window_seconds: float | None = Field(None, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class RemoteLimiterSettings(BaseSettings):
    """Upstash Redis REST connection; both url and token enable the remote limiter."""

    url: str | None = Field(None, description="REST endpoint URL")
    token: str | None = Field(None, description="REST access token")
    timeout_seconds: float = Field(
        2.0,
        description="Timeout for a single remote check; exceeding it triggers the local fallback",
        gt=0,
    )
    prefix: str = Field("coach-relay", description="Key prefix in the shared store")

    model_config = SettingsConfigDict(
        env_prefix="UPSTASH_REDIS_REST_",
        case_sensitive=False,
    )

    @property
    def configured(self) -> bool:
        return bool(self.url and self.token)


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    url: str = Field(
        "sqlite+aiosqlite:///./coach_relay.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(False, description="Echo SQL statements")

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate log file at this size (0 disables)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Request correlation header")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    llm: LLMSettings = Field(default_factory=LLMSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    remote_limiter: RemoteLimiterSettings = Field(default_factory=RemoteLimiterSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()


def settings_for(request: Request) -> Settings:
    """Return the settings the serving app was built with.

    ``create_app`` stores its settings on ``app.state``; apps assembled by hand
    fall back to the global instance.
    """
    return getattr(request.app.state, "settings", settings)


SettingsDep = Annotated[Settings, Depends(settings_for)]
