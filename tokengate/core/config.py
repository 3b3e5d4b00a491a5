"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

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

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


BackendName = Literal["memory", "redis"]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    trust_forwarded_headers: bool = Field(
        True,
        description="Derive client identity from X-Forwarded-For / X-Real-IP headers",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Fixed-window rate limiting (``rateLimit.*``)."""

    enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on guarded endpoints",
    )
    max: int = Field(
        100,
        description="Maximum number of requests admitted per window (per client and scope)",
        ge=1,
    )
    window_ms: int = Field(
        600_000,
        description="Window length in milliseconds",
        ge=1,
    )
    backend: BackendName = Field(
        "memory",
        description="Storage for rate limit records: in-process memory or Redis",
    )
    fail_open: bool = Field(
        True,
        description="Admit requests when the rate limit store is unavailable",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    sweep_enabled: bool = Field(
        True,
        description="Run the background sweep that evicts expired in-memory records",
    )
    shards: int = Field(
        64,
        description="Number of independently locked shards for the in-memory table",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @property
    def window_seconds(self) -> float:
        return self.window_ms / 1000


class CollisionGuardSettings(BaseSettings):
    """Copycat deterrence for token names and symbols (``collisionGuard.*``)."""

    deterrence_window_ms: int = Field(
        600_000,
        description="How long a fresh, non-graduated registration locks its identity",
        ge=0,
    )
    min_name_length: int = Field(3, ge=1)
    max_name_length: int = Field(32, ge=1)
    max_symbol_length: int = Field(10, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="COLLISION_GUARD_",
        case_sensitive=False,
    )


class VerificationQueueSettings(BaseSettings):
    """Deduplicated verification queue (``verificationQueue.*``)."""

    depth_warning_threshold: int = Field(
        1000,
        description="Log a warning when the pending set grows beyond this size",
        ge=0,
    )
    backend: BackendName = Field(
        "memory",
        description="Storage for the pending set: in-process memory or a Redis sorted set",
    )
    key: str = Field(
        "dex:verify:queue",
        description="Redis key of the pending sorted set",
    )

    model_config = SettingsConfigDict(
        env_prefix="VERIFICATION_QUEUE_",
        case_sensitive=False,
    )


class RegistrySettings(BaseSettings):
    """Identity registry backend."""

    backend: Literal["memory", "sqlite"] = Field(
        "memory",
        description="Registry implementation: in-process memory or SQLite",
    )
    sqlite_path: str = Field(
        "tokengate.db",
        description="SQLite database file (relative paths resolve against the project root)",
    )

    model_config = SettingsConfigDict(
        env_prefix="REGISTRY_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Shared Redis connection."""

    url: str | None = Field(
        None,
        description="Redis connection URL (required when any backend is 'redis')",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Socket connect/read timeout; every store call is a single round-trip",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation id header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    collision_guard: CollisionGuardSettings = Field(default_factory=CollisionGuardSettings)
    verification_queue: VerificationQueueSettings = Field(default_factory=VerificationQueueSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
