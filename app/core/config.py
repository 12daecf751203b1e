"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env and data resolution don't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

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


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_keys: str | None = Field(
        None,
        description=(
            "Comma-separated API keys. Each entry is 'key' or 'key:account_id'; "
            "a valid key identifies the calling account"
        ),
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated API keys (same format) granting admin access",
    )
    trust_proxy_headers: bool = Field(
        False,
        description="Use the first X-Forwarded-For hop as the caller network address",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable store-backed rate limiting on routes",
    )
    rate_limit_max: int = Field(
        1000,
        description="Default maximum number of requests per window",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60 * 60 * 24,
        description="Default rate limit window size in seconds",
        ge=1,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers",
    )
    landing_page_read_max: int = Field(
        100,
        description="Landing page reads allowed per window (per network address)",
        ge=1,
    )
    landing_page_read_window_seconds: int = Field(
        15 * 60,
        description="Landing page read window in seconds",
        ge=1,
    )
    landing_page_write_max: int = Field(
        100,
        description="Landing page admin writes allowed per window (per account)",
        ge=1,
    )
    landing_page_write_window_seconds: int = Field(
        60 * 60,
        description="Landing page admin write window in seconds",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Shared key-value store (Redis) configuration."""

    backend: str = Field(
        "redis",
        description="Store backend: 'redis' or 'memory' (single process only)",
    )
    conn: str = Field(
        "redis:6380",
        description="Redis address as host:port",
    )
    db: int = Field(0, description="Redis logical database index", ge=0)
    password: str | None = Field(None, description="Redis AUTH password")
    socket_timeout_seconds: float = Field(
        5.0,
        description="Socket connect/read timeout for the Redis client",
        gt=0,
    )
    operation_timeout_seconds: float = Field(
        1.0,
        description="Upper bound for a single store call before it counts as a failure",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )

    @property
    def host(self) -> str:
        return self.conn.split(":", 1)[0]

    @property
    def port(self) -> int:
        _, _, port = self.conn.partition(":")
        return int(port) if port else 6379


class CacheSettings(BaseSettings):
    """Landing page content cache configuration."""

    key_prefix: str = Field(
        "landing-page-content",
        description="Cache key prefix for the landing page document",
    )
    key_version: str = Field(
        "v1",
        description="Format version suffix; bump to orphan entries written in an old format",
    )
    ttl_seconds: int = Field(
        3600,
        description="Time-to-live for the cached document",
        ge=1,
    )
    data_dir: str = Field(
        str(PROJECT_ROOT / "data"),
        description="Directory holding the authoritative landing page JSON",
    )
    content_filename: str = Field(
        "landing-page-content.json",
        description="File name of the authoritative landing page JSON",
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )

    @property
    def key(self) -> str:
        return f"{self.key_prefix}:{self.key_version}"

    @property
    def content_path(self) -> Path:
        return Path(self.data_dir) / self.content_filename


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate file after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

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
    app: AppSettings = Field(default_factory=AppSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
