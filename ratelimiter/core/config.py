"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file, with a plain .env
  in the project root as fallback (except for testing, which never reads it)

Limiter variables keep their historical, unprefixed names (WEB_SERVER_PORT,
REDIS_ADDR, DEFAULT_LIMIT_BY_IP, ...) so existing deployments keep working.
All records are frozen: configuration is immutable once loaded.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
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


def _resolve_env_file(app_env: str) -> Path | None:
    """Pick the dotenv file for an environment, if one exists on disk."""

    candidates = [ENV_FILE_MAP.get(app_env, ".env.development")]
    if app_env != "testing":
        candidates.append(".env")
    for name in candidates:
        path = PROJECT_ROOT / name
        if path.is_file():
            return path
    return None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
_env_file = _resolve_env_file(APP_ENV)
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=False)


def _build_limiter_settings() -> "LimiterSettings":
    """Build limiter settings from environment.

    Pydantic Settings (v2) populates values from environment variables;
    static type checkers still see the fields as constructor arguments.
    """

    return LimiterSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    """Build log settings from environment."""

    return LogSettings()  # type: ignore[call-arg]


class LimiterSettings(BaseSettings):
    """Rate limiter, listener and counter store configuration."""

    web_server_port: str = Field(
        "8080",
        description="Port the HTTP listener binds to",
        pattern=r"^[0-9]+$",
    )
    storage_addr: str = Field(
        "localhost:6379",
        description="Counter store address: host:port or a redis:// URL",
        validation_alias=AliasChoices("storage_addr", "redis_addr"),
    )
    storage_backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Counter store implementation (memory is per-process only)",
    )
    storage_timeout_seconds: float = Field(
        2.0,
        description="Socket timeout applied to every counter store command",
        gt=0,
    )
    default_limit_by_ip: int = Field(
        10,
        description="Default per-second quota for IP identifiers",
        ge=0,
    )
    default_limit_by_token: int = Field(
        100,
        description="Default per-second quota for tokens without an explicit entry",
        ge=0,
    )
    block_time_in_seconds: int = Field(
        300,
        description="Cooldown applied to an identifier after its first denial",
        ge=0,
    )
    token_limits: str = Field(
        "",
        description="Per-token quotas as 'token:limit' pairs separated by commas",
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        frozen=True,
        populate_by_name=True,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="json for structured logs, plain for human-readable lines",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Where log records are written",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
        frozen=True,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Raises validation errors on construction if a fixed-type value is
    malformed (e.g. DEFAULT_LIMIT_BY_IP=abc); callers treat that as a fatal
    startup error.
    """

    app_env: str = APP_ENV
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
        frozen=True,
    )


@lru_cache
def get_settings() -> Settings:
    """Cached settings accessor."""

    return Settings()
