"""Engine configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

The values here are only *defaults*. Every limiter and registry is built from
an explicit ``LimiterConfig``/``RegistryConfig`` owned by its caller; settings
fill in whatever the caller leaves out.
"""

from __future__ import annotations

import os
from pathlib import Path

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
    load_dotenv(_env_file, override=False)


class LimiterSettings(BaseSettings):
    """Defaults applied to limiters built without an explicit config."""

    capacity: int = Field(
        100,
        description="Maximum number of operations admitted per window",
        ge=1,
    )
    window_seconds: float = Field(
        60.0,
        description="Window duration in seconds",
        gt=0,
    )
    algorithm: str = Field(
        "sliding-window",
        description="Admission algorithm: sliding-window, fixed-window or token-bucket",
    )
    refund_on_success: bool = Field(
        False,
        description="Give the unit of capacity back when the guarded operation succeeds",
    )
    refund_on_failure: bool = Field(
        False,
        description="Give the unit of capacity back when the guarded operation raises",
    )

    model_config = SettingsConfigDict(
        env_prefix="LIMITER_",
        case_sensitive=False,
    )


class RegistrySettings(BaseSettings):
    """Defaults for keyed registries (idle eviction)."""

    sweep_interval_seconds: float = Field(
        60.0,
        description="How often idle entries are swept (0 disables the background sweep)",
        ge=0,
    )
    max_idle_seconds: float = Field(
        3600.0,
        description="Idle time after which a key's limiter is evicted",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REGISTRY_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        0,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Raises validation errors on import if an environment override is invalid.
    """

    app_env: str = APP_ENV
    limiter: LimiterSettings = Field(default_factory=LimiterSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Nested settings are created via default_factory so env loading works.
settings = Settings()
