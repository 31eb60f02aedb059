"""Environment-backed application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_optional_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration.

    Tests derive variants with ``dataclasses.replace`` instead of mutating
    the cached instance.
    """

    app_name: str = "Venue Booking Service"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    database_path: Path = Path("data/venuebook.db")
    admin_token: Optional[str] = None
    max_admin_sessions: int = 5

    local_timezone: str = "Asia/Kolkata"

    api_base_url: str = "http://127.0.0.1:8000"
    request_timeout_seconds: float = 10.0
    notice_ttl_seconds: float = 5.0

    schedule_min_year: int = 1970
    schedule_max_year: int = 2100

    synthetic_random_seed: int = 42
    synthetic_bookings_per_venue: int = 10
    synthetic_window_days: int = 45


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings from the environment once per process."""
    return Settings(
        app_name=_env_str("APP_NAME", Settings.app_name),
        app_version=_env_str("APP_VERSION", Settings.app_version),
        log_level=_env_str("LOG_LEVEL", Settings.log_level),
        database_path=Path(_env_str("DATABASE_PATH", str(Settings.database_path))),
        admin_token=_env_optional_str("ADMIN_TOKEN"),
        max_admin_sessions=_env_int("MAX_ADMIN_SESSIONS", Settings.max_admin_sessions),
        local_timezone=_env_str("LOCAL_TIMEZONE", Settings.local_timezone),
        api_base_url=_env_str("API_BASE_URL", Settings.api_base_url).rstrip("/"),
        request_timeout_seconds=_env_float(
            "REQUEST_TIMEOUT_SECONDS", Settings.request_timeout_seconds
        ),
        notice_ttl_seconds=_env_float("NOTICE_TTL_SECONDS", Settings.notice_ttl_seconds),
        schedule_min_year=_env_int("SCHEDULE_MIN_YEAR", Settings.schedule_min_year),
        schedule_max_year=_env_int("SCHEDULE_MAX_YEAR", Settings.schedule_max_year),
        synthetic_random_seed=_env_int("SYNTHETIC_RANDOM_SEED", Settings.synthetic_random_seed),
    )
