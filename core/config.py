"""Application configuration with environment-specific profiles.

Supports dev, test, staging, and production environments via APP_ENV.
All values can be overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    """Immutable application settings resolved from environment."""

    database_url: str
    app_env: str = "dev"
    jwt_secret_key: str = "jwt-change-me"
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    request_id_header_name: str = "X-Request-ID"

    # Rate limiting (public booking endpoint)
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"
    booking_rate_limit: str = "10/minute"

    # Scheduling policy
    scheduling_timezone: str = "UTC"
    pause_cooldown_days: int = 30
    max_pause_weeks: int = 8
    reminder_window_start_minutes: int = 10
    reminder_window_end_minutes: int = 20

    # Webhooks
    webhook_timeout_seconds: float = 10.0

    # Pagination
    default_page_size: int = 50
    max_page_size: int = 200

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"


# -- Environment profiles --

_ENV_PROFILES: dict[str, dict] = {
    "dev": {
        "log_level": "DEBUG",
        "rate_limit_enabled": False,
    },
    "test": {
        "log_level": "WARNING",
        "rate_limit_enabled": False,
    },
    "staging": {
        "log_level": "INFO",
        "rate_limit_enabled": True,
    },
    "production": {
        "log_level": "WARNING",
        "rate_limit_enabled": True,
        "booking_rate_limit": "5/minute",
    },
}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def get_database_url() -> str:
    """Resolve database URL from env var or local default.

    Resolution order:
    1. DATABASE_URL environment variable
    2. Local default for common dev setups
    """
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    return "postgresql+psycopg2://localhost:5432/coach_scheduling"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings by merging environment profile with env-var overrides."""
    app_env = os.getenv("APP_ENV", "dev")
    profile = _ENV_PROFILES.get(app_env, _ENV_PROFILES["dev"])

    return Settings(
        database_url=get_database_url(),
        app_env=app_env,
        jwt_secret_key=os.getenv("JWT_SECRET_KEY", os.getenv("SECRET_KEY", "jwt-change-me")),
        log_level=os.getenv("LOG_LEVEL", profile.get("log_level", "INFO")),
        cors_origins=_env_list("CORS_ORIGINS", ["http://localhost:5173"]),
        request_id_header_name=os.getenv("REQUEST_ID_HEADER_NAME", "X-Request-ID"),
        rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", profile.get("rate_limit_enabled", True)),
        rate_limit_storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
        booking_rate_limit=os.getenv("BOOKING_RATE_LIMIT", profile.get("booking_rate_limit", "10/minute")),
        scheduling_timezone=os.getenv("SCHEDULING_TIMEZONE", "UTC"),
        pause_cooldown_days=int(os.getenv("PAUSE_COOLDOWN_DAYS", "30")),
        max_pause_weeks=int(os.getenv("MAX_PAUSE_WEEKS", "8")),
        reminder_window_start_minutes=int(os.getenv("REMINDER_WINDOW_START_MINUTES", "10")),
        reminder_window_end_minutes=int(os.getenv("REMINDER_WINDOW_END_MINUTES", "20")),
        webhook_timeout_seconds=float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10")),
        default_page_size=int(os.getenv("DEFAULT_PAGE_SIZE", "50")),
        max_page_size=int(os.getenv("MAX_PAGE_SIZE", "200")),
    )
