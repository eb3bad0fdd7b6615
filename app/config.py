# app/config.py

"""
Application configuration with environment variable overrides.

Values are read once at import time (after loading a ``.env`` file if one
exists) and validated by ``load_config``.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid integer for {env_var}: {raw!r}") from None


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = os.getenv("DATABASE_URL", "sqlite:///./booking.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass(frozen=True)
class AuthConfig:
    """Token signing and login throttling."""

    secret_key: str = os.getenv("SECRET_KEY", "change-me-later")
    algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = _safe_int("ACCESS_TOKEN_EXPIRE_MINUTES", "30")
    rate_limit: int = _safe_int("AUTH_RATE_LIMIT", "10")
    rate_window_seconds: int = _safe_int("AUTH_RATE_WINDOW_SECONDS", "60")


@dataclass(frozen=True)
class BookingConfig:
    """Booking rules shared by the resolver, the lifecycle and the sweep."""

    timezone: str = os.getenv("APP_TIMEZONE", "UTC")
    pending_timeout_minutes: int = _safe_int("PENDING_BOOKING_TIMEOUT_MINUTES", "60")
    max_advance_days: int = _safe_int("MAX_ADVANCE_BOOKING_DAYS", "184")
    page_size: int = _safe_int("DEFAULT_PAGE_SIZE", "10")


@dataclass(frozen=True)
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.auth.access_token_expire_minutes < 1:
        raise ValueError(
            "ACCESS_TOKEN_EXPIRE_MINUTES must be >= 1, "
            f"got {config.auth.access_token_expire_minutes}"
        )
    if config.auth.rate_limit < 1:
        raise ValueError(f"AUTH_RATE_LIMIT must be >= 1, got {config.auth.rate_limit}")
    if config.auth.rate_window_seconds < 1:
        raise ValueError(
            f"AUTH_RATE_WINDOW_SECONDS must be >= 1, got {config.auth.rate_window_seconds}"
        )
    if config.booking.pending_timeout_minutes < 1:
        raise ValueError(
            "PENDING_BOOKING_TIMEOUT_MINUTES must be >= 1, "
            f"got {config.booking.pending_timeout_minutes}"
        )
    if config.booking.max_advance_days < 1:
        raise ValueError(
            f"MAX_ADVANCE_BOOKING_DAYS must be >= 1, got {config.booking.max_advance_days}"
        )
    if config.booking.page_size < 1:
        raise ValueError(f"DEFAULT_PAGE_SIZE must be >= 1, got {config.booking.page_size}")

    try:
        ZoneInfo(config.booking.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"APP_TIMEZONE is not a known timezone: {config.booking.timezone!r}") from None


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if config.auth.secret_key == "change-me-later":
        logger.warning("SECRET_KEY not set, using the development default")
    logger.info("Configuration loaded (timezone=%s)", config.booking.timezone)
    return config


settings = load_config()
