"""
Centralized configuration with environment variable overrides.

Backend location, timeouts, booking window defaults and payment redirect
settings are configurable here. Nothing is hardcoded in client or service
logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from masdeporte.logging_context import configure_logging

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class ApiConfig:
    """Backend connection settings."""

    base_url: str = os.getenv("API_BASE_URL", "https://masdeportebackend.up.railway.app")
    timeout_sec: float = _safe_float("REQUEST_TIMEOUT", "10.0")
    notification_url: str = os.getenv(
        "PAYMENT_NOTIFICATION_URL",
        "https://masdeportebackend.up.railway.app/api/mercadopago/notifications",
    )


@dataclass(frozen=True)
class SessionConfig:
    """Where session credentials are persisted between runs."""

    storage_path: str = os.getenv("SESSION_STORAGE_PATH", ".masdeporte_session.json")


@dataclass(frozen=True)
class BookingConfig:
    """Booking window defaults and payment redirect settings."""

    default_min_advance_days: int = _safe_int("DEFAULT_MIN_ADVANCE_DAYS", "0")
    default_max_advance_days: int = _safe_int("DEFAULT_MAX_ADVANCE_DAYS", "30")
    currency: str = os.getenv("CURRENCY", "ARS")
    deep_link_scheme: str = os.getenv("DEEP_LINK_SCHEME", "masdeporte")
    payment_expiration_hours: int = _safe_int("PAYMENT_EXPIRATION_HOURS", "24")
    max_installments: int = _safe_int("MAX_INSTALLMENTS", "12")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    api: ApiConfig = field(default_factory=ApiConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "masdeporte-client")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not config.api.base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"API_BASE_URL must be an http(s) URL, got {config.api.base_url!r}"
        )
    if config.api.timeout_sec <= 0:
        raise ValueError(
            f"REQUEST_TIMEOUT must be > 0, got {config.api.timeout_sec}"
        )
    if config.booking.default_min_advance_days < 0:
        raise ValueError(
            "DEFAULT_MIN_ADVANCE_DAYS must be >= 0, "
            f"got {config.booking.default_min_advance_days}"
        )
    if config.booking.default_max_advance_days < config.booking.default_min_advance_days:
        raise ValueError(
            "DEFAULT_MAX_ADVANCE_DAYS must be >= DEFAULT_MIN_ADVANCE_DAYS, "
            f"got {config.booking.default_max_advance_days}"
        )
    if config.booking.payment_expiration_hours < 1:
        raise ValueError(
            "PAYMENT_EXPIRATION_HOURS must be >= 1, "
            f"got {config.booking.payment_expiration_hours}"
        )
    if config.booking.max_installments < 1:
        raise ValueError(
            f"MAX_INSTALLMENTS must be >= 1, got {config.booking.max_installments}"
        )
    if not config.booking.deep_link_scheme:
        raise ValueError("DEEP_LINK_SCHEME must not be empty")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    configure_logging(config.log_level)
    logger.info("Configuration loaded for '%s' -> %s", config.app_name, config.api.base_url)
    return config


# Singleton instance
settings = load_config()
