"""
Centralized configuration with environment variable overrides.

Venue timezone, opening hours, slot granularity and queue estimates are
configurable here. Scheduling components receive an AppConfig explicitly
and fall back to the module-level ``settings`` only as a default.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from simbooking.logging_context import LOG_FORMAT, install_request_id_filter
from simbooking.utils import is_valid_timezone

load_dotenv()

logger = logging.getLogger(__name__)

ALLOWED_SLOT_MINUTES = (15, 30, 60)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag ("1/true/yes/on") from an env var."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class BusinessConfig:
    """Venue settings loaded from environment or defaults."""

    name: str = os.getenv("BUSINESS_NAME", "Gran Turismo Narathiwat")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "Asia/Bangkok")
    open_24_hours: bool = _safe_bool("BUSINESS_OPEN_24_HOURS", "true")
    open_hour: int = _safe_int("BUSINESS_OPEN_HOUR", "10")
    close_hour: int = _safe_int("BUSINESS_CLOSE_HOUR", "24")

    @property
    def opening_hour(self) -> int:
        return 0 if self.open_24_hours else self.open_hour

    @property
    def closing_hour(self) -> int:
        return 24 if self.open_24_hours else self.close_hour


@dataclass(frozen=True)
class SchedulingConfig:
    """Slot grid, booking horizon and queue estimate settings."""

    slot_minutes: int = _safe_int("SLOT_DURATION_MINUTES", "30")
    booking_days_ahead: int = _safe_int("BOOKING_DAYS_AHEAD", "7")
    average_session_minutes: int = _safe_int("AVERAGE_SESSION_MINUTES", "30")
    default_session_minutes: int = _safe_int("DEFAULT_SESSION_MINUTES", "60")
    max_booking_minutes: int = _safe_int("MAX_BOOKING_MINUTES", "720")


@dataclass(frozen=True)
class ValidationConfig:
    """Bounds applied to customer-supplied fields before touching the store."""

    min_phone_digits: int = _safe_int("MIN_PHONE_DIGITS", "9")
    max_phone_digits: int = _safe_int("MAX_PHONE_DIGITS", "10")
    min_name_length: int = _safe_int("MIN_NAME_LENGTH", "2")
    max_name_length: int = _safe_int("MAX_NAME_LENGTH", "100")
    max_party_size: int = _safe_int("MAX_PARTY_SIZE", "10")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "simbooking")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    business = config.business
    if not 0 <= business.open_hour <= 23:
        raise ValueError(f"BUSINESS_OPEN_HOUR must be between 0 and 23, got {business.open_hour}")
    if not 1 <= business.close_hour <= 24:
        raise ValueError(
            f"BUSINESS_CLOSE_HOUR must be between 1 and 24, got {business.close_hour}"
        )
    if business.opening_hour >= business.closing_hour:
        raise ValueError(
            "BUSINESS_CLOSE_HOUR must be after BUSINESS_OPEN_HOUR, "
            f"got {business.open_hour}-{business.close_hour}"
        )

    if not is_valid_timezone(business.timezone):
        raise ValueError(f"BUSINESS_TIMEZONE is not a known IANA zone: {business.timezone!r}")

    scheduling = config.scheduling
    if scheduling.slot_minutes not in ALLOWED_SLOT_MINUTES:
        raise ValueError(
            f"SLOT_DURATION_MINUTES must be one of {ALLOWED_SLOT_MINUTES}, "
            f"got {scheduling.slot_minutes}"
        )
    for name, value in [
        ("BOOKING_DAYS_AHEAD", scheduling.booking_days_ahead),
        ("AVERAGE_SESSION_MINUTES", scheduling.average_session_minutes),
        ("DEFAULT_SESSION_MINUTES", scheduling.default_session_minutes),
        ("MAX_BOOKING_MINUTES", scheduling.max_booking_minutes),
    ]:
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")

    validation = config.validation
    if validation.min_phone_digits > validation.max_phone_digits:
        raise ValueError(
            "MIN_PHONE_DIGITS must not exceed MAX_PHONE_DIGITS, "
            f"got {validation.min_phone_digits} > {validation.max_phone_digits}"
        )
    if validation.min_name_length > validation.max_name_length:
        raise ValueError(
            "MIN_NAME_LENGTH must not exceed MAX_NAME_LENGTH, "
            f"got {validation.min_name_length} > {validation.max_name_length}"
        )
    if validation.max_party_size < 1:
        raise ValueError(f"MAX_PARTY_SIZE must be >= 1, got {validation.max_party_size}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_request_id_filter()
    logger.info(
        "Configuration loaded for '%s' (%s)", config.business.name, config.business.timezone
    )
    return config


# Singleton instance
settings = load_config()
