"""
Centralized configuration with environment variable overrides.

Lifecycle policy switches, limits, and logging settings are configurable
here. Nothing is hardcoded in the engine or collaborator logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from salon_booking.logging_context import LOG_FORMAT, install_request_id_filter

load_dotenv()

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


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
    """Parse a boolean flag from an env var (true/false, yes/no, 1/0, on/off)."""
    raw = os.getenv(env_var, default)
    value = str(raw).strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class SalonConfig:
    """Tenant-facing display settings."""

    name: str = os.getenv("SALON_NAME", "Demo Salon")
    booking_code_prefix: str = os.getenv("BOOKING_CODE_PREFIX", "BK")


@dataclass(frozen=True)
class LifecycleConfig:
    """Policy switches for the booking lifecycle engine."""

    slot_conflict_fail_closed: bool = _safe_bool("SLOT_CONFLICT_FAIL_CLOSED", "true")
    require_rejection_reason: bool = _safe_bool("REQUIRE_REJECTION_REASON", "true")
    auto_cancel_without_alternative: bool = _safe_bool(
        "AUTO_CANCEL_WITHOUT_ALTERNATIVE", "true"
    )
    max_booking_duration_minutes: int = _safe_int("MAX_BOOKING_DURATION_MINUTES", "720")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    salon: SalonConfig = field(default_factory=SalonConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug_errors: bool = _safe_bool("DEBUG_ERRORS", "false")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    max_duration = config.lifecycle.max_booking_duration_minutes
    if not 1 <= max_duration <= 24 * 60:
        raise ValueError(
            f"MAX_BOOKING_DURATION_MINUTES must be between 1 and 1440, got {max_duration}"
        )
    prefix = config.salon.booking_code_prefix
    if not prefix or not prefix.isalnum():
        raise ValueError(
            f"BOOKING_CODE_PREFIX must be a non-empty alphanumeric string, got {prefix!r}"
        )
    if not isinstance(logging.getLevelName(config.log_level.upper()), int):
        raise ValueError(f"LOG_LEVEL is not a known logging level: {config.log_level!r}")


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
    logger.info("Configuration loaded for '%s'", config.salon.name)
    return config


# Singleton instance
settings = load_config()
