"""Shared utilities used across the booking lifecycle engine."""

import random
import re
from datetime import date, datetime
from typing import Optional

MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def normalize_key(value: str) -> str:
    """Collapse a loosely spelled enum value to a comparison key.

    Examples:
        >>> normalize_key("Awaiting_Staff Approval")
        'awaitingstaffapproval'
        >>> normalize_key(" needs-assignment ")
        'needsassignment'
    """
    return re.sub(r"[_\s-]", "", str(value).strip().lower())


def parse_hhmm(value: str) -> int:
    """Convert an ``HH:MM`` time of day to minutes since midnight.

    Raises:
        ValueError: If the value is not a valid 24-hour time.
    """
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time of day {value!r}; expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_minutes(minutes: int) -> str:
    """Render minutes since midnight as ``HH:MM``."""
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def day_name(on_date: date) -> str:
    """Return the English weekday name used as a weekly-schedule key."""
    return on_date.strftime("%A")


def generate_booking_code(
    prefix: str = "BK",
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Build a human-readable booking code: ``BK-YYYY-MMDDHH-NNNN``.

    The trailing four digits are random, so codes are for display only and
    may collide.
    """
    now = now or datetime.now()
    suffix = (rng or random).randint(0, 9999)
    return f"{prefix}-{now:%Y}-{now:%m%d%H}-{suffix:04d}"


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("0412 345 678")
        '0412345678'
        >>> normalize_phone("+61 (412) 345-678")
        '+61412345678'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)
