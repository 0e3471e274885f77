"""Shared utilities used across the scheduling core."""

import re
from datetime import datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from simbooking.errors import InvalidTimeFormat

VISIBLE_PHONE_DIGITS = 4


@lru_cache(maxsize=64)
def get_zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA zone id, raising InvalidTimeFormat on unknown names."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        raise InvalidTimeFormat(f"Unknown timezone: {tz_name!r}") from None


def is_valid_timezone(tz_name: str) -> bool:
    try:
        get_zone(tz_name)
    except InvalidTimeFormat:
        return False
    return True


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("081-234-5678")
        '0812345678'
        >>> normalize_phone("+66 (81) 234-5678")
        '+66812345678'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def mask_phone(value: str, visible: int = VISIBLE_PHONE_DIGITS) -> str:
    """Hide all but the last few digits of a phone number.

    Examples:
        >>> mask_phone("081-234-5678")
        '******5678'
        >>> mask_phone("")
        ''
    """
    digits = normalize_phone(value).lstrip("+")
    if len(digits) <= visible:
        return "*" * len(digits)
    return "*" * (len(digits) - visible) + digits[-visible:]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
