"""
Conversion between local wall-clock time in the venue's timezone and
absolute UTC instants.

All "local" values cross the boundary as ``YYYY-MM-DD`` / ``HH:MM`` strings
plus an IANA zone id; all instants are aware datetimes in UTC.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from simbooking.errors import InvalidTimeFormat
from simbooking.utils import get_zone

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


@dataclass(frozen=True)
class EndInstant:
    """End of an interval plus whether it lands on a later local date."""
    end_at: datetime
    is_cross_midnight: bool


def parse_local_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string."""
    try:
        parsed = datetime.strptime(value.strip(), DATE_FORMAT).date()
    except (ValueError, AttributeError):
        raise InvalidTimeFormat(f"Invalid date (expected YYYY-MM-DD): {value!r}") from None
    return parsed


def parse_local_time(value: str) -> time:
    """Parse a strict 24-hour ``HH:MM`` string."""
    try:
        parsed = datetime.strptime(value.strip(), TIME_FORMAT).time()
    except (ValueError, AttributeError):
        raise InvalidTimeFormat(f"Invalid time (expected HH:MM): {value!r}") from None
    return parsed


def parse_instant(value: "str | datetime") -> datetime:
    """Parse an ISO-8601 instant. Naive values are taken to be UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            raise InvalidTimeFormat(f"Invalid ISO-8601 instant: {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_absolute_instant(local_date: str, local_time: str, business_timezone: str) -> datetime:
    """Convert a local wall-clock date + time in the venue's zone to a UTC instant."""
    zone = get_zone(business_timezone)
    local = datetime.combine(parse_local_date(local_date), parse_local_time(local_time))
    return local.replace(tzinfo=zone).astimezone(timezone.utc)


def to_local(instant: datetime, business_timezone: str) -> datetime:
    return parse_instant(instant).astimezone(get_zone(business_timezone))


def format_local_date(instant: datetime, business_timezone: str) -> str:
    return to_local(instant, business_timezone).strftime(DATE_FORMAT)


def format_local_time(instant: datetime, business_timezone: str) -> str:
    return to_local(instant, business_timezone).strftime(TIME_FORMAT)


def compute_end_instant(
    start: datetime, duration_minutes: int, business_timezone: str
) -> EndInstant:
    """Add a duration to a start instant and flag a local-date rollover."""
    if duration_minutes <= 0:
        raise InvalidTimeFormat(f"Duration must be positive, got {duration_minutes}")
    start = parse_instant(start)
    end = start + timedelta(minutes=duration_minutes)
    crosses = (
        format_local_date(end, business_timezone) != format_local_date(start, business_timezone)
    )
    return EndInstant(end_at=end, is_cross_midnight=crosses)


def local_day_bounds(local_date: str, business_timezone: str) -> tuple[datetime, datetime]:
    """UTC instants of local midnight at the start and end of a day: [start, end)."""
    zone = get_zone(business_timezone)
    day = parse_local_date(local_date)
    start = datetime.combine(day, time.min).replace(tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min).replace(tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_minutes_to_instant(local_date: str, minutes: int, business_timezone: str) -> datetime:
    """Instant at ``minutes`` past local midnight; 1440 is the next midnight."""
    zone = get_zone(business_timezone)
    midnight = datetime.combine(parse_local_date(local_date), time.min)
    return (midnight + timedelta(minutes=minutes)).replace(tzinfo=zone).astimezone(timezone.utc)


def minutes_to_time_str(minutes: int) -> str:
    """540 -> "09:00". The end of the day renders as "24:00"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def business_today(business_timezone: str, now: Optional[datetime] = None) -> str:
    """Today's date string in the venue's zone."""
    now = parse_instant(now) if now is not None else datetime.now(timezone.utc)
    return format_local_date(now, business_timezone)


def add_days(local_date: str, days: int) -> str:
    return (parse_local_date(local_date) + timedelta(days=days)).strftime(DATE_FORMAT)
