"""
Slot availability engine.

Decides whether a candidate interval ``[start, start + duration)`` on one
machine can still be booked. Intervals are half-open, so a booking ending at
15:00 never collides with one starting at 15:00.
"""

import logging
from datetime import datetime
from typing import Optional

from simbooking.config import AppConfig, settings
from simbooking.errors import InvalidInput, ResourceNotFound
from simbooking.scheduling import timeutils
from simbooking.schemas.booking_schema import Booking
from simbooking.store.base import SchedulingStore

logger = logging.getLogger(__name__)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval intersection test. Symmetric in its two intervals."""
    return a_start < b_end and b_start < a_end


class CandidateInterval:
    """A validated request resolved to absolute instants."""

    __slots__ = ("machine_id", "date", "start_time", "duration_minutes", "timezone", "start_at", "end_at")

    def __init__(
        self,
        machine_id: str,
        date: str,
        start_time: str,
        duration_minutes: int,
        business_timezone: str,
        max_minutes: int,
    ) -> None:
        if not machine_id or not str(machine_id).strip():
            raise InvalidInput("machine_id is required")
        if not isinstance(duration_minutes, int) or isinstance(duration_minutes, bool):
            raise InvalidInput(f"duration_minutes must be an integer, got {duration_minutes!r}")
        if duration_minutes <= 0:
            raise InvalidInput(f"duration_minutes must be positive, got {duration_minutes}")
        if duration_minutes > max_minutes:
            raise InvalidInput(f"duration_minutes must be at most {max_minutes}, got {duration_minutes}")

        self.machine_id = machine_id
        self.date = date
        self.start_time = start_time
        self.duration_minutes = duration_minutes
        self.timezone = business_timezone
        self.start_at = timeutils.to_absolute_instant(date, start_time, business_timezone)
        self.end_at = timeutils.compute_end_instant(
            self.start_at, duration_minutes, business_timezone
        ).end_at


class SlotAvailabilityEngine:
    """Read-only availability decisions backed by the scheduling store."""

    def __init__(self, store: SchedulingStore, config: Optional[AppConfig] = None) -> None:
        self._store = store
        self._config = config or settings

    def resolve(
        self,
        machine_id: str,
        date: str,
        start_time: str,
        duration_minutes: int,
        timezone: Optional[str] = None,
    ) -> CandidateInterval:
        """Validate a request and convert it to absolute instants. No store access."""
        return CandidateInterval(
            machine_id,
            date,
            start_time,
            duration_minutes,
            timezone or self._config.business.timezone,
            self._config.scheduling.max_booking_minutes,
        )

    async def find_conflicts(
        self,
        machine_id: str,
        date: str,
        start_time: str,
        duration_minutes: int,
        timezone: Optional[str] = None,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        """Return the non-cancelled bookings that overlap the candidate interval."""
        candidate = self.resolve(machine_id, date, start_time, duration_minutes, timezone)
        return await self._conflicts_for(candidate, exclude_booking_id)

    async def is_slot_available(
        self,
        machine_id: str,
        date: str,
        start_time: str,
        duration_minutes: int,
        timezone: Optional[str] = None,
        reference_time: Optional[datetime] = None,
    ) -> bool:
        """
        Check whether a machine is free for the requested local interval.

        Returns False when the interval overlaps a non-cancelled booking or
        starts strictly before ``reference_time``. Raises InvalidInput for a
        malformed request and ResourceNotFound for an unknown machine; store
        failures propagate unchanged.
        """
        candidate = self.resolve(machine_id, date, start_time, duration_minutes, timezone)
        conflicts = await self._conflicts_for(candidate)

        if reference_time is not None and candidate.start_at < timeutils.parse_instant(reference_time):
            logger.debug(
                "Slot %s %s on %s has already passed", date, start_time, machine_id
            )
            return False

        if conflicts:
            logger.debug(
                "Slot %s %s (%d min) on %s conflicts with %s",
                date, start_time, duration_minutes, machine_id,
                [b.id for b in conflicts],
            )
            return False
        return True

    async def _conflicts_for(
        self, candidate: CandidateInterval, exclude_booking_id: Optional[str] = None
    ) -> list[Booking]:
        machine = await self._store.get_machine(candidate.machine_id)
        if machine is None:
            raise ResourceNotFound("Machine", candidate.machine_id)

        day_start, day_end = timeutils.local_day_bounds(candidate.date, candidate.timezone)
        window_start = min(day_start, candidate.start_at)
        window_end = max(day_end, candidate.end_at)
        bookings = await self._store.list_bookings_in_window(
            candidate.machine_id, window_start, window_end
        )
        return [
            booking
            for booking in bookings
            if booking.blocks_slot
            and booking.id != exclude_booking_id
            and overlaps(candidate.start_at, candidate.end_at, booking.start_at, booking.end_at)
        ]
