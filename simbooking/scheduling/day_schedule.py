"""
Day schedule builder.

Partitions one local business day of one machine into fixed-width slots and
tags each slot ``passed``, ``booked`` or ``available``. Schedules are derived
on every call and never stored.
"""

import logging
from datetime import datetime
from typing import Optional

from simbooking.config import AppConfig, settings
from simbooking.errors import InvalidInput, ResourceNotFound
from simbooking.scheduling import timeutils
from simbooking.scheduling.availability import overlaps
from simbooking.schemas.booking_schema import Booking
from simbooking.schemas.schedule_schema import DaySchedule, SlotBooking, SlotStatus, TimeSlot
from simbooking.store.base import SchedulingStore
from simbooking.utils import mask_phone

logger = logging.getLogger(__name__)


def slot_boundaries(opening_hour: int, closing_hour: int, slot_minutes: int) -> list[tuple[int, int]]:
    """(start, end) minute offsets from local midnight covering business hours once."""
    if slot_minutes <= 0:
        raise InvalidInput(f"slot_minutes must be positive, got {slot_minutes}")
    open_minute = opening_hour * 60
    close_minute = closing_hour * 60
    return [
        (start, min(start + slot_minutes, close_minute))
        for start in range(open_minute, close_minute, slot_minutes)
    ]


def _slot_booking(booking: Booking, viewer_customer_id: Optional[str]) -> SlotBooking:
    is_owner = viewer_customer_id is not None and booking.customer_id == viewer_customer_id
    return SlotBooking(
        booking_id=booking.id,
        customer_name=booking.customer_name,
        customer_phone=booking.customer_phone if is_owner else mask_phone(booking.customer_phone),
        is_owner=is_owner,
        is_cross_midnight=booking.is_cross_midnight,
    )


class DayScheduleBuilder:
    """Builds per-machine day schedules from the bookings in the store."""

    def __init__(self, store: SchedulingStore, config: Optional[AppConfig] = None) -> None:
        self._store = store
        self._config = config or settings

    async def get_day_schedule(
        self,
        machine_id: str,
        date: str,
        timezone: Optional[str] = None,
        reference_time: Optional[datetime] = None,
        viewer_customer_id: Optional[str] = None,
    ) -> DaySchedule:
        """
        Build the slot grid for ``date`` (local, ``YYYY-MM-DD``) on one machine.

        A slot starting strictly before ``reference_time`` is ``passed`` even
        when booked. Otherwise it is ``booked`` when any non-cancelled booking,
        clipped to this local day, overlaps it. Phones on booked slots are
        masked unless ``viewer_customer_id`` owns the booking.
        """
        tz = timezone or self._config.business.timezone
        timeutils.parse_local_date(date)
        timeutils.get_zone(tz)
        now = timeutils.parse_instant(reference_time) if reference_time is not None else None

        machine = await self._store.get_machine(machine_id)
        if machine is None:
            raise ResourceNotFound("Machine", machine_id)

        day_start, day_end = timeutils.local_day_bounds(date, tz)
        bookings = [
            b for b in await self._store.list_bookings_in_window(machine_id, day_start, day_end)
            if b.blocks_slot
        ]

        business = self._config.business
        slots: list[TimeSlot] = []
        for start_minute, end_minute in slot_boundaries(
            business.opening_hour, business.closing_hour, self._config.scheduling.slot_minutes
        ):
            slot_start = timeutils.local_minutes_to_instant(date, start_minute, tz)
            slot_end = timeutils.local_minutes_to_instant(date, end_minute, tz)
            start_time = timeutils.minutes_to_time_str(start_minute)
            slot = TimeSlot(
                id=f"{machine_id}:{date}T{start_time}",
                start_time=start_time,
                end_time=timeutils.minutes_to_time_str(end_minute),
                start_at=slot_start,
                end_at=slot_end,
            )

            if now is not None and slot_start < now:
                slot.status = SlotStatus.PASSED
            else:
                covering = self._covering_booking(bookings, slot_start, slot_end, day_start, day_end)
                if covering is not None:
                    slot.status = SlotStatus.BOOKED
                    slot.booking_id = covering.id
                    slot.is_cross_midnight = covering.is_cross_midnight
                    slot.booking = _slot_booking(covering, viewer_customer_id)
            slots.append(slot)

        schedule = DaySchedule(
            date=date,
            machine_id=machine_id,
            timezone=tz,
            time_slots=slots,
            total_slots=len(slots),
            available_slots=sum(1 for s in slots if s.status == SlotStatus.AVAILABLE),
            booked_slots=sum(1 for s in slots if s.status == SlotStatus.BOOKED),
            passed_slots=sum(1 for s in slots if s.status == SlotStatus.PASSED),
        )
        logger.debug(
            "Schedule %s %s: %d available, %d booked, %d passed",
            machine_id, date, schedule.available_slots, schedule.booked_slots, schedule.passed_slots,
        )
        return schedule

    @staticmethod
    def _covering_booking(
        bookings: list[Booking],
        slot_start: datetime,
        slot_end: datetime,
        day_start: datetime,
        day_end: datetime,
    ) -> Optional[Booking]:
        for booking in bookings:
            # Only the part of the booking that falls on this local day counts.
            start = max(booking.start_at, day_start)
            end = min(booking.end_at, day_end)
            if start < end and overlaps(slot_start, slot_end, start, end):
                return booking
        return None

    def get_available_dates(self, today: str, days_ahead: Optional[int] = None) -> list[str]:
        """Consecutive bookable dates starting with ``today``."""
        days = days_ahead if days_ahead is not None else self._config.scheduling.booking_days_ahead
        if days < 0:
            raise InvalidInput(f"days_ahead must not be negative, got {days}")
        timeutils.parse_local_date(today)
        return [timeutils.add_days(today, offset) for offset in range(days)]
