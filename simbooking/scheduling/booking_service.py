"""
Advance booking service.

Validates booking requests in local wall-clock terms, converts them to
absolute instants and hands them to the store's atomic check-then-insert.
Status changes go through the session state machine's booking table.
"""

import uuid
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Optional

from simbooking.config import AppConfig, settings
from simbooking.errors import InvalidInput, InvalidTransition, ResourceNotFound, Unauthorized
from simbooking.logging_context import bind_request_id, get_request_logger
from simbooking.scheduling import pricing, stats, timeutils, validation
from simbooking.scheduling.availability import SlotAvailabilityEngine
from simbooking.scheduling.day_schedule import DayScheduleBuilder
from simbooking.scheduling.session_machine import SessionStateMachine
from simbooking.schemas.booking_schema import (
    Booking,
    BookingLog,
    BookingLogAction,
    BookingStats,
    BookingStatus,
    CreateBookingData,
    UpdateBookingData,
)
from simbooking.schemas.schedule_schema import DaySchedule
from simbooking.schemas.session_schema import Session
from simbooking.store.base import SchedulingStore
from simbooking.utils import mask_phone, normalize_phone, utc_now

logger = get_request_logger(__name__)

RESCHEDULABLE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def _new_booking_id() -> str:
    return f"BK-{uuid.uuid4().hex[:8].upper()}"


class BookingService:
    """Create, reschedule, cancel and look up advance bookings."""

    def __init__(
        self,
        store: SchedulingStore,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        sessions: Optional[SessionStateMachine] = None,
    ) -> None:
        self._store = store
        self._config = config or settings
        self._clock = clock
        self.availability = SlotAvailabilityEngine(store, self._config)
        self.schedules = DayScheduleBuilder(store, self._config)
        self.sessions = sessions or SessionStateMachine(store, self._config, clock)

    def _timezone(self, timezone: Optional[str]) -> str:
        return timezone or self._config.business.timezone

    def _now(self, reference_time: Optional[datetime]) -> datetime:
        return timeutils.parse_instant(reference_time) if reference_time is not None else self._clock()

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    async def create(
        self,
        data: "CreateBookingData | dict",
        reference_time: Optional[datetime] = None,
        request_id: Optional[str] = None,
    ) -> Booking:
        """
        Book a machine for a local date, start time and duration.

        Raises:
            InvalidInput: Bad fields, malformed date/time, or a start in the past.
            ResourceNotFound: Unknown machine.
            SlotConflict: The interval overlaps a non-cancelled booking.
        """
        bind_request_id(request_id)
        data = validation.coerce(CreateBookingData, data)
        rules = self._config.validation
        validation.require_fields(
            machine_id=data.machine_id,
            local_date=data.local_date,
            local_start_time=data.local_start_time,
        )
        name = validation.validate_name(data.customer_name, rules)
        phone = validation.validate_phone(data.customer_phone, rules)
        tz = self._timezone(data.timezone)
        candidate = self.availability.resolve(
            data.machine_id, data.local_date, data.local_start_time, data.duration_minutes, tz
        )

        now = self._now(reference_time)
        if candidate.start_at < now:
            logger.warning(
                "Rejected booking in the past: %s %s on %s",
                data.local_date, data.local_start_time, data.machine_id,
            )
            raise InvalidInput(f"Cannot book {data.local_date} {data.local_start_time}: time has passed")

        machine = await self._store.get_machine(data.machine_id)
        if machine is None:
            raise ResourceNotFound("Machine", data.machine_id)
        if not machine.is_active:
            raise InvalidInput(f"Machine '{machine.id}' is not accepting bookings")

        booking = Booking(
            id=_new_booking_id(),
            machine_id=machine.id,
            customer_id=data.customer_id,
            customer_name=name,
            customer_phone=phone,
            start_at=candidate.start_at,
            end_at=candidate.end_at,
            duration_minutes=candidate.duration_minutes,
            business_timezone=tz,
            status=BookingStatus.CONFIRMED,
            notes=data.notes,
            total_price=pricing.booking_price(machine, candidate.duration_minutes),
        )
        created = await self._store.insert_booking(booking)
        logger.info(
            "Booking %s created on %s for %s %s-%s (%s)",
            created.id, created.machine_id, created.local_date,
            created.local_start_time, created.local_end_time, tz,
        )
        return created

    async def update(
        self,
        booking_id: str,
        data: "UpdateBookingData | dict",
        requester_customer_id: Optional[str] = None,
        reference_time: Optional[datetime] = None,
        request_id: Optional[str] = None,
    ) -> Booking:
        """
        Reschedule a booking and/or change its notes or status.

        Unset fields keep their current value. A new interval goes through
        the same atomic overlap re-check as ``create``, excluding the booking
        itself.
        """
        bind_request_id(request_id)
        data = validation.coerce(UpdateBookingData, data)
        booking = await self._owned_booking(booking_id, requester_customer_id)

        reschedule = any(
            value is not None
            for value in (data.local_date, data.local_start_time, data.duration_minutes)
        )
        if reschedule:
            booking = await self._reschedule(booking, data, reference_time)
        elif data.notes is not None and data.notes != booking.notes:
            booking = await self._store.replace_booking(booking.model_copy(update={"notes": data.notes}))
            logger.info("Booking %s notes updated", booking.id)

        if data.status is not None and data.status != booking.status:
            booking = await self._apply_status(booking, data.status)
        return booking

    async def _reschedule(
        self, booking: Booking, data: UpdateBookingData, reference_time: Optional[datetime]
    ) -> Booking:
        if booking.status not in RESCHEDULABLE_STATUSES:
            raise InvalidTransition(
                f"Cannot reschedule booking '{booking.id}' in status '{booking.status.value}'"
            )
        tz = booking.business_timezone
        candidate = self.availability.resolve(
            booking.machine_id,
            data.local_date or booking.local_date,
            data.local_start_time or booking.local_start_time,
            data.duration_minutes if data.duration_minutes is not None else booking.duration_minutes,
            tz,
        )
        if candidate.start_at != booking.start_at and candidate.start_at < self._now(reference_time):
            raise InvalidInput(f"Cannot move booking '{booking.id}' into the past")

        machine = await self._store.get_machine(booking.machine_id)
        updated = booking.model_copy(update={
            "start_at": candidate.start_at,
            "end_at": candidate.end_at,
            "duration_minutes": candidate.duration_minutes,
            "notes": data.notes if data.notes is not None else booking.notes,
            "total_price": pricing.booking_price(machine, candidate.duration_minutes),
        })
        saved = await self._store.replace_booking(updated)
        logger.info(
            "Booking %s rescheduled to %s %s-%s",
            saved.id, saved.local_date, saved.local_start_time, saved.local_end_time,
        )
        return saved

    async def _apply_status(self, booking: Booking, status: BookingStatus) -> Booking:
        if status == BookingStatus.CANCELLED:
            return await self.sessions.cancel_booking(booking.id)
        if status == BookingStatus.CONFIRMED:
            return await self.sessions.confirm_booking(booking.id)
        if status == BookingStatus.COMPLETED:
            return await self.sessions.complete_booking(booking.id)
        if status == BookingStatus.CHECKED_IN:
            raise InvalidInput("Use check_in to check a booking in; it starts the session")
        raise InvalidTransition(
            f"Booking '{booking.id}' cannot return to '{status.value}'"
        )

    async def cancel(
        self,
        booking_id: str,
        requester_customer_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Booking:
        """Cancel a booking; a booking already cancelled is returned unchanged."""
        bind_request_id(request_id)
        return await self.sessions.cancel_booking(booking_id, requester_customer_id)

    async def check_in(
        self, booking_id: str, notes: Optional[str] = None, request_id: Optional[str] = None
    ) -> tuple[Booking, Session]:
        bind_request_id(request_id)
        return await self.sessions.check_in_booking(booking_id, notes)

    async def log_session(self, booking_id: str, action: "BookingLogAction | str") -> BookingLog:
        """Record a START/STOP mark pressed at the front desk.

        Check-in and session end record their own marks.
        """
        try:
            action = BookingLogAction(action)
        except ValueError:
            raise InvalidInput(
                f"action must be one of {[a.value for a in BookingLogAction]}, got {action!r}"
            ) from None
        await self.get_by_id(booking_id)
        log = await self._store.append_booking_log(booking_id, action, self._clock())
        logger.info("Booking %s marked %s", booking_id, action.value)
        return log

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def _owned_booking(self, booking_id: str, requester_customer_id: Optional[str]) -> Booking:
        booking = await self.get_by_id(booking_id)
        if requester_customer_id is not None and booking.customer_id != requester_customer_id:
            logger.warning("Customer %s may not modify booking %s", requester_customer_id, booking_id)
            raise Unauthorized(f"Booking '{booking_id}' belongs to another customer")
        return booking

    async def get_by_id(self, booking_id: str) -> Booking:
        booking = await self._store.get_booking(booking_id)
        if booking is None:
            raise ResourceNotFound("Booking", booking_id)
        return booking

    async def get_my_bookings(self, customer_id: str) -> list[Booking]:
        validation.require_fields(customer_id=customer_id)
        return await self._store.list_bookings_for_customer(customer_id)

    async def get_by_phone(self, phone: str) -> list[Booking]:
        validation.require_fields(phone=phone)
        return await self._store.list_bookings_for_phone(normalize_phone(phone))

    async def get_by_customer_or_phone(
        self, customer_id: Optional[str] = None, phone: Optional[str] = None
    ) -> list[Booking]:
        """Bookings matching either the customer id or the phone, de-duplicated."""
        if not customer_id and not phone:
            raise InvalidInput("customer_id or phone is required")
        found: dict[str, Booking] = {}
        if customer_id:
            found.update((b.id, b) for b in await self._store.list_bookings_for_customer(customer_id))
        if phone:
            found.update((b.id, b) for b in await self._store.list_bookings_for_phone(normalize_phone(phone)))
        return sorted(found.values(), key=lambda b: b.start_at)

    async def get_by_machine_and_date(
        self,
        machine_id: str,
        date: str,
        timezone: Optional[str] = None,
        viewer_customer_id: Optional[str] = None,
    ) -> list[Booking]:
        """Non-cancelled bookings touching a local day; other customers' phones are masked."""
        tz = self._timezone(timezone)
        day_start, day_end = timeutils.local_day_bounds(date, tz)
        if await self._store.get_machine(machine_id) is None:
            raise ResourceNotFound("Machine", machine_id)

        bookings = await self._store.list_bookings_in_window(machine_id, day_start, day_end)
        return [
            b if viewer_customer_id is not None and b.customer_id == viewer_customer_id
            else b.model_copy(update={"customer_phone": mask_phone(b.customer_phone)})
            for b in bookings
        ]

    async def get_session_logs(self, booking_ids: "Iterable[str] | str") -> list[BookingLog]:
        """START/STOP marks for a list or comma-separated string of booking ids, oldest first."""
        if isinstance(booking_ids, str):
            booking_ids = booking_ids.split(",")
        ids = [i.strip() for i in booking_ids if i and i.strip()]
        if not ids:
            raise InvalidInput("At least one booking id is required")
        return await self._store.list_booking_logs(ids)

    async def is_slot_available(
        self,
        machine_id: str,
        date: str,
        start_time: str,
        duration_minutes: int,
        timezone: Optional[str] = None,
        reference_time: Optional[datetime] = None,
    ) -> bool:
        return await self.availability.is_slot_available(
            machine_id, date, start_time, duration_minutes, timezone, reference_time
        )

    async def get_day_schedule(
        self,
        machine_id: str,
        date: str,
        timezone: Optional[str] = None,
        reference_time: Optional[datetime] = None,
        viewer_customer_id: Optional[str] = None,
    ) -> DaySchedule:
        return await self.schedules.get_day_schedule(
            machine_id, date, timezone, reference_time, viewer_customer_id
        )

    def get_available_dates(self, today: Optional[str] = None, days_ahead: Optional[int] = None) -> list[str]:
        today = today or timeutils.business_today(self._config.business.timezone, self._clock())
        return self.schedules.get_available_dates(today, days_ahead)

    async def get_stats(self, date: Optional[str] = None) -> BookingStats:
        """Status counts, optionally limited to bookings starting on one local date."""
        bookings = await self._store.list_bookings()
        if date is not None:
            timeutils.parse_local_date(date)
            bookings = [b for b in bookings if b.local_date == date]
        return stats.booking_stats(bookings)
