"""
Session state machine.

A session moves NONE -> ACTIVE -> ENDED; ENDED is terminal. Payment status
is an independent sub-state (see PAYMENT_TRANSITIONS). Seating a walk-in or
checking in a booking opens the session in the same atomic store operation
that moves the source entity, so a rejected start never leaves a half-seated
customer behind.

Usage:
    machine = SessionStateMachine(store)
    session = await machine.start_session("M1", "Somchai")
    session = await machine.end_session(session.id)
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Optional

from simbooking.config import AppConfig, settings
from simbooking.errors import (
    InvalidInput,
    InvalidTransition,
    ResourceNotFound,
    SessionAlreadyEnded,
    SessionNotFound,
    StationOccupied,
    Unauthorized,
)
from simbooking.logging_context import bind_request_id, get_request_logger
from simbooking.scheduling import pricing, stats, timeutils, validation
from simbooking.scheduling.transitions import (
    BOOKING_TRANSITIONS,
    PAYMENT_ACTIONS,
    PAYMENT_TRANSITIONS,
    WALK_IN_TRANSITIONS,
    StatusAction,
)
from simbooking.schemas.booking_schema import Booking
from simbooking.schemas.machine_schema import Machine
from simbooking.schemas.queue_schema import WalkInQueueEntry
from simbooking.schemas.session_schema import (
    PaymentStatus,
    Session,
    SessionStats,
    StartSessionData,
)
from simbooking.store.base import SchedulingStore
from simbooking.utils import utc_now

logger = get_request_logger(__name__)


class SessionStateMachine:
    """
    Lifecycle of station sessions and of the entities that start them.

    Queue entries and bookings move through explicit transition tables;
    an action with no row for the current status raises InvalidTransition.
    Cancelling something already cancelled returns it unchanged.
    """

    def __init__(
        self,
        store: SchedulingStore,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._config = config or settings
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #

    async def _require_station(self, station_id: str) -> Machine:
        machine = await self._store.get_machine(station_id)
        if machine is None:
            raise ResourceNotFound("Machine", station_id)
        if not machine.is_bookable:
            logger.warning("Station %s is unavailable (%s)", station_id, machine.status.value)
            raise InvalidTransition(
                f"Station '{station_id}' is {'inactive' if not machine.is_active else machine.status.value}"
            )
        existing = await self._store.get_open_session(station_id)
        if existing is not None:
            logger.warning("Station %s already has open session %s", station_id, existing.id)
            raise StationOccupied(station_id, existing.id)
        return machine

    def _session_request(
        self,
        station_id: str,
        customer_name: str,
        booking_id: Optional[str] = None,
        queue_id: Optional[str] = None,
        notes: Optional[str] = None,
        estimated_duration_minutes: Optional[int] = None,
    ) -> StartSessionData:
        validation.require_fields(station_id=station_id, customer_name=customer_name)
        if booking_id and queue_id:
            raise InvalidInput("A session comes from a booking or a queue entry, not both")
        if estimated_duration_minutes is not None:
            validation.validate_positive_minutes(estimated_duration_minutes, "estimated_duration_minutes")
        return StartSessionData(
            station_id=station_id,
            customer_name=customer_name.strip(),
            booking_id=booking_id,
            queue_id=queue_id,
            notes=notes,
            estimated_duration_minutes=estimated_duration_minutes,
        )

    def _estimated_end(self, start: datetime, data: StartSessionData) -> datetime:
        minutes = data.estimated_duration_minutes or self._config.scheduling.default_session_minutes
        return start + timedelta(minutes=minutes)

    async def start_session(
        self,
        station_id: str,
        customer_name: str,
        booking_id: Optional[str] = None,
        queue_id: Optional[str] = None,
        notes: Optional[str] = None,
        estimated_duration_minutes: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> Session:
        """
        Open a session on a station and mark it occupied.

        Raises:
            InvalidInput: Missing fields or both sources given.
            ResourceNotFound: Unknown station or referenced booking/queue entry.
            InvalidTransition: Station inactive or under maintenance.
            StationOccupied: A session is already open on the station.
        """
        bind_request_id(request_id)
        data = self._session_request(
            station_id, customer_name, booking_id, queue_id, notes, estimated_duration_minutes
        )
        await self._require_station(station_id)
        if booking_id and await self._store.get_booking(booking_id) is None:
            raise ResourceNotFound("Booking", booking_id)
        if queue_id and await self._store.get_walk_in(queue_id) is None:
            raise ResourceNotFound("Queue entry", queue_id)

        start = self._clock()
        session = await self._store.open_session(data, start, self._estimated_end(start, data))
        logger.info(
            "Session %s started on %s for %s (%s)",
            session.id, station_id, session.customer_name, session.source_type.value,
        )
        return session

    async def end_session(
        self,
        session_id: str,
        total_amount: Optional[float] = None,
        request_id: Optional[str] = None,
    ) -> Session:
        """
        Close an active session and free its station.

        When ``total_amount`` is omitted it defaults to the station's hourly
        rate times the played minutes (zero without a rate).

        Raises:
            SessionNotFound / SessionAlreadyEnded.
        """
        bind_request_id(request_id)
        if total_amount is not None and total_amount < 0:
            raise InvalidInput(f"total_amount must not be negative, got {total_amount}")

        session = await self.get_session(session_id)
        if not session.is_active:
            raise SessionAlreadyEnded(session_id)

        end = self._clock()
        if total_amount is None:
            machine = await self._store.get_machine(session.station_id)
            total_amount = pricing.session_amount(machine, session.elapsed_minutes(end))

        closed = await self._store.close_session(session_id, end, total_amount)
        logger.info(
            "Session %s ended on %s after %d min (amount %.2f)",
            session_id, closed.station_id, closed.duration_minutes, closed.total_amount,
        )
        return closed

    async def update_payment_status(
        self, session_id: str, status: "PaymentStatus | str", request_id: Optional[str] = None
    ) -> Session:
        bind_request_id(request_id)
        try:
            target = PaymentStatus(status)
        except ValueError:
            raise InvalidInput(
                f"payment_status must be one of {[s.value for s in PaymentStatus]}, got {status!r}"
            ) from None

        session = await self.get_session(session_id)
        if session.payment_status == target:
            return session

        action = PAYMENT_ACTIONS[target]
        PAYMENT_TRANSITIONS.resolve(session.payment_status, action)
        updated = await self._store.update_session_payment(
            session_id, target, [session.payment_status]
        )
        logger.info(
            "Session %s payment: %s -> %s", session_id, session.payment_status.value, target.value
        )
        return updated

    async def update_total_amount(self, session_id: str, total_amount: float) -> Session:
        if total_amount is None or total_amount < 0:
            raise InvalidInput(f"total_amount must not be negative, got {total_amount}")
        await self.get_session(session_id)
        updated = await self._store.update_session_amount(session_id, float(total_amount))
        logger.info("Session %s amount set to %.2f", session_id, updated.total_amount)
        return updated

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    async def get_session(self, session_id: str) -> Session:
        session = await self._store.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    async def get_active_session(self, station_id: str) -> Optional[Session]:
        return await self._store.get_open_session(station_id)

    async def get_active_sessions(self) -> list[Session]:
        return await self._store.list_open_sessions()

    async def get_station_sessions(self, station_id: str) -> list[Session]:
        return await self._store.list_sessions(station_id)

    @staticmethod
    def _check_range(range_start: Optional[str], range_end: Optional[str]) -> None:
        for value in (range_start, range_end):
            if value is not None:
                timeutils.parse_local_date(value)
        if range_start and range_end and range_start > range_end:
            raise InvalidInput(f"range_start {range_start} is after range_end {range_end}")

    async def get_sessions_by_date_range(
        self, range_start: Optional[str] = None, range_end: Optional[str] = None
    ) -> list[Session]:
        """Sessions started between two local dates (inclusive), newest first."""
        self._check_range(range_start, range_end)
        return stats.sessions_in_range(
            await self._store.list_sessions(),
            self._config.business.timezone,
            range_start,
            range_end,
        )

    async def get_today_sessions(self, now: Optional[datetime] = None) -> list[Session]:
        today = timeutils.business_today(self._config.business.timezone, now or self._clock())
        return await self.get_sessions_by_date_range(today, today)

    async def get_stats(
        self, range_start: Optional[str] = None, range_end: Optional[str] = None
    ) -> SessionStats:
        """Totals for sessions started between two local dates (inclusive)."""
        self._check_range(range_start, range_end)
        return stats.session_stats(
            await self._store.list_sessions(),
            self._config.business.timezone,
            range_start,
            range_end,
        )

    # ------------------------------------------------------------------ #
    # Walk-in entries
    # ------------------------------------------------------------------ #

    async def _get_walk_in(self, queue_id: str) -> WalkInQueueEntry:
        entry = await self._store.get_walk_in(queue_id)
        if entry is None:
            raise ResourceNotFound("Queue entry", queue_id)
        return entry

    async def call_customer(self, queue_id: str) -> WalkInQueueEntry:
        entry = await self._get_walk_in(queue_id)
        target = WALK_IN_TRANSITIONS.resolve(entry.status, StatusAction.CALL)
        updated = await self._store.set_walk_in_status(
            queue_id, target, WALK_IN_TRANSITIONS.sources(StatusAction.CALL), self._clock()
        )
        logger.info("Called walk-in #%d (%s)", updated.queue_number, queue_id)
        return updated

    async def seat_customer(
        self,
        queue_id: str,
        machine_id: str,
        notes: Optional[str] = None,
        estimated_duration_minutes: Optional[int] = None,
    ) -> tuple[WalkInQueueEntry, Session]:
        """Seat a waiting or called walk-in on ``machine_id`` and start its session."""
        validation.require_fields(queue_id=queue_id, machine_id=machine_id)
        entry = await self._get_walk_in(queue_id)
        WALK_IN_TRANSITIONS.resolve(entry.status, StatusAction.SEAT)

        data = self._session_request(
            machine_id, entry.customer_name, queue_id=queue_id,
            notes=notes if notes is not None else entry.notes,
            estimated_duration_minutes=estimated_duration_minutes,
        )
        await self._require_station(machine_id)

        start = self._clock()
        seated, session = await self._store.seat_walk_in(
            queue_id,
            WALK_IN_TRANSITIONS.sources(StatusAction.SEAT),
            data,
            start,
            self._estimated_end(start, data),
        )
        logger.info("Seated walk-in #%d on %s (session %s)", seated.queue_number, machine_id, session.id)
        return seated, session

    async def cancel_walk_in(
        self, queue_id: str, requester_customer_id: Optional[str] = None
    ) -> WalkInQueueEntry:
        entry = await self._get_walk_in(queue_id)
        if requester_customer_id is not None and entry.customer_id != requester_customer_id:
            logger.warning("Customer %s may not cancel walk-in %s", requester_customer_id, queue_id)
            raise Unauthorized(f"Queue entry '{queue_id}' belongs to another customer")

        target = WALK_IN_TRANSITIONS.resolve(entry.status, StatusAction.CANCEL)
        if target == entry.status:
            return entry
        updated = await self._store.set_walk_in_status(
            queue_id, target, WALK_IN_TRANSITIONS.sources(StatusAction.CANCEL), self._clock()
        )
        logger.info("Cancelled walk-in #%d (%s)", updated.queue_number, queue_id)
        return updated

    # ------------------------------------------------------------------ #
    # Bookings
    # ------------------------------------------------------------------ #

    async def _get_booking(self, booking_id: str) -> Booking:
        booking = await self._store.get_booking(booking_id)
        if booking is None:
            raise ResourceNotFound("Booking", booking_id)
        return booking

    async def _move_booking(self, booking: Booking, action: StatusAction) -> Booking:
        target = BOOKING_TRANSITIONS.resolve(booking.status, action)
        if target == booking.status:
            return booking
        updated = await self._store.set_booking_status(
            booking.id, target, BOOKING_TRANSITIONS.sources(action)
        )
        logger.info("Booking %s: %s -> %s", booking.id, booking.status.value, target.value)
        return updated

    async def confirm_booking(self, booking_id: str) -> Booking:
        return await self._move_booking(await self._get_booking(booking_id), StatusAction.CONFIRM)

    async def complete_booking(self, booking_id: str) -> Booking:
        return await self._move_booking(await self._get_booking(booking_id), StatusAction.COMPLETE)

    async def cancel_booking(
        self, booking_id: str, requester_customer_id: Optional[str] = None
    ) -> Booking:
        booking = await self._get_booking(booking_id)
        if requester_customer_id is not None and booking.customer_id != requester_customer_id:
            logger.warning("Customer %s may not cancel booking %s", requester_customer_id, booking_id)
            raise Unauthorized(f"Booking '{booking_id}' belongs to another customer")
        return await self._move_booking(booking, StatusAction.CANCEL)

    async def check_in_booking(
        self, booking_id: str, notes: Optional[str] = None
    ) -> tuple[Booking, Session]:
        """Check a booking in on its own machine and start the session."""
        booking = await self._get_booking(booking_id)
        BOOKING_TRANSITIONS.resolve(booking.status, StatusAction.CHECK_IN)

        data = self._session_request(
            booking.machine_id, booking.customer_name, booking_id=booking_id,
            notes=notes if notes is not None else booking.notes,
            estimated_duration_minutes=booking.duration_minutes,
        )
        await self._require_station(booking.machine_id)

        start = self._clock()
        checked_in, session = await self._store.check_in_booking(
            booking_id,
            BOOKING_TRANSITIONS.sources(StatusAction.CHECK_IN),
            data,
            start,
            self._estimated_end(start, data),
        )
        logger.info("Checked in booking %s on %s (session %s)", booking_id, booking.machine_id, session.id)
        return checked_in, session

