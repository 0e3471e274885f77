"""
In-memory Scheduling Store.

Backs the console demo and the test suite. Every composite operation runs
under one ``asyncio.Lock`` so check-then-write sequences cannot interleave;
rows are copied in and out so callers never alias stored state.

Walk-in entries left waiting or called from an earlier business day are not
swept here; clearing stale entries belongs to whichever store persists
them, typically a nightly job.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Optional

from simbooking.errors import (
    InvalidTransition,
    ResourceNotFound,
    SessionAlreadyEnded,
    SessionNotFound,
    SlotConflict,
    StationOccupied,
)
from simbooking.scheduling.queue_position import next_position
from simbooking.scheduling.timeutils import business_today
from simbooking.schemas.booking_schema import Booking, BookingLog, BookingLogAction, BookingStatus
from simbooking.schemas.machine_schema import Machine, MachineStatus
from simbooking.schemas.queue_schema import (
    CreateMachineQueueData,
    JoinWalkInQueueData,
    MachineQueueEntry,
    MachineQueueStatus,
    WalkInQueueEntry,
    WalkInStatus,
)
from simbooking.schemas.session_schema import PaymentStatus, Session, StartSessionData
from simbooking.store.base import SchedulingStore
from simbooking.utils import normalize_phone, utc_now

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


class MemorySchedulingStore(SchedulingStore):
    """Process-local store; one instance per venue (or per test)."""

    def __init__(
        self,
        business_timezone: str = "Asia/Bangkok",
        clock: Callable[[], datetime] = utc_now,
        machines: Optional[Iterable[Machine]] = None,
    ) -> None:
        self._timezone = business_timezone
        self._clock = clock
        self._lock = asyncio.Lock()

        self._machines: dict[str, Machine] = {}
        self._bookings: dict[str, Booking] = {}
        self._machine_queue: dict[str, MachineQueueEntry] = {}
        self._walk_ins: dict[str, WalkInQueueEntry] = {}
        self._sessions: dict[str, Session] = {}
        self._booking_logs: list[BookingLog] = []

        # Walk-in ticket counter, reset when the local business day changes.
        self._queue_day: Optional[str] = None
        self._queue_counter: int = 0

        for machine in machines or []:
            self._machines[machine.id] = machine.model_copy(deep=True)

    def _today(self) -> str:
        return business_today(self._timezone, self._clock())

    # ------------------------------------------------------------------ #
    # Machines
    # ------------------------------------------------------------------ #

    async def get_machine(self, machine_id: str) -> Optional[Machine]:
        machine = self._machines.get(machine_id)
        return machine.model_copy(deep=True) if machine else None

    async def get_machines(self, machine_ids: Iterable[str]) -> list[Machine]:
        return [
            self._machines[mid].model_copy(deep=True)
            for mid in machine_ids
            if mid in self._machines
        ]

    async def list_machines(self) -> list[Machine]:
        return [
            m.model_copy(deep=True)
            for m in sorted(self._machines.values(), key=lambda m: (m.position, m.id))
        ]

    async def list_available_machines(self) -> list[Machine]:
        return [
            m for m in await self.list_machines()
            if m.is_active and m.status == MachineStatus.AVAILABLE
        ]

    async def save_machine(self, machine: Machine) -> Machine:
        async with self._lock:
            stored = machine.model_copy(update={"updated_at": self._clock()}, deep=True)
            self._machines[stored.id] = stored
            return stored.model_copy(deep=True)

    async def update_machine_status(self, machine_id: str, status: MachineStatus) -> Machine:
        async with self._lock:
            machine = self._require_machine(machine_id)
            updated = self._set_machine_status(machine, status)
            return updated.model_copy(deep=True)

    def _require_machine(self, machine_id: str) -> Machine:
        machine = self._machines.get(machine_id)
        if machine is None:
            raise ResourceNotFound("Machine", machine_id)
        return machine

    def _set_machine_status(self, machine: Machine, status: MachineStatus) -> Machine:
        updated = machine.model_copy(update={"status": status, "updated_at": self._clock()})
        self._machines[machine.id] = updated
        return updated

    # ------------------------------------------------------------------ #
    # Bookings
    # ------------------------------------------------------------------ #

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        booking = self._bookings.get(booking_id)
        return booking.model_copy(deep=True) if booking else None

    async def list_bookings(self) -> list[Booking]:
        return [
            b.model_copy(deep=True)
            for b in sorted(self._bookings.values(), key=lambda b: (b.start_at, b.id))
        ]

    async def list_bookings_for_customer(self, customer_id: str) -> list[Booking]:
        return [b for b in await self.list_bookings() if b.customer_id == customer_id]

    async def list_bookings_for_phone(self, phone: str) -> list[Booking]:
        wanted = normalize_phone(phone)
        return [b for b in await self.list_bookings() if normalize_phone(b.customer_phone) == wanted]

    async def list_bookings_in_window(
        self, machine_id: str, window_start: datetime, window_end: datetime
    ) -> list[Booking]:
        return [
            b for b in await self.list_bookings()
            if b.machine_id == machine_id
            and b.blocks_slot
            and b.start_at < window_end
            and window_start < b.end_at
        ]

    def _conflicts(self, booking: Booking) -> list[str]:
        return [
            other.id
            for other in self._bookings.values()
            if other.id != booking.id
            and other.machine_id == booking.machine_id
            and other.blocks_slot
            and booking.start_at < other.end_at
            and other.start_at < booking.end_at
        ]

    async def insert_booking(self, booking: Booking) -> Booking:
        async with self._lock:
            self._require_machine(booking.machine_id)
            conflicts = self._conflicts(booking)
            if conflicts:
                raise SlotConflict(
                    f"Machine '{booking.machine_id}' is already booked for the requested time",
                    conflicts,
                )
            now = self._clock()
            stored = booking.model_copy(update={"created_at": now, "updated_at": now}, deep=True)
            self._bookings[stored.id] = stored
            return stored.model_copy(deep=True)

    async def replace_booking(self, booking: Booking) -> Booking:
        async with self._lock:
            if booking.id not in self._bookings:
                raise ResourceNotFound("Booking", booking.id)
            self._require_machine(booking.machine_id)
            if booking.blocks_slot:
                conflicts = self._conflicts(booking)
                if conflicts:
                    raise SlotConflict(
                        f"Machine '{booking.machine_id}' is already booked for the requested time",
                        conflicts,
                    )
            stored = booking.model_copy(update={"updated_at": self._clock()}, deep=True)
            self._bookings[stored.id] = stored
            return stored.model_copy(deep=True)

    def _cas_booking(
        self, booking_id: str, status: BookingStatus, expected: Iterable[BookingStatus]
    ) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise ResourceNotFound("Booking", booking_id)
        expected = set(expected)
        if booking.status not in expected:
            raise InvalidTransition(
                f"Booking '{booking_id}' is '{booking.status.value}', "
                f"expected one of {sorted(s.value for s in expected)}"
            )
        updated = booking.model_copy(update={"status": status, "updated_at": self._clock()})
        self._bookings[booking_id] = updated
        return updated

    async def set_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        expected: Iterable[BookingStatus],
    ) -> Booking:
        async with self._lock:
            return self._cas_booking(booking_id, status, expected).model_copy(deep=True)

    async def check_in_booking(
        self,
        booking_id: str,
        expected: Iterable[BookingStatus],
        session: StartSessionData,
        start_time: datetime,
        estimated_end_time: Optional[datetime] = None,
    ) -> tuple[Booking, Session]:
        async with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None:
                raise ResourceNotFound("Booking", booking_id)
            # Validate the session side first so a failure leaves the booking untouched.
            self._check_station_free(session.station_id)
            booking = self._cas_booking(booking_id, BookingStatus.CHECKED_IN, expected)
            opened = self._open_session_locked(session, start_time, estimated_end_time)
            return booking.model_copy(deep=True), opened.model_copy(deep=True)

    def _log_booking_locked(
        self,
        booking_id: str,
        action: BookingLogAction,
        recorded_at: datetime,
        session_id: Optional[str] = None,
    ) -> BookingLog:
        log = BookingLog(
            booking_id=booking_id, action=action, recorded_at=recorded_at, session_id=session_id
        )
        self._booking_logs.append(log)
        return log

    async def append_booking_log(
        self,
        booking_id: str,
        action: BookingLogAction,
        recorded_at: datetime,
        session_id: Optional[str] = None,
    ) -> BookingLog:
        async with self._lock:
            if booking_id not in self._bookings:
                raise ResourceNotFound("Booking", booking_id)
            log = self._log_booking_locked(booking_id, action, recorded_at, session_id)
            return log.model_copy(deep=True)

    async def list_booking_logs(self, booking_ids: Iterable[str]) -> list[BookingLog]:
        wanted = set(booking_ids)
        return [
            log.model_copy(deep=True)
            for log in sorted(self._booking_logs, key=lambda log: log.recorded_at)
            if log.booking_id in wanted
        ]

    # ------------------------------------------------------------------ #
    # Per-machine queue
    # ------------------------------------------------------------------ #

    async def get_machine_queue_entry(self, entry_id: str) -> Optional[MachineQueueEntry]:
        entry = self._machine_queue.get(entry_id)
        return entry.model_copy(deep=True) if entry else None

    async def list_machine_queue(self, machine_id: Optional[str] = None) -> list[MachineQueueEntry]:
        entries = [
            e for e in self._machine_queue.values()
            if machine_id is None or e.machine_id == machine_id
        ]
        return [
            e.model_copy(deep=True)
            for e in sorted(entries, key=lambda e: (e.machine_id, e.position, e.created_at))
        ]

    async def enqueue_machine_queue(self, data: CreateMachineQueueData) -> MachineQueueEntry:
        async with self._lock:
            self._require_machine(data.machine_id)
            position = next_position(
                e for e in self._machine_queue.values() if e.machine_id == data.machine_id
            )
            now = self._clock()
            entry = MachineQueueEntry(
                id=_new_id("MQ"),
                position=position,
                created_at=now,
                updated_at=now,
                **data.model_dump(),
            )
            self._machine_queue[entry.id] = entry
            return entry.model_copy(deep=True)

    async def set_machine_queue_status(
        self,
        entry_id: str,
        status: MachineQueueStatus,
        expected: Iterable[MachineQueueStatus],
    ) -> MachineQueueEntry:
        async with self._lock:
            entry = self._machine_queue.get(entry_id)
            if entry is None:
                raise ResourceNotFound("Queue entry", entry_id)
            expected = set(expected)
            if entry.status not in expected:
                raise InvalidTransition(
                    f"Queue entry '{entry_id}' is '{entry.status.value}', "
                    f"expected one of {sorted(s.value for s in expected)}"
                )
            updated = entry.model_copy(update={"status": status, "updated_at": self._clock()})
            self._machine_queue[entry_id] = updated
            return updated.model_copy(deep=True)

    # ------------------------------------------------------------------ #
    # Walk-in queue
    # ------------------------------------------------------------------ #

    async def get_walk_in(self, queue_id: str) -> Optional[WalkInQueueEntry]:
        entry = self._walk_ins.get(queue_id)
        return entry.model_copy(deep=True) if entry else None

    async def list_walk_ins(self) -> list[WalkInQueueEntry]:
        return [
            e.model_copy(deep=True)
            for e in sorted(self._walk_ins.values(), key=lambda e: (e.joined_at, e.queue_number))
        ]

    def _peek_queue_number(self) -> int:
        if self._queue_day != self._today():
            return 1
        return self._queue_counter + 1

    async def next_queue_number(self) -> int:
        return self._peek_queue_number()

    async def join_walk_in(self, data: JoinWalkInQueueData) -> WalkInQueueEntry:
        async with self._lock:
            number = self._peek_queue_number()
            self._queue_day = self._today()
            self._queue_counter = number

            now = self._clock()
            entry = WalkInQueueEntry(
                id=_new_id("WQ"),
                queue_number=number,
                joined_at=now,
                created_at=now,
                updated_at=now,
                **data.model_dump(),
            )
            self._walk_ins[entry.id] = entry
            return entry.model_copy(deep=True)

    def _cas_walk_in(
        self,
        queue_id: str,
        status: WalkInStatus,
        expected: Iterable[WalkInStatus],
        at: datetime,
    ) -> WalkInQueueEntry:
        entry = self._walk_ins.get(queue_id)
        if entry is None:
            raise ResourceNotFound("Queue entry", queue_id)
        expected = set(expected)
        if entry.status not in expected:
            raise InvalidTransition(
                f"Queue entry '{queue_id}' is '{entry.status.value}', "
                f"expected one of {sorted(s.value for s in expected)}"
            )
        update: dict = {"status": status, "updated_at": at}
        if status == WalkInStatus.CALLED:
            update["called_at"] = at
        elif status == WalkInStatus.SEATED:
            update["seated_at"] = at
        updated = entry.model_copy(update=update)
        self._walk_ins[queue_id] = updated
        return updated

    async def set_walk_in_status(
        self,
        queue_id: str,
        status: WalkInStatus,
        expected: Iterable[WalkInStatus],
        at: Optional[datetime] = None,
    ) -> WalkInQueueEntry:
        async with self._lock:
            entry = self._cas_walk_in(queue_id, status, expected, at or self._clock())
            return entry.model_copy(deep=True)

    async def seat_walk_in(
        self,
        queue_id: str,
        expected: Iterable[WalkInStatus],
        session: StartSessionData,
        start_time: datetime,
        estimated_end_time: Optional[datetime] = None,
    ) -> tuple[WalkInQueueEntry, Session]:
        async with self._lock:
            if queue_id not in self._walk_ins:
                raise ResourceNotFound("Queue entry", queue_id)
            self._check_station_free(session.station_id)
            entry = self._cas_walk_in(queue_id, WalkInStatus.SEATED, expected, start_time)
            opened = self._open_session_locked(session, start_time, estimated_end_time)
            return entry.model_copy(deep=True), opened.model_copy(deep=True)

    # ------------------------------------------------------------------ #
    # Sessions
    # ------------------------------------------------------------------ #

    async def get_session(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def list_sessions(self, station_id: Optional[str] = None) -> list[Session]:
        sessions = [
            s for s in self._sessions.values()
            if station_id is None or s.station_id == station_id
        ]
        return [
            s.model_copy(deep=True)
            for s in sorted(sessions, key=lambda s: s.start_time, reverse=True)
        ]

    def _find_open_session(self, station_id: str) -> Optional[Session]:
        for session in self._sessions.values():
            if session.station_id == station_id and session.is_active:
                return session
        return None

    async def get_open_session(self, station_id: str) -> Optional[Session]:
        session = self._find_open_session(station_id)
        return session.model_copy(deep=True) if session else None

    async def list_open_sessions(self) -> list[Session]:
        return [s for s in await self.list_sessions() if s.is_active]

    def _check_station_free(self, station_id: str) -> Machine:
        machine = self._require_machine(station_id)
        existing = self._find_open_session(station_id)
        if existing is not None:
            raise StationOccupied(station_id, existing.id)
        return machine

    def _open_session_locked(
        self,
        data: StartSessionData,
        start_time: datetime,
        estimated_end_time: Optional[datetime],
    ) -> Session:
        machine = self._check_station_free(data.station_id)
        now = self._clock()
        session = Session(
            id=_new_id("SS"),
            station_id=data.station_id,
            booking_id=data.booking_id,
            queue_id=data.queue_id,
            customer_name=data.customer_name,
            start_time=start_time,
            estimated_end_time=estimated_end_time,
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )
        self._sessions[session.id] = session
        self._set_machine_status(machine, MachineStatus.OCCUPIED)
        if session.booking_id:
            self._log_booking_locked(session.booking_id, BookingLogAction.START, start_time, session.id)
        return session

    async def open_session(
        self,
        data: StartSessionData,
        start_time: datetime,
        estimated_end_time: Optional[datetime] = None,
    ) -> Session:
        async with self._lock:
            return self._open_session_locked(data, start_time, estimated_end_time).model_copy(deep=True)

    async def close_session(
        self, session_id: str, end_time: datetime, total_amount: Optional[float] = None
    ) -> Session:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            if not session.is_active:
                raise SessionAlreadyEnded(session_id)

            update: dict = {"end_time": end_time, "updated_at": self._clock()}
            if total_amount is not None:
                update["total_amount"] = total_amount
            closed = session.model_copy(update=update)
            self._sessions[session_id] = closed

            machine = self._machines.get(closed.station_id)
            if machine is not None and machine.status == MachineStatus.OCCUPIED:
                self._set_machine_status(machine, MachineStatus.AVAILABLE)

            if closed.booking_id:
                self._log_booking_locked(closed.booking_id, BookingLogAction.STOP, end_time, closed.id)

            booking = self._bookings.get(closed.booking_id) if closed.booking_id else None
            if booking is not None and booking.status in (
                BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN
            ):
                self._bookings[booking.id] = booking.model_copy(
                    update={"status": BookingStatus.COMPLETED, "updated_at": self._clock()}
                )
            return closed.model_copy(deep=True)

    async def update_session_payment(
        self,
        session_id: str,
        status: PaymentStatus,
        expected: Iterable[PaymentStatus],
    ) -> Session:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            expected = set(expected)
            if session.payment_status not in expected:
                raise InvalidTransition(
                    f"Session '{session_id}' payment is '{session.payment_status.value}', "
                    f"expected one of {sorted(s.value for s in expected)}"
                )
            updated = session.model_copy(
                update={"payment_status": status, "updated_at": self._clock()}
            )
            self._sessions[session_id] = updated
            return updated.model_copy(deep=True)

    async def update_session_amount(self, session_id: str, total_amount: float) -> Session:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            updated = session.model_copy(
                update={"total_amount": total_amount, "updated_at": self._clock()}
            )
            self._sessions[session_id] = updated
            return updated.model_copy(deep=True)
