"""
Scheduling Store port.

The scheduling core reads and mutates machines, bookings, queues and
sessions only through this interface. Implementations own persistence and
must make every operation marked *atomic* indivisible: either the whole
change is applied or none of it is, and concurrent callers are serialized
per resource key (row lock, unique constraint, transaction or equivalent).

Implementations raise ``StoreUnavailable`` for infrastructure failures and
the domain errors named in each docstring for rule violations detected
inside an atomic operation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

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


class SchedulingStore(ABC):
    # ------------------------------------------------------------------ #
    # Machines
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_machine(self, machine_id: str) -> Optional[Machine]:
        raise NotImplementedError

    @abstractmethod
    async def get_machines(self, machine_ids: Iterable[str]) -> list[Machine]:
        raise NotImplementedError

    @abstractmethod
    async def list_machines(self) -> list[Machine]:
        """All machines ordered by position."""
        raise NotImplementedError

    @abstractmethod
    async def list_available_machines(self) -> list[Machine]:
        """Active machines whose status is ``available``, ordered by position."""
        raise NotImplementedError

    @abstractmethod
    async def save_machine(self, machine: Machine) -> Machine:
        raise NotImplementedError

    @abstractmethod
    async def update_machine_status(self, machine_id: str, status: MachineStatus) -> Machine:
        """Operator override. Raises ResourceNotFound."""
        raise NotImplementedError

    # ------------------------------------------------------------------ #
    # Bookings
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        raise NotImplementedError

    @abstractmethod
    async def list_bookings(self) -> list[Booking]:
        raise NotImplementedError

    @abstractmethod
    async def list_bookings_for_customer(self, customer_id: str) -> list[Booking]:
        raise NotImplementedError

    @abstractmethod
    async def list_bookings_for_phone(self, phone: str) -> list[Booking]:
        """Match on the normalized phone number."""
        raise NotImplementedError

    @abstractmethod
    async def list_bookings_in_window(
        self, machine_id: str, window_start: datetime, window_end: datetime
    ) -> list[Booking]:
        """Non-cancelled bookings of a machine intersecting ``[window_start, window_end)``."""
        raise NotImplementedError

    @abstractmethod
    async def insert_booking(self, booking: Booking) -> Booking:
        """*Atomic* overlap re-check and insert. Raises SlotConflict."""
        raise NotImplementedError

    @abstractmethod
    async def replace_booking(self, booking: Booking) -> Booking:
        """*Atomic* overlap re-check (excluding itself) and update.

        Raises ResourceNotFound or SlotConflict.
        """
        raise NotImplementedError

    @abstractmethod
    async def set_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        expected: Iterable[BookingStatus],
    ) -> Booking:
        """*Atomic* compare-and-set of the status.

        Raises ResourceNotFound, or InvalidTransition when the current status
        is not one of ``expected``.
        """
        raise NotImplementedError

    @abstractmethod
    async def check_in_booking(
        self,
        booking_id: str,
        expected: Iterable[BookingStatus],
        session: StartSessionData,
        start_time: datetime,
        estimated_end_time: Optional[datetime] = None,
    ) -> tuple[Booking, Session]:
        """*Atomic* booking -> checked_in plus ``open_session``."""
        raise NotImplementedError

    @abstractmethod
    async def append_booking_log(
        self,
        booking_id: str,
        action: BookingLogAction,
        recorded_at: datetime,
        session_id: Optional[str] = None,
    ) -> BookingLog:
        """Record a START/STOP mark. Raises ResourceNotFound."""
        raise NotImplementedError

    @abstractmethod
    async def list_booking_logs(self, booking_ids: Iterable[str]) -> list[BookingLog]:
        """Marks for the given bookings, oldest first."""
        raise NotImplementedError

    # ------------------------------------------------------------------ #
    # Per-machine queue
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_machine_queue_entry(self, entry_id: str) -> Optional[MachineQueueEntry]:
        raise NotImplementedError

    @abstractmethod
    async def list_machine_queue(self, machine_id: Optional[str] = None) -> list[MachineQueueEntry]:
        """Entries ordered by position (all machines when ``machine_id`` is None)."""
        raise NotImplementedError

    @abstractmethod
    async def enqueue_machine_queue(self, data: CreateMachineQueueData) -> MachineQueueEntry:
        """*Atomic* next-position assignment and insert, serialized per machine."""
        raise NotImplementedError

    @abstractmethod
    async def set_machine_queue_status(
        self,
        entry_id: str,
        status: MachineQueueStatus,
        expected: Iterable[MachineQueueStatus],
    ) -> MachineQueueEntry:
        """*Atomic* compare-and-set. Raises ResourceNotFound / InvalidTransition."""
        raise NotImplementedError

    # ------------------------------------------------------------------ #
    # Walk-in queue
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_walk_in(self, queue_id: str) -> Optional[WalkInQueueEntry]:
        raise NotImplementedError

    @abstractmethod
    async def list_walk_ins(self) -> list[WalkInQueueEntry]:
        """All entries in join order (queue numbers restart each operating day)."""
        raise NotImplementedError

    @abstractmethod
    async def next_queue_number(self) -> int:
        """Next ticket number for the current operating day (reset policy lives here)."""
        raise NotImplementedError

    @abstractmethod
    async def join_walk_in(self, data: JoinWalkInQueueData) -> WalkInQueueEntry:
        """*Atomic* queue-number assignment and insert."""
        raise NotImplementedError

    @abstractmethod
    async def set_walk_in_status(
        self,
        queue_id: str,
        status: WalkInStatus,
        expected: Iterable[WalkInStatus],
        at: Optional[datetime] = None,
    ) -> WalkInQueueEntry:
        """*Atomic* compare-and-set; stamps called_at with ``at``."""
        raise NotImplementedError

    @abstractmethod
    async def seat_walk_in(
        self,
        queue_id: str,
        expected: Iterable[WalkInStatus],
        session: StartSessionData,
        start_time: datetime,
        estimated_end_time: Optional[datetime] = None,
    ) -> tuple[WalkInQueueEntry, Session]:
        """*Atomic* entry -> seated (stamping seated_at) plus ``open_session``."""
        raise NotImplementedError

    # ------------------------------------------------------------------ #
    # Sessions
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[Session]:
        raise NotImplementedError

    @abstractmethod
    async def list_sessions(self, station_id: Optional[str] = None) -> list[Session]:
        """Sessions newest first, optionally for one station."""
        raise NotImplementedError

    @abstractmethod
    async def get_open_session(self, station_id: str) -> Optional[Session]:
        raise NotImplementedError

    @abstractmethod
    async def list_open_sessions(self) -> list[Session]:
        raise NotImplementedError

    @abstractmethod
    async def open_session(
        self,
        data: StartSessionData,
        start_time: datetime,
        estimated_end_time: Optional[datetime] = None,
    ) -> Session:
        """*Atomic* insert guarded by "one open session per station".

        Marks the machine ``occupied`` in the same operation and, for a
        booking-sourced session, records a START mark. Raises
        StationOccupied or ResourceNotFound.
        """
        raise NotImplementedError

    @abstractmethod
    async def close_session(
        self, session_id: str, end_time: datetime, total_amount: Optional[float] = None
    ) -> Session:
        """*Atomic* end of an open session; machine back to ``available``.

        A booking-sourced session also moves its booking to ``completed``
        and records a STOP mark.
        Raises SessionNotFound or SessionAlreadyEnded.
        """
        raise NotImplementedError

    @abstractmethod
    async def update_session_payment(
        self,
        session_id: str,
        status: PaymentStatus,
        expected: Iterable[PaymentStatus],
    ) -> Session:
        """*Atomic* compare-and-set of the payment status."""
        raise NotImplementedError

    @abstractmethod
    async def update_session_amount(self, session_id: str, total_amount: float) -> Session:
        raise NotImplementedError
