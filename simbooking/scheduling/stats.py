"""Aggregate counters for the venue dashboard. Pure functions over store rows."""

from collections import Counter
from collections.abc import Iterable
from typing import Optional

from simbooking.scheduling import timeutils
from simbooking.schemas.booking_schema import Booking, BookingStats, BookingStatus
from simbooking.schemas.machine_schema import Machine, MachineStats, MachineStatus
from simbooking.schemas.queue_schema import (
    MachineQueueEntry,
    MachineQueueStats,
    MachineQueueStatus,
    WalkInQueueEntry,
    WalkInQueueStats,
    WalkInStatus,
)
from simbooking.schemas.session_schema import PaymentStatus, Session, SessionStats


def booking_stats(bookings: Iterable[Booking]) -> BookingStats:
    counts = Counter(b.status for b in bookings)
    return BookingStats(
        total_bookings=sum(counts.values()),
        pending_bookings=counts[BookingStatus.PENDING],
        confirmed_bookings=counts[BookingStatus.CONFIRMED],
        checked_in_bookings=counts[BookingStatus.CHECKED_IN],
        cancelled_bookings=counts[BookingStatus.CANCELLED],
        completed_bookings=counts[BookingStatus.COMPLETED],
    )


def machine_stats(machines: Iterable[Machine]) -> MachineStats:
    active = [m for m in machines if m.is_active]
    counts = Counter(m.status for m in active)
    return MachineStats(
        total_machines=len(active),
        available_machines=counts[MachineStatus.AVAILABLE],
        occupied_machines=counts[MachineStatus.OCCUPIED],
        maintenance_machines=counts[MachineStatus.MAINTENANCE],
    )


def machine_queue_stats(entries: Iterable[MachineQueueEntry]) -> MachineQueueStats:
    counts = Counter(e.status for e in entries)
    return MachineQueueStats(
        total_queues=sum(counts.values()),
        waiting_queues=counts[MachineQueueStatus.WAITING],
        playing_queues=counts[MachineQueueStatus.PLAYING],
        completed_queues=counts[MachineQueueStatus.COMPLETED],
        cancelled_queues=counts[MachineQueueStatus.CANCELLED],
    )


def walk_in_stats(
    entries: Iterable[WalkInQueueEntry], today: str, business_timezone: str
) -> WalkInQueueStats:
    """Live queue counters plus today's seated/cancelled totals.

    ``today`` is a local ``YYYY-MM-DD`` date in ``business_timezone``.
    """
    waiting = called = cancelled_today = 0
    seated_today: list[WalkInQueueEntry] = []

    for entry in entries:
        if entry.status == WalkInStatus.WAITING:
            waiting += 1
        elif entry.status == WalkInStatus.CALLED:
            called += 1
        elif entry.status == WalkInStatus.SEATED:
            if entry.seated_at and timeutils.format_local_date(entry.seated_at, business_timezone) == today:
                seated_today.append(entry)
        elif entry.status == WalkInStatus.CANCELLED:
            if timeutils.format_local_date(entry.updated_at, business_timezone) == today:
                cancelled_today += 1

    waits = [e.wait_time_minutes for e in seated_today if e.wait_time_minutes is not None]
    return WalkInQueueStats(
        waiting_count=waiting,
        called_count=called,
        seated_today=len(seated_today),
        cancelled_today=cancelled_today,
        average_wait_minutes=round(sum(waits) / len(waits)) if waits else 0,
    )


def sessions_in_range(
    sessions: Iterable[Session],
    business_timezone: str,
    range_start: Optional[str] = None,
    range_end: Optional[str] = None,
) -> list[Session]:
    """Sessions whose local start date falls within the inclusive range; a missing bound is open."""
    selected = []
    for session in sessions:
        started_on = timeutils.format_local_date(session.start_time, business_timezone)
        if range_start is not None and started_on < range_start:
            continue
        if range_end is not None and started_on > range_end:
            continue
        selected.append(session)
    return selected


def session_stats(
    sessions: Iterable[Session],
    business_timezone: str,
    range_start: Optional[str] = None,
    range_end: Optional[str] = None,
) -> SessionStats:
    """Revenue and duration totals for sessions started within a local date range."""
    selected = sessions_in_range(sessions, business_timezone, range_start, range_end)

    ended = [s for s in selected if not s.is_active]
    durations = [s.duration_minutes for s in ended if s.duration_minutes is not None]

    def revenue(status: Optional[PaymentStatus] = None) -> float:
        return round(
            sum(s.total_amount for s in ended if status is None or s.payment_status == status), 2
        )

    return SessionStats(
        total_sessions=len(selected),
        active_sessions=len(selected) - len(ended),
        completed_sessions=len(ended),
        total_revenue=revenue(),
        paid_revenue=revenue(PaymentStatus.PAID),
        unpaid_revenue=revenue(PaymentStatus.UNPAID),
        refunded_revenue=revenue(PaymentStatus.REFUNDED),
        average_duration_minutes=round(sum(durations) / len(durations)) if durations else 0,
        range_start=range_start,
        range_end=range_end,
    )
