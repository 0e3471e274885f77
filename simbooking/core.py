"""
Wiring for the scheduling core.

Callers build one ``SchedulingCore`` per store and reuse it; every component
shares the same store handle, config and clock.

Usage:
    core = create_core(MemorySchedulingStore())
    schedule = await core.schedules.get_day_schedule("M1", "2026-03-14")
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from simbooking.config import AppConfig, settings
from simbooking.scheduling.availability import SlotAvailabilityEngine
from simbooking.scheduling.booking_service import BookingService
from simbooking.scheduling.day_schedule import DayScheduleBuilder
from simbooking.scheduling.queue_position import QueuePositionAssigner
from simbooking.scheduling.session_machine import SessionStateMachine
from simbooking.scheduling.walk_in import WalkInService
from simbooking.store.base import SchedulingStore
from simbooking.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulingCore:
    """All scheduling components bound to one store."""
    store: SchedulingStore
    config: AppConfig
    availability: SlotAvailabilityEngine
    schedules: DayScheduleBuilder
    queues: QueuePositionAssigner
    sessions: SessionStateMachine
    bookings: BookingService
    walk_ins: WalkInService


def create_core(
    store: SchedulingStore,
    config: Optional[AppConfig] = None,
    clock: Callable[[], datetime] = utc_now,
) -> SchedulingCore:
    config = config or settings
    sessions = SessionStateMachine(store, config, clock)
    bookings = BookingService(store, config, clock, sessions)
    core = SchedulingCore(
        store=store,
        config=config,
        availability=bookings.availability,
        schedules=bookings.schedules,
        queues=QueuePositionAssigner(store, config),
        sessions=sessions,
        bookings=bookings,
        walk_ins=WalkInService(store, config, clock, sessions),
    )
    logger.debug("Scheduling core ready (%s, tz=%s)", type(store).__name__, config.business.timezone)
    return core
