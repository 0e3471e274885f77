from simbooking.scheduling.availability import SlotAvailabilityEngine, overlaps
from simbooking.scheduling.booking_service import BookingService
from simbooking.scheduling.day_schedule import DayScheduleBuilder
from simbooking.scheduling.queue_position import (
    QueuePositionAssigner,
    compute_queue_ahead,
    compute_walk_in_ahead,
    next_position,
)
from simbooking.scheduling.session_machine import SessionStateMachine
from simbooking.scheduling.transitions import StatusAction, TransitionTable
from simbooking.scheduling.walk_in import WalkInService

__all__ = [
    "SlotAvailabilityEngine", "overlaps",
    "DayScheduleBuilder",
    "QueuePositionAssigner", "next_position", "compute_queue_ahead", "compute_walk_in_ahead",
    "SessionStateMachine", "StatusAction", "TransitionTable",
    "BookingService", "WalkInService",
]
