"""
Table-driven status transitions for bookings, queue entries and payments.

Every allowed status change is listed explicitly. An action that has no row
for the entity's current status is rejected with the list of actions that
are valid from there.

Usage:
    table = WALK_IN_TRANSITIONS
    table.resolve(WalkInStatus.WAITING, StatusAction.CALL)  # -> WalkInStatus.CALLED
"""

import logging
from dataclasses import dataclass
from enum import Enum

from simbooking.errors import InvalidTransition
from simbooking.schemas.booking_schema import BookingStatus
from simbooking.schemas.queue_schema import MachineQueueStatus, WalkInStatus
from simbooking.schemas.session_schema import PaymentStatus

logger = logging.getLogger(__name__)


class StatusAction(str, Enum):
    """Operations that move an entity between statuses."""
    CALL = "call"
    SEAT = "seat"
    CANCEL = "cancel"
    CONFIRM = "confirm"
    CHECK_IN = "check_in"
    COMPLETE = "complete"
    START_PLAYING = "start_playing"
    PAY = "pay"
    REFUND = "refund"
    MARK_UNPAID = "mark_unpaid"


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_state: Enum
    to_state: Enum
    action: StatusAction


class TransitionTable:
    """Lookup over a fixed list of transitions for one entity type."""

    def __init__(self, entity: str, transitions: list[Transition]) -> None:
        self.entity = entity
        self.transitions = list(transitions)

    def resolve(self, current: Enum, action: StatusAction) -> Enum:
        """
        Return the status reached by applying ``action`` in ``current``.

        A self-loop row (e.g. cancelled -> cancelled) means the action is a
        no-op in that status; callers compare the result with ``current``.

        Raises:
            InvalidTransition: If no row matches.
        """
        for t in self.transitions:
            if t.from_state == current and t.action == action:
                return t.to_state

        valid = [a.value for a in self.valid_actions(current)]
        final = "final " if self.is_terminal(current) else ""
        logger.warning(
            "Rejected %s transition '%s' from %s'%s'", self.entity, action.value, final, current.value
        )
        raise InvalidTransition(
            f"Cannot {action.value} {self.entity} in {final}status '{current.value}'. "
            f"Valid actions: {valid}"
        )

    def sources(self, action: StatusAction) -> list[Enum]:
        """Statuses from which ``action`` makes a real (non self-loop) change."""
        return [t.from_state for t in self.transitions if t.action == action and t.from_state != t.to_state]

    def valid_actions(self, current: Enum) -> list[StatusAction]:
        return [t.action for t in self.transitions if t.from_state == current]

    def is_terminal(self, current: Enum) -> bool:
        """True when every row leaving ``current`` is a self-loop."""
        return all(t.to_state == current for t in self.transitions if t.from_state == current)


WALK_IN_TRANSITIONS = TransitionTable("walk-in entry", [
    # --- Calling ---
    Transition(WalkInStatus.WAITING, WalkInStatus.CALLED, StatusAction.CALL),

    # --- Seating ---
    Transition(WalkInStatus.WAITING, WalkInStatus.SEATED, StatusAction.SEAT),
    Transition(WalkInStatus.CALLED, WalkInStatus.SEATED, StatusAction.SEAT),

    # --- Cancellation ---
    Transition(WalkInStatus.WAITING, WalkInStatus.CANCELLED, StatusAction.CANCEL),
    Transition(WalkInStatus.CALLED, WalkInStatus.CANCELLED, StatusAction.CANCEL),

    # --- Terminal ---
    Transition(WalkInStatus.CANCELLED, WalkInStatus.CANCELLED, StatusAction.CANCEL),
])


BOOKING_TRANSITIONS = TransitionTable("booking", [
    Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED, StatusAction.CONFIRM),

    # --- Check-in opens a session ---
    Transition(BookingStatus.PENDING, BookingStatus.CHECKED_IN, StatusAction.CHECK_IN),
    Transition(BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN, StatusAction.CHECK_IN),
    Transition(BookingStatus.CHECKED_IN, BookingStatus.COMPLETED, StatusAction.COMPLETE),

    # --- Cancellation ---
    Transition(BookingStatus.PENDING, BookingStatus.CANCELLED, StatusAction.CANCEL),
    Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED, StatusAction.CANCEL),

    # --- Terminal ---
    Transition(BookingStatus.CANCELLED, BookingStatus.CANCELLED, StatusAction.CANCEL),
])


MACHINE_QUEUE_TRANSITIONS = TransitionTable("queue entry", [
    Transition(MachineQueueStatus.WAITING, MachineQueueStatus.PLAYING, StatusAction.START_PLAYING),
    Transition(MachineQueueStatus.PLAYING, MachineQueueStatus.COMPLETED, StatusAction.COMPLETE),
    Transition(MachineQueueStatus.WAITING, MachineQueueStatus.CANCELLED, StatusAction.CANCEL),
    Transition(MachineQueueStatus.PLAYING, MachineQueueStatus.CANCELLED, StatusAction.CANCEL),
    Transition(MachineQueueStatus.CANCELLED, MachineQueueStatus.CANCELLED, StatusAction.CANCEL),
])


PAYMENT_TRANSITIONS = TransitionTable("payment", [
    Transition(PaymentStatus.UNPAID, PaymentStatus.PAID, StatusAction.PAY),
    Transition(PaymentStatus.PAID, PaymentStatus.REFUNDED, StatusAction.REFUND),
    # Correction of a payment recorded by mistake.
    Transition(PaymentStatus.PAID, PaymentStatus.UNPAID, StatusAction.MARK_UNPAID),
])

PAYMENT_ACTIONS: dict[PaymentStatus, StatusAction] = {
    PaymentStatus.PAID: StatusAction.PAY,
    PaymentStatus.REFUNDED: StatusAction.REFUND,
    PaymentStatus.UNPAID: StatusAction.MARK_UNPAID,
}
