"""
Queue position assigner.

Per-machine queues hand out ``position`` values; the venue-wide walk-in
queue hands out ``queue_number`` tickets. The pure functions here define the
numbering and wait-estimate rules; the store applies them atomically.
"""

from collections.abc import Iterable
from typing import Optional

from simbooking.config import AppConfig, settings
from simbooking.errors import ResourceNotFound, Unauthorized
from simbooking.logging_context import get_request_logger
from simbooking.scheduling import validation
from simbooking.scheduling.stats import machine_queue_stats, machine_stats
from simbooking.scheduling.transitions import MACHINE_QUEUE_TRANSITIONS, StatusAction
from simbooking.schemas.machine_schema import MachineDashboard, MachineStats
from simbooking.schemas.queue_schema import (
    CreateMachineQueueData,
    MachineQueueEntry,
    MachineQueueStats,
    MachineQueueStatus,
    QueueAhead,
    WalkInQueueEntry,
    WalkInStatus,
)
from simbooking.store.base import SchedulingStore

logger = get_request_logger(__name__)

# Statuses that still hold a place in line.
ACTIVE_MACHINE_QUEUE_STATUSES = frozenset({MachineQueueStatus.WAITING, MachineQueueStatus.PLAYING})
ACTIVE_WALK_IN_STATUSES = frozenset({WalkInStatus.WAITING, WalkInStatus.CALLED})
# Seated parties still hold a machine, like ``playing`` on a machine queue.
WALK_IN_AHEAD_STATUSES = ACTIVE_WALK_IN_STATUSES | {WalkInStatus.SEATED}


def next_position(entries: Iterable[MachineQueueEntry]) -> int:
    """``max(position) + 1`` over waiting/playing entries, or 1 for an empty line."""
    positions = [e.position for e in entries if e.status in ACTIVE_MACHINE_QUEUE_STATUSES]
    return max(positions) + 1 if positions else 1


def compute_queue_ahead(
    entry: MachineQueueEntry,
    entries: Iterable[MachineQueueEntry],
    average_session_minutes: int,
) -> QueueAhead:
    """Count waiting/playing entries on the same machine with a smaller position."""
    if entry.status not in ACTIVE_MACHINE_QUEUE_STATUSES:
        return QueueAhead()
    ahead = sum(
        1
        for other in entries
        if other.id != entry.id
        and other.machine_id == entry.machine_id
        and other.status in ACTIVE_MACHINE_QUEUE_STATUSES
        and other.position < entry.position
    )
    return QueueAhead(queue_ahead=ahead, estimated_wait_minutes=ahead * average_session_minutes)


def compute_walk_in_ahead(
    entry: WalkInQueueEntry,
    entries: Iterable[WalkInQueueEntry],
    average_session_minutes: int,
) -> QueueAhead:
    """Count waiting, called or seated walk-ins that joined before ``entry``.

    Only an entry still in line (waiting or called) has anyone ahead of it.
    """
    if entry.status not in ACTIVE_WALK_IN_STATUSES:
        return QueueAhead()
    key = (entry.joined_at, entry.queue_number)
    ahead = sum(
        1
        for other in entries
        if other.id != entry.id
        and other.status in WALK_IN_AHEAD_STATUSES
        and (other.joined_at, other.queue_number) < key
    )
    return QueueAhead(queue_ahead=ahead, estimated_wait_minutes=ahead * average_session_minutes)


class QueuePositionAssigner:
    """Numbering, wait estimates and status changes for machine queues."""

    def __init__(self, store: SchedulingStore, config: Optional[AppConfig] = None) -> None:
        self._store = store
        self._config = config or settings

    @property
    def average_session_minutes(self) -> int:
        return self._config.scheduling.average_session_minutes

    async def _require_machine(self, machine_id: str) -> None:
        if await self._store.get_machine(machine_id) is None:
            raise ResourceNotFound("Machine", machine_id)

    async def get_next_position(self, machine_id: str) -> int:
        """Position the next entry on ``machine_id`` would receive.

        Informational only; ``enqueue`` assigns the real position atomically.
        """
        validation.require_fields(machine_id=machine_id)
        await self._require_machine(machine_id)
        return next_position(await self._store.list_machine_queue(machine_id))

    async def get_next_queue_number(self) -> int:
        return await self._store.next_queue_number()

    async def enqueue(self, data: "CreateMachineQueueData | dict") -> MachineQueueEntry:
        data = validation.coerce(CreateMachineQueueData, data)
        rules = self._config.validation
        validation.require_fields(machine_id=data.machine_id)
        data = data.model_copy(update={
            "customer_name": validation.validate_name(data.customer_name, rules),
            "customer_phone": validation.validate_phone(data.customer_phone, rules),
            "duration_minutes": validation.validate_positive_minutes(
                data.duration_minutes, "duration_minutes", self._config.scheduling.max_booking_minutes
            ),
        })

        entry = await self._store.enqueue_machine_queue(data)
        logger.info(
            "Queued %s on machine %s at position %d", entry.id, entry.machine_id, entry.position
        )
        return entry

    async def get_entry(self, entry_id: str) -> MachineQueueEntry:
        entry = await self._store.get_machine_queue_entry(entry_id)
        if entry is None:
            raise ResourceNotFound("Queue entry", entry_id)
        return entry

    async def get_machine_queue(self, machine_id: str) -> list[MachineQueueEntry]:
        """Entries still in line on one machine, in position order."""
        await self._require_machine(machine_id)
        return [
            e for e in await self._store.list_machine_queue(machine_id)
            if e.status in ACTIVE_MACHINE_QUEUE_STATUSES
        ]

    async def get_queue_ahead(self, entry_id: str) -> QueueAhead:
        entry = await self.get_entry(entry_id)
        entries = await self.get_machine_queue(entry.machine_id)
        return compute_queue_ahead(entry, entries, self.average_session_minutes)

    async def get_dashboard(self) -> list[MachineDashboard]:
        """Live waiting/playing counts and wait estimate for every active machine."""
        machines = [m for m in await self._store.list_machines() if m.is_active]
        entries = await self._store.list_machine_queue()

        dashboard = []
        for machine in machines:
            mine = [e for e in entries if e.machine_id == machine.id]
            waiting = sum(1 for e in mine if e.status == MachineQueueStatus.WAITING)
            playing = sum(1 for e in mine if e.status == MachineQueueStatus.PLAYING)
            dashboard.append(MachineDashboard(
                machine_id=machine.id,
                waiting_count=waiting,
                playing_count=playing,
                estimated_wait_minutes=(waiting + playing) * self.average_session_minutes,
                next_position=next_position(mine),
            ))
        return dashboard

    async def get_stats(self) -> MachineQueueStats:
        return machine_queue_stats(await self._store.list_machine_queue())

    async def get_machine_stats(self) -> MachineStats:
        """Counts of active machines per status."""
        return machine_stats(await self._store.list_machines())

    async def _apply(
        self,
        entry_id: str,
        action: StatusAction,
        requester_customer_id: Optional[str] = None,
    ) -> MachineQueueEntry:
        entry = await self.get_entry(entry_id)
        if requester_customer_id is not None and entry.customer_id != requester_customer_id:
            logger.warning("Customer %s may not modify queue entry %s", requester_customer_id, entry_id)
            raise Unauthorized(f"Queue entry '{entry_id}' belongs to another customer")

        target = MACHINE_QUEUE_TRANSITIONS.resolve(entry.status, action)
        if target == entry.status:
            return entry

        updated = await self._store.set_machine_queue_status(
            entry_id, target, MACHINE_QUEUE_TRANSITIONS.sources(action)
        )
        logger.info("Queue entry %s: %s -> %s", entry_id, entry.status.value, target.value)
        return updated

    async def start_playing(self, entry_id: str) -> MachineQueueEntry:
        return await self._apply(entry_id, StatusAction.START_PLAYING)

    async def complete(self, entry_id: str) -> MachineQueueEntry:
        return await self._apply(entry_id, StatusAction.COMPLETE)

    async def cancel(self, entry_id: str, requester_customer_id: Optional[str] = None) -> MachineQueueEntry:
        return await self._apply(entry_id, StatusAction.CANCEL, requester_customer_id)
