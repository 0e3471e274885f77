"""Same-day walk-in queue: join, call, seat, cancel and live position lookups."""

from collections.abc import Callable
from datetime import datetime
from typing import Optional

from simbooking.config import AppConfig, settings
from simbooking.errors import ResourceNotFound
from simbooking.logging_context import bind_request_id, get_request_logger
from simbooking.scheduling import stats, timeutils, validation
from simbooking.scheduling.queue_position import ACTIVE_WALK_IN_STATUSES, compute_walk_in_ahead
from simbooking.scheduling.session_machine import SessionStateMachine
from simbooking.schemas.queue_schema import (
    JoinWalkInQueueData,
    QueueStatusView,
    WalkInQueueEntry,
    WalkInQueueStats,
)
from simbooking.schemas.session_schema import Session
from simbooking.store.base import SchedulingStore
from simbooking.utils import utc_now

logger = get_request_logger(__name__)


class WalkInService:
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
        self.sessions = sessions or SessionStateMachine(store, self._config, clock)

    async def join(
        self, data: "JoinWalkInQueueData | dict", request_id: Optional[str] = None
    ) -> WalkInQueueEntry:
        """Take the next ticket number for today's walk-in queue."""
        bind_request_id(request_id)
        data = validation.coerce(JoinWalkInQueueData, data)
        rules = self._config.validation
        data = data.model_copy(update={
            "customer_name": validation.validate_name(data.customer_name, rules),
            "customer_phone": validation.validate_phone(data.customer_phone, rules),
            "party_size": validation.validate_party_size(data.party_size, rules),
        })
        if data.preferred_machine_id and await self._store.get_machine(data.preferred_machine_id) is None:
            raise ResourceNotFound("Machine", data.preferred_machine_id)

        entry = await self._store.join_walk_in(data)
        logger.info("Walk-in #%d joined (%s, party of %d)", entry.queue_number, entry.id, entry.party_size)
        return entry

    async def call_customer(self, queue_id: str, request_id: Optional[str] = None) -> WalkInQueueEntry:
        bind_request_id(request_id)
        return await self.sessions.call_customer(queue_id)

    async def seat_customer(
        self,
        queue_id: str,
        machine_id: str,
        notes: Optional[str] = None,
        estimated_duration_minutes: Optional[int] = None,
        request_id: Optional[str] = None,
    ) -> tuple[WalkInQueueEntry, Session]:
        bind_request_id(request_id)
        return await self.sessions.seat_customer(queue_id, machine_id, notes, estimated_duration_minutes)

    async def cancel(
        self,
        queue_id: str,
        requester_customer_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> WalkInQueueEntry:
        bind_request_id(request_id)
        return await self.sessions.cancel_walk_in(queue_id, requester_customer_id)

    async def get_entry(self, queue_id: str) -> WalkInQueueEntry:
        entry = await self._store.get_walk_in(queue_id)
        if entry is None:
            raise ResourceNotFound("Queue entry", queue_id)
        return entry

    async def get_waiting(self) -> list[WalkInQueueEntry]:
        """Parties still in line (waiting or called), first come first."""
        return [e for e in await self._store.list_walk_ins() if e.status in ACTIVE_WALK_IN_STATUSES]

    async def get_queue_status(self, queue_id: str) -> QueueStatusView:
        entry = await self.get_entry(queue_id)
        return self._view(entry, await self._store.list_walk_ins())

    async def get_my_queue_status(self, customer_id: str) -> list[QueueStatusView]:
        """The customer's entries still in line, each with its live position."""
        validation.require_fields(customer_id=customer_id)
        entries = await self._store.list_walk_ins()
        return [
            self._view(entry, entries)
            for entry in entries
            if entry.customer_id == customer_id and entry.status in ACTIVE_WALK_IN_STATUSES
        ]

    def _view(self, entry: WalkInQueueEntry, entries: list[WalkInQueueEntry]) -> QueueStatusView:
        ahead = compute_walk_in_ahead(entry, entries, self._config.scheduling.average_session_minutes)
        return QueueStatusView(
            entry=entry,
            queue_ahead=ahead.queue_ahead,
            estimated_wait_minutes=ahead.estimated_wait_minutes,
        )

    async def get_next_queue_number(self) -> int:
        return await self._store.next_queue_number()

    async def get_stats(self, now: Optional[datetime] = None) -> WalkInQueueStats:
        tz = self._config.business.timezone
        today = timeutils.business_today(tz, now or self._clock())
        return stats.walk_in_stats(await self._store.list_walk_ins(), today, tz)
