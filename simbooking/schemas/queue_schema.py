"""Walk-in queue and per-machine queue data models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from simbooking.utils import utc_now


class WalkInStatus(str, Enum):
    """Walk-in flow: waiting -> called -> seated, or -> cancelled."""
    WAITING = "waiting"
    CALLED = "called"
    SEATED = "seated"
    CANCELLED = "cancelled"


class WalkInQueueEntry(BaseModel):
    """A same-day, first-come-first-served ticket."""
    id: str
    customer_id: Optional[str] = None
    customer_name: str
    customer_phone: str
    party_size: int = 1
    preferred_station_type: Optional[str] = None
    preferred_machine_id: Optional[str] = None
    queue_number: int
    status: WalkInStatus = WalkInStatus.WAITING
    notes: Optional[str] = None
    joined_at: datetime = Field(default_factory=utc_now)
    called_at: Optional[datetime] = None
    seated_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def wait_time_minutes(self) -> Optional[int]:
        """Minutes between joining and being seated, once seated."""
        if self.seated_at is None:
            return None
        return int((self.seated_at - self.joined_at).total_seconds() // 60)


class JoinWalkInQueueData(BaseModel):
    customer_name: str
    customer_phone: str
    party_size: int = 1
    preferred_station_type: Optional[str] = None
    preferred_machine_id: Optional[str] = None
    notes: Optional[str] = None
    customer_id: Optional[str] = None


class WalkInQueueStats(BaseModel):
    waiting_count: int = 0
    called_count: int = 0
    seated_today: int = 0
    cancelled_today: int = 0
    average_wait_minutes: int = 0


class QueueAhead(BaseModel):
    """How many parties are in front of an entry and the expected wait."""
    queue_ahead: int = 0
    estimated_wait_minutes: int = 0


class QueueStatusView(BaseModel):
    """A customer's own queue entry with its live position."""
    entry: WalkInQueueEntry
    queue_ahead: int = 0
    estimated_wait_minutes: int = 0


class MachineQueueStatus(str, Enum):
    """Per-machine queue flow: waiting -> playing -> completed, or -> cancelled."""
    WAITING = "waiting"
    PLAYING = "playing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MachineQueueEntry(BaseModel):
    """A position in one machine's own queue."""
    id: str
    machine_id: str
    customer_id: Optional[str] = None
    customer_name: str
    customer_phone: str
    booking_time: datetime
    duration_minutes: int
    position: int
    status: MachineQueueStatus = MachineQueueStatus.WAITING
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class CreateMachineQueueData(BaseModel):
    machine_id: str
    customer_name: str
    customer_phone: str
    booking_time: datetime
    duration_minutes: int
    notes: Optional[str] = None
    customer_id: Optional[str] = None


class MachineQueueStats(BaseModel):
    total_queues: int = 0
    waiting_queues: int = 0
    playing_queues: int = 0
    completed_queues: int = 0
    cancelled_queues: int = 0
