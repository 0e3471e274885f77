"""Machine (bookable station) data models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from simbooking.utils import utc_now


class MachineStatus(str, Enum):
    """Operational status of a station."""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


class Machine(BaseModel):
    """A bookable racing-simulator station."""
    id: str
    name: str
    description: str = ""
    position: int = 0
    is_active: bool = True
    status: MachineStatus = MachineStatus.AVAILABLE
    type: Optional[str] = None
    hourly_rate: Optional[float] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_bookable(self) -> bool:
        return self.is_active and self.status != MachineStatus.MAINTENANCE


class MachineStats(BaseModel):
    total_machines: int = 0
    available_machines: int = 0
    occupied_machines: int = 0
    maintenance_machines: int = 0


class MachineDashboard(BaseModel):
    """Live per-machine queue summary for the venue dashboard."""
    machine_id: str
    waiting_count: int = 0
    playing_count: int = 0
    estimated_wait_minutes: int = 0
    next_position: int = 1
