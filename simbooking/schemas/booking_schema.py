"""Advance booking data models.

Bookings are stored as absolute UTC instants. The local date and times a
customer sees are derived from ``business_timezone`` on read.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from simbooking.utils import get_zone, utc_now


class BookingStatus(str, Enum):
    """Lifecycle status of an advance booking."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Booking(BaseModel):
    """A reservation of one machine for a fixed interval."""
    id: str
    machine_id: str
    customer_id: Optional[str] = None
    customer_name: str
    customer_phone: str
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    business_timezone: str
    status: BookingStatus = BookingStatus.CONFIRMED
    notes: Optional[str] = None
    total_price: Optional[float] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def _local(self, instant: datetime) -> datetime:
        return instant.astimezone(get_zone(self.business_timezone))

    @property
    def local_date(self) -> str:
        return self._local(self.start_at).strftime("%Y-%m-%d")

    @property
    def local_start_time(self) -> str:
        return self._local(self.start_at).strftime("%H:%M")

    @property
    def local_end_time(self) -> str:
        return self._local(self.end_at).strftime("%H:%M")

    @property
    def local_end_date(self) -> str:
        return self._local(self.end_at).strftime("%Y-%m-%d")

    @property
    def is_cross_midnight(self) -> bool:
        return self.local_end_date != self.local_date

    @property
    def blocks_slot(self) -> bool:
        """Every booking except a cancelled one occupies its interval."""
        return self.status != BookingStatus.CANCELLED


class CreateBookingData(BaseModel):
    """Request to reserve a machine, expressed in local wall-clock time."""
    machine_id: str
    customer_name: str
    customer_phone: str
    local_date: str
    local_start_time: str
    duration_minutes: int
    timezone: Optional[str] = None
    notes: Optional[str] = None
    customer_id: Optional[str] = None


class UpdateBookingData(BaseModel):
    """Partial update; unset fields keep their current value."""
    local_date: Optional[str] = None
    local_start_time: Optional[str] = None
    duration_minutes: Optional[int] = None
    status: Optional[BookingStatus] = None
    notes: Optional[str] = None


class BookingStats(BaseModel):
    total_bookings: int = 0
    pending_bookings: int = 0
    confirmed_bookings: int = 0
    checked_in_bookings: int = 0
    cancelled_bookings: int = 0
    completed_bookings: int = 0


class BookingLogAction(str, Enum):
    START = "START"
    STOP = "STOP"


class BookingLog(BaseModel):
    """A START/STOP mark against a booking. Append-only."""
    booking_id: str
    action: BookingLogAction
    recorded_at: datetime
    session_id: Optional[str] = None
