"""Session (actual machine occupancy) data models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from simbooking.utils import utc_now


class SessionState(str, Enum):
    """Lifecycle of a usage session. ENDED is terminal."""
    NONE = "none"
    ACTIVE = "active"
    ENDED = "ended"


class PaymentStatus(str, Enum):
    """Payment sub-state, independent of the session lifecycle."""
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class SessionSourceType(str, Enum):
    BOOKING = "booking"
    WALK_IN = "walk_in"
    MANUAL = "manual"


def _round_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, halves rounded up."""
    return int((end - start).total_seconds() / 60 + 0.5)


class Session(BaseModel):
    """One customer's occupancy of a station. Never deleted."""
    id: str
    station_id: str
    booking_id: Optional[str] = None
    queue_id: Optional[str] = None
    customer_name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    estimated_end_time: Optional[datetime] = None
    total_amount: float = 0
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    @property
    def state(self) -> SessionState:
        return SessionState.ACTIVE if self.is_active else SessionState.ENDED

    @property
    def source_type(self) -> SessionSourceType:
        if self.booking_id:
            return SessionSourceType.BOOKING
        if self.queue_id:
            return SessionSourceType.WALK_IN
        return SessionSourceType.MANUAL

    @property
    def duration_minutes(self) -> Optional[int]:
        if self.end_time is None:
            return None
        return _round_minutes(self.start_time, self.end_time)

    def elapsed_minutes(self, now: datetime) -> int:
        """Minutes played so far (or in total, once ended)."""
        return _round_minutes(self.start_time, self.end_time or now)


class StartSessionData(BaseModel):
    station_id: str
    customer_name: str
    booking_id: Optional[str] = None
    queue_id: Optional[str] = None
    notes: Optional[str] = None
    estimated_duration_minutes: Optional[int] = None


class SessionStats(BaseModel):
    total_sessions: int = 0
    active_sessions: int = 0
    completed_sessions: int = 0
    total_revenue: float = 0
    paid_revenue: float = 0
    unpaid_revenue: float = 0
    refunded_revenue: float = 0
    average_duration_minutes: int = 0
    range_start: Optional[str] = None
    range_end: Optional[str] = None
