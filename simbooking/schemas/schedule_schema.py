"""Derived day-schedule view models. Regenerated on every query, never stored."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    PASSED = "passed"


class SlotBooking(BaseModel):
    """Booking detail shown on a booked slot; phone masked unless the viewer owns it."""
    booking_id: str
    customer_name: str
    customer_phone: str
    is_owner: bool = False
    is_cross_midnight: bool = False


class TimeSlot(BaseModel):
    id: str
    start_time: str
    end_time: str
    start_at: datetime
    end_at: datetime
    status: SlotStatus = SlotStatus.AVAILABLE
    booking_id: Optional[str] = None
    is_cross_midnight: bool = False
    booking: Optional[SlotBooking] = None


class DaySchedule(BaseModel):
    date: str
    machine_id: str
    timezone: str
    time_slots: list[TimeSlot] = Field(default_factory=list)
    total_slots: int = 0
    available_slots: int = 0
    booked_slots: int = 0
    passed_slots: int = 0

    def slot_at(self, start_time: str) -> Optional[TimeSlot]:
        """Find the slot starting at a local "HH:MM" time."""
        for slot in self.time_slots:
            if slot.start_time == start_time:
                return slot
        return None
