from simbooking.schemas.booking_schema import (
    Booking,
    BookingLog,
    BookingLogAction,
    BookingStats,
    BookingStatus,
    CreateBookingData,
    UpdateBookingData,
)
from simbooking.schemas.machine_schema import (
    Machine,
    MachineDashboard,
    MachineStats,
    MachineStatus,
)
from simbooking.schemas.queue_schema import (
    CreateMachineQueueData,
    JoinWalkInQueueData,
    MachineQueueEntry,
    MachineQueueStats,
    MachineQueueStatus,
    QueueAhead,
    QueueStatusView,
    WalkInQueueEntry,
    WalkInQueueStats,
    WalkInStatus,
)
from simbooking.schemas.schedule_schema import DaySchedule, SlotBooking, SlotStatus, TimeSlot
from simbooking.schemas.session_schema import (
    PaymentStatus,
    Session,
    SessionSourceType,
    SessionState,
    SessionStats,
    StartSessionData,
)

__all__ = [
    "Booking",
    "BookingLog",
    "BookingLogAction",
    "BookingStats",
    "BookingStatus",
    "CreateBookingData",
    "UpdateBookingData",
    "Machine",
    "MachineDashboard",
    "MachineStats",
    "MachineStatus",
    "CreateMachineQueueData",
    "JoinWalkInQueueData",
    "MachineQueueEntry",
    "MachineQueueStats",
    "MachineQueueStatus",
    "QueueAhead",
    "QueueStatusView",
    "WalkInQueueEntry",
    "WalkInQueueStats",
    "WalkInStatus",
    "DaySchedule",
    "SlotBooking",
    "SlotStatus",
    "TimeSlot",
    "PaymentStatus",
    "Session",
    "SessionSourceType",
    "SessionState",
    "SessionStats",
    "StartSessionData",
]
