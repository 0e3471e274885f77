"""
Error taxonomy for the scheduling core.

Every error carries a machine-readable ``kind`` and a human-readable
``message`` so the transport layer can pick an HTTP status and a localized
text without parsing strings.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Categories of scheduling failures."""
    INVALID_INPUT = "invalid_input"
    RESOURCE_NOT_FOUND = "resource_not_found"
    SLOT_CONFLICT = "slot_conflict"
    STATION_OCCUPIED = "station_occupied"
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_ALREADY_ENDED = "session_already_ended"
    INVALID_TRANSITION = "invalid_transition"
    UNAUTHORIZED = "unauthorized"
    STORE_UNAVAILABLE = "store_unavailable"


# Suggested transport mapping; the core itself never speaks HTTP.
_HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.RESOURCE_NOT_FOUND: 404,
    ErrorKind.SLOT_CONFLICT: 409,
    ErrorKind.STATION_OCCUPIED: 409,
    ErrorKind.SESSION_NOT_FOUND: 404,
    ErrorKind.SESSION_ALREADY_ENDED: 409,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.STORE_UNAVAILABLE: 503,
}


class SchedulingError(Exception):
    """Base class for all scheduling core errors."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self.kind]

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": self.message}


class InvalidInput(SchedulingError):
    """Malformed or missing input, rejected before any store call."""
    kind = ErrorKind.INVALID_INPUT


class InvalidTimeFormat(InvalidInput):
    """A date, time, instant or timezone string could not be parsed."""


class ResourceNotFound(SchedulingError):
    """A referenced machine, booking, queue entry or session does not exist."""
    kind = ErrorKind.RESOURCE_NOT_FOUND

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(f"{resource} '{resource_id}' not found")
        self.resource = resource
        self.resource_id = resource_id


class SlotConflict(SchedulingError):
    """The requested interval overlaps an existing non-cancelled booking."""
    kind = ErrorKind.SLOT_CONFLICT

    def __init__(self, message: str, conflicting_ids: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.conflicting_ids = conflicting_ids or []


class StationOccupied(SchedulingError):
    """A session is already open on the station."""
    kind = ErrorKind.STATION_OCCUPIED

    def __init__(self, station_id: str, session_id: Optional[str] = None) -> None:
        super().__init__(f"Station '{station_id}' already has an open session")
        self.station_id = station_id
        self.session_id = session_id


class SessionNotFound(SchedulingError):
    kind = ErrorKind.SESSION_NOT_FOUND

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class SessionAlreadyEnded(SchedulingError):
    kind = ErrorKind.SESSION_ALREADY_ENDED

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' has already ended")
        self.session_id = session_id


class InvalidTransition(SchedulingError):
    """A status change is not allowed from the entity's current status."""
    kind = ErrorKind.INVALID_TRANSITION


class Unauthorized(SchedulingError):
    """Ownership / guest verification failed."""
    kind = ErrorKind.UNAUTHORIZED


class StoreUnavailable(SchedulingError):
    """The underlying store failed or timed out."""
    kind = ErrorKind.STORE_UNAVAILABLE
