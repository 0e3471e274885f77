"""Request ID logging context for the scheduling core.

A request id ties together the records one caller's operation produces:
the overlap check, the store write and the resulting status transition.
Service entry points (``BookingService.create``, ``WalkInService.seat_customer``,
``SessionStateMachine.end_session`` and friends) accept an optional
``request_id`` and bind it here for the rest of the async context.

``load_config`` logs with ``LOG_FORMAT`` and installs ``RequestIdFilter`` on
the root handlers, so records from plain module loggers carry the id too.

Usage:
    booking = await core.bookings.create(data, request_id="REQ-7F3A21C9")
    # 2026-03-14 10:00:00 [simbooking.scheduling.booking_service] [REQ-7F3A21C9] INFO: Booking ...
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Optional

NO_REQUEST_ID = "-"
LOG_FORMAT = "%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s"

_request_id: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST_ID)


def new_request_id() -> str:
    return f"REQ-{uuid.uuid4().hex[:8].upper()}"


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_request_id() -> str:
    return _request_id.get()


def bind_request_id(request_id: Optional[str]) -> str:
    """Bind ``request_id`` when one is given and return the id now in effect."""
    if request_id:
        _request_id.set(request_id)
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Stamps the current request id on every record it sees."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def install_request_id_filter(logger: Optional[logging.Logger] = None) -> None:
    """Attach RequestIdFilter to each handler of ``logger`` (the root logger by default)."""
    for handler in (logger or logging.getLogger()).handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())


def get_request_logger(name: str) -> logging.Logger:
    """Return the named logger with RequestIdFilter attached once."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
