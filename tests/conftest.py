"""Shared test fixtures and helpers."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from simbooking.config import AppConfig, BusinessConfig, SchedulingConfig, ValidationConfig
from simbooking.core import create_core
from simbooking.scheduling import timeutils
from simbooking.schemas.booking_schema import Booking, BookingStatus
from simbooking.schemas.machine_schema import Machine, MachineStatus
from simbooking.store.memory import MemorySchedulingStore

TZ = "Asia/Bangkok"
TODAY = "2026-03-14"
TOMORROW = "2026-03-15"
# 10:00 local time in Bangkok (UTC+7).
FIXED_NOW = datetime(2026, 3, 14, 3, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; tests move it forward explicitly."""

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int = 0, days: int = 0) -> None:
        self.now += timedelta(minutes=minutes, days=days)

    def set_local(self, date: str, time: str) -> None:
        self.now = timeutils.to_absolute_instant(date, time, TZ)


def make_config(
    slot_minutes: int = 30,
    open_24_hours: bool = True,
    open_hour: int = 10,
    close_hour: int = 24,
    average_session_minutes: int = 30,
) -> AppConfig:
    """Fully explicit config so tests never depend on the environment."""
    return AppConfig(
        business=BusinessConfig(
            name="Test Raceway",
            timezone=TZ,
            open_24_hours=open_24_hours,
            open_hour=open_hour,
            close_hour=close_hour,
        ),
        scheduling=SchedulingConfig(
            slot_minutes=slot_minutes,
            booking_days_ahead=7,
            average_session_minutes=average_session_minutes,
            default_session_minutes=60,
            max_booking_minutes=720,
        ),
        validation=ValidationConfig(
            min_phone_digits=9,
            max_phone_digits=10,
            min_name_length=2,
            max_name_length=100,
            max_party_size=10,
        ),
        log_level="DEBUG",
        app_name="simbooking-test",
    )


def make_machines() -> list[Machine]:
    return [
        Machine(id="M1", name="Simulator 1", position=1, type="racing_sim", hourly_rate=100),
        Machine(id="M2", name="Simulator 2", position=2, type="racing_sim"),
        Machine(id="M3", name="Simulator 3", position=3, status=MachineStatus.MAINTENANCE),
        Machine(id="M4", name="Retired rig", position=4, is_active=False),
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def store(clock):
    return MemorySchedulingStore(TZ, clock, make_machines())


@pytest.fixture
def core(store, config, clock):
    return create_core(store, config, clock)


def make_booking(
    machine_id: str = "M1",
    date: str = TOMORROW,
    start_time: str = "14:00",
    duration_minutes: int = 60,
    status: BookingStatus = BookingStatus.CONFIRMED,
    customer_id: Optional[str] = None,
    customer_name: str = "Somchai",
    customer_phone: str = "0812345678",
    booking_id: Optional[str] = None,
) -> Booking:
    """Build a Booking from local wall-clock values."""
    start = timeutils.to_absolute_instant(date, start_time, TZ)
    end = timeutils.compute_end_instant(start, duration_minutes, TZ).end_at
    return Booking(
        id=booking_id or f"BK-{machine_id}-{date}-{start_time.replace(':', '')}",
        machine_id=machine_id,
        customer_id=customer_id,
        customer_name=customer_name,
        customer_phone=customer_phone,
        start_at=start,
        end_at=end,
        duration_minutes=duration_minutes,
        business_timezone=TZ,
        status=status,
    )


async def seed_booking(store: MemorySchedulingStore, **kwargs) -> Booking:
    """Insert a booking straight into the store, bypassing service validation."""
    return await store.insert_booking(make_booking(**kwargs))


def booking_request(**overrides) -> dict:
    """A valid create-booking payload for tomorrow afternoon on M1."""
    data = {
        "machine_id": "M1",
        "customer_name": "Somchai Jaidee",
        "customer_phone": "081-234-5678",
        "local_date": TOMORROW,
        "local_start_time": "14:00",
        "duration_minutes": 60,
    }
    data.update(overrides)
    return data


def walk_in_request(**overrides) -> dict:
    data = {"customer_name": "Malee", "customer_phone": "0899999999", "party_size": 2}
    data.update(overrides)
    return data
