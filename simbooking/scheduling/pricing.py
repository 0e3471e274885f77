"""Price calculation for bookings and sessions."""

from typing import Optional

from simbooking.schemas.machine_schema import Machine

# Venue price list (THB) for the standard booking durations.
DURATION_PRICES: dict[int, float] = {
    30: 60,
    60: 100,
    120: 200,
    180: 280,
}


def price_for_duration(duration_minutes: int) -> float:
    """Look up the price list, pro-rating from the hourly price for other durations."""
    if duration_minutes <= 0:
        return 0
    if duration_minutes in DURATION_PRICES:
        return DURATION_PRICES[duration_minutes]
    return round(DURATION_PRICES[60] * duration_minutes / 60, 2)


def hourly_amount(hourly_rate: float, duration_minutes: int) -> float:
    return round(hourly_rate * max(duration_minutes, 0) / 60, 2)


def booking_price(machine: Optional[Machine], duration_minutes: int) -> float:
    """Machine hourly rate when set, else the venue price list."""
    if machine is not None and machine.hourly_rate is not None:
        return hourly_amount(machine.hourly_rate, duration_minutes)
    return price_for_duration(duration_minutes)


def session_amount(machine: Optional[Machine], duration_minutes: int) -> float:
    """Default charge for an ended session; zero when the machine has no rate."""
    if machine is None or machine.hourly_rate is None:
        return 0
    return hourly_amount(machine.hourly_rate, duration_minutes)
