"""
Offline console demo: runs the scheduling core against the in-memory store.

Seeds a handful of simulator stations, then walks through a day schedule,
the walk-in queue and a full session lifecycle. No database and no network.
A simulated clock lets the demo fast-forward through a session.

Usage:
    python console_demo.py
    python console_demo.py --scenario walkin
    python console_demo.py --scenario session --date 2026-03-14
"""

import argparse
import asyncio
from datetime import datetime, timedelta
from typing import Optional

from simbooking.config import settings
from simbooking.core import SchedulingCore, create_core
from simbooking.errors import SchedulingError
from simbooking.logging_context import new_request_id, set_request_id
from simbooking.scheduling import timeutils
from simbooking.schemas.machine_schema import Machine
from simbooking.schemas.schedule_schema import DaySchedule, SlotStatus
from simbooking.store.memory import MemorySchedulingStore
from simbooking.utils import utc_now

GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

STATUS_COLOURS = {
    SlotStatus.AVAILABLE: GREEN,
    SlotStatus.BOOKED: RED,
    SlotStatus.PASSED: DIM,
}

DEMO_MACHINES = [
    Machine(id="M1", name="Simulator 1", position=1, type="racing_sim", hourly_rate=100),
    Machine(id="M2", name="Simulator 2", position=2, type="racing_sim", hourly_rate=100),
    Machine(id="M3", name="Simulator 3 (Pro)", position=3, type="racing_sim_pro", hourly_rate=150),
]


class DemoClock:
    """Wall clock that only moves when the demo says so."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int) -> None:
        self.now += timedelta(minutes=minutes)


class ConsoleDemo:
    def __init__(self, date: Optional[str] = None) -> None:
        tz = settings.business.timezone
        self.date = date or timeutils.add_days(timeutils.business_today(tz), 1)
        self.clock = DemoClock(
            timeutils.to_absolute_instant(self.date, "09:00", tz) if date else utc_now()
        )
        self.store = MemorySchedulingStore(tz, self.clock, DEMO_MACHINES)
        self.core: SchedulingCore = create_core(self.store, settings, self.clock)

    @staticmethod
    def say(text: str) -> None:
        print(f"{GREEN}{BOLD}[{settings.business.name}]{RESET} {GREEN}{text}{RESET}")

    @staticmethod
    def system_log(text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    @staticmethod
    def error(exc: SchedulingError) -> None:
        print(f"{RED}  !! {exc.kind.value}: {exc.message}{RESET}")

    def print_schedule(self, schedule: DaySchedule) -> None:
        print(f"\n{BOLD}{schedule.machine_id} on {schedule.date} ({schedule.timezone}){RESET}")
        for slot in schedule.time_slots:
            colour = STATUS_COLOURS[slot.status]
            who = f"  {slot.booking.customer_name} {slot.booking.customer_phone}" if slot.booking else ""
            print(f"  {colour}{slot.start_time}-{slot.end_time}  {slot.status.value:<9}{who}{RESET}")
        print(
            f"  {schedule.available_slots} available / {schedule.booked_slots} booked / "
            f"{schedule.passed_slots} passed of {schedule.total_slots}"
        )

    # ------------------------------------------------------------------ #
    # Scenarios
    # ------------------------------------------------------------------ #

    async def run_schedule(self) -> None:
        bookings = self.core.bookings
        self.say(f"Booking M1 on {self.date} for two customers.")
        first = await bookings.create({
            "machine_id": "M1", "customer_name": "Somchai", "customer_phone": "081-234-5678",
            "local_date": self.date, "local_start_time": "14:00", "duration_minutes": 60,
        }, reference_time=self.clock())
        late = await bookings.create({
            "machine_id": "M1", "customer_name": "Anong", "customer_phone": "089-765-4321",
            "local_date": self.date, "local_start_time": "23:30", "duration_minutes": 90,
        }, reference_time=self.clock())
        self.system_log(
            f"{late.id}: {late.local_start_time}-{late.local_end_time}, "
            f"cross-midnight={late.is_cross_midnight}, price={late.total_price}"
        )

        try:
            await bookings.create({
                "machine_id": "M1", "customer_name": "Niran", "customer_phone": "0812223333",
                "local_date": self.date, "local_start_time": "14:30", "duration_minutes": 30,
            }, reference_time=self.clock())
        except SchedulingError as exc:
            self.error(exc)

        free = await bookings.is_slot_available("M1", self.date, "15:00", 30, reference_time=self.clock())
        self.system_log(f"15:00 still free after a 14:00-15:00 booking: {free}")

        self.print_schedule(await bookings.get_day_schedule("M1", self.date, reference_time=self.clock()))

        _, session = await bookings.check_in(first.id)
        self.clock.advance(60)
        await self.core.sessions.end_session(session.id)
        tz = settings.business.timezone
        for log in await bookings.get_session_logs([first.id]):
            self.system_log(
                f"{log.booking_id} {log.action.value} at {timeutils.format_local_time(log.recorded_at, tz)}"
            )

    async def run_walk_in(self) -> None:
        walk_ins = self.core.walk_ins
        self.say("Three parties walk in.")
        entries = []
        for name, phone in [("Kittisak", "0811111111"), ("Malee", "0822222222"), ("Prasert", "0833333333")]:
            entry = await walk_ins.join({"customer_name": name, "customer_phone": phone})
            entries.append(entry)
            self.system_log(f"#{entry.queue_number} {name}")

        for view in [await walk_ins.get_queue_status(e.id) for e in entries]:
            self.system_log(
                f"#{view.entry.queue_number}: {view.queue_ahead} ahead, ~{view.estimated_wait_minutes} min"
            )

        await walk_ins.call_customer(entries[0].id)
        seated, session = await walk_ins.seat_customer(entries[0].id, "M2")
        self.say(f"#{seated.queue_number} seated on {session.station_id} (session {session.id}).")

        view = await walk_ins.get_queue_status(entries[2].id)
        self.system_log(f"#{view.entry.queue_number} now has {view.queue_ahead} ahead")

        await walk_ins.cancel(entries[1].id)
        again = await walk_ins.cancel(entries[1].id)
        self.system_log(f"Cancelling #{again.queue_number} twice leaves it {again.status.value}")

        stats = await walk_ins.get_stats()
        self.system_log(f"Stats: {stats.model_dump()}")

    async def run_session(self) -> None:
        sessions = self.core.sessions
        self.say("Manual session on M3.")
        session = await sessions.start_session("M3", "Walk-up guest")
        try:
            await sessions.start_session("M3", "Someone else")
        except SchedulingError as exc:
            self.error(exc)

        machines = await self.core.queues.get_machine_stats()
        self.system_log(f"Machines: {machines.model_dump()}")

        self.clock.advance(45)
        ended = await sessions.end_session(session.id)
        self.system_log(f"Played {ended.duration_minutes} min, amount {ended.total_amount:.2f}")

        paid = await sessions.update_payment_status(ended.id, "paid")
        self.system_log(f"Payment: {paid.payment_status.value}")

        restarted = await sessions.start_session("M3", "Next guest")
        self.system_log(f"M3 free again, new session {restarted.id}")

        stats = await sessions.get_stats()
        self.system_log(f"Stats: {stats.model_dump()}")

    async def run(self, scenario: Optional[str] = None) -> None:
        runners = {
            "schedule": self.run_schedule,
            "walkin": self.run_walk_in,
            "session": self.run_session,
        }
        for name, runner in runners.items():
            if scenario in (None, name):
                set_request_id(new_request_id())
                print(f"\n{YELLOW}{BOLD}=== {name} ==={RESET}")
                await runner()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Offline scheduling console demo")
    parser.add_argument(
        "--scenario",
        choices=["schedule", "walkin", "session"],
        default=None,
        help="Run only one scenario instead of all of them",
    )
    parser.add_argument(
        "--date",
        default=None,
        help="Local business date (YYYY-MM-DD) to simulate; defaults to tomorrow",
    )
    args = parser.parse_args(argv)

    asyncio.run(ConsoleDemo(args.date).run(args.scenario))


if __name__ == "__main__":
    main()
