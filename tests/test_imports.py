"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""

import pytest


class TestSchemaImports:
    def test_import_booking_schema(self):
        from simbooking.schemas.booking_schema import Booking, BookingStatus, CreateBookingData
        assert BookingStatus.CHECKED_IN == "checked_in"
        assert Booking is not None
        assert CreateBookingData is not None

    def test_import_session_schema(self):
        from simbooking.schemas.session_schema import PaymentStatus, SessionState
        assert PaymentStatus.UNPAID == "unpaid"
        assert SessionState.ENDED == "ended"

    def test_schema_package_reexports(self):
        from simbooking.schemas import DaySchedule, Machine, Session, WalkInQueueEntry
        assert DaySchedule is not None
        assert Machine is not None
        assert Session is not None
        assert WalkInQueueEntry is not None


class TestSchedulingImports:
    def test_scheduling_package_reexports(self):
        from simbooking.scheduling import (
            BookingService,
            DayScheduleBuilder,
            QueuePositionAssigner,
            SessionStateMachine,
            SlotAvailabilityEngine,
            WalkInService,
            next_position,
        )
        assert next_position([]) == 1
        assert all(callable(c) for c in (
            BookingService, DayScheduleBuilder, QueuePositionAssigner,
            SessionStateMachine, SlotAvailabilityEngine, WalkInService,
        ))

    def test_store_package_exports_port_only(self):
        import simbooking.store as store_pkg
        assert store_pkg.__all__ == ["SchedulingStore"]

    def test_memory_store_is_a_scheduling_store(self):
        from simbooking.store import SchedulingStore
        from simbooking.store.memory import MemorySchedulingStore
        assert issubclass(MemorySchedulingStore, SchedulingStore)


class TestConfigImport:
    def test_import_config(self):
        from simbooking.config import settings
        assert settings.business.name
        assert settings.scheduling.slot_minutes in (15, 30, 60)
        assert settings.scheduling.average_session_minutes >= 1


class TestConsoleDemo:
    def test_console_demo_imports(self):
        from console_demo import ConsoleDemo
        demo = ConsoleDemo("2026-03-14")
        assert demo.date == "2026-03-14"
        assert demo.core.store is demo.store

    @pytest.mark.asyncio
    async def test_console_demo_runs_all_scenarios(self, capsys):
        from console_demo import ConsoleDemo
        await ConsoleDemo("2026-03-14").run()
        out = capsys.readouterr().out
        assert "=== schedule ===" in out
        assert "slot_conflict" in out
        assert "station_occupied" in out
