"""Tests for the slot availability engine."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from simbooking.errors import InvalidInput, InvalidTimeFormat, ResourceNotFound, StoreUnavailable
from simbooking.scheduling import timeutils
from simbooking.scheduling.availability import SlotAvailabilityEngine, overlaps
from simbooking.schemas.booking_schema import BookingStatus
from tests.conftest import TODAY, TOMORROW, TZ, seed_booking


def _t(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 14, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def engine(store, config):
    return SlotAvailabilityEngine(store, config)


class TestOverlaps:
    def test_partial_overlap(self):
        assert overlaps(_t(14), _t(15), _t(14, 30), _t(15, 30))

    def test_adjacent_intervals_do_not_overlap(self):
        assert not overlaps(_t(14), _t(15), _t(15), _t(16))

    def test_containment(self):
        assert overlaps(_t(10), _t(18), _t(12), _t(13))

    def test_identical(self):
        assert overlaps(_t(10), _t(11), _t(10), _t(11))

    def test_disjoint(self):
        assert not overlaps(_t(10), _t(11), _t(12), _t(13))

    def test_symmetry(self):
        points = [_t(10), _t(10, 30), _t(11), _t(11, 30), _t(12)]
        intervals = [(a, b) for a, b in itertools.combinations(points, 2)]
        for (a_start, a_end), (b_start, b_end) in itertools.product(intervals, repeat=2):
            assert overlaps(a_start, a_end, b_start, b_end) == overlaps(b_start, b_end, a_start, a_end)


class TestIsSlotAvailable:
    @pytest.mark.asyncio
    async def test_empty_machine_is_available(self, engine):
        assert await engine.is_slot_available("M1", TOMORROW, "14:00", 60)

    @pytest.mark.asyncio
    async def test_overlapping_request_unavailable(self, engine, store):
        await seed_booking(store, start_time="14:00", duration_minutes=60)
        assert not await engine.is_slot_available("M1", TOMORROW, "14:30", 30)

    @pytest.mark.asyncio
    async def test_adjacent_request_available(self, engine, store):
        await seed_booking(store, start_time="14:00", duration_minutes=60)
        assert await engine.is_slot_available("M1", TOMORROW, "15:00", 30)

    @pytest.mark.asyncio
    async def test_request_ending_at_booking_start_available(self, engine, store):
        await seed_booking(store, start_time="14:00", duration_minutes=60)
        assert await engine.is_slot_available("M1", TOMORROW, "13:00", 60)

    @pytest.mark.asyncio
    async def test_other_machine_unaffected(self, engine, store):
        await seed_booking(store, machine_id="M1", start_time="14:00")
        assert await engine.is_slot_available("M2", TOMORROW, "14:00", 60)

    @pytest.mark.asyncio
    async def test_cancelled_booking_does_not_block(self, engine, store):
        await seed_booking(store, start_time="14:00", status=BookingStatus.CANCELLED)
        assert await engine.is_slot_available("M1", TOMORROW, "14:00", 60)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [
        BookingStatus.PENDING, BookingStatus.CONFIRMED,
        BookingStatus.CHECKED_IN, BookingStatus.COMPLETED,
    ])
    async def test_non_cancelled_statuses_block(self, engine, store, status):
        await seed_booking(store, start_time="14:00", status=status)
        assert not await engine.is_slot_available("M1", TOMORROW, "14:00", 30)

    @pytest.mark.asyncio
    async def test_previous_day_cross_midnight_booking_blocks(self, engine, store):
        await seed_booking(store, date=TODAY, start_time="23:30", duration_minutes=90)
        assert not await engine.is_slot_available("M1", TOMORROW, "00:30", 30)
        assert await engine.is_slot_available("M1", TOMORROW, "01:00", 30)

    @pytest.mark.asyncio
    async def test_candidate_crossing_midnight_sees_next_day_booking(self, engine, store):
        await seed_booking(store, date=TOMORROW, start_time="00:30", duration_minutes=60)
        assert not await engine.is_slot_available("M1", TODAY, "23:30", 90)

    @pytest.mark.asyncio
    async def test_timezone_defaults_to_config(self, engine, store):
        await seed_booking(store, start_time="14:00")
        assert not await engine.is_slot_available("M1", TOMORROW, "14:00", 30, timezone=None)


class TestPassedPolicy:
    @pytest.mark.asyncio
    async def test_start_before_reference_time_unavailable(self, engine):
        reference = timeutils.to_absolute_instant(TODAY, "10:05", TZ)
        assert not await engine.is_slot_available("M1", TODAY, "10:00", 30, reference_time=reference)

    @pytest.mark.asyncio
    async def test_start_equal_to_reference_time_available(self, engine):
        reference = timeutils.to_absolute_instant(TODAY, "10:30", TZ)
        assert await engine.is_slot_available("M1", TODAY, "10:30", 30, reference_time=reference)

    @pytest.mark.asyncio
    async def test_reference_time_as_iso_string(self, engine):
        assert not await engine.is_slot_available(
            "M1", TODAY, "09:00", 30, reference_time="2026-03-14T03:00:00Z"
        )

    @pytest.mark.asyncio
    async def test_no_reference_time_means_no_passed_check(self, engine):
        assert await engine.is_slot_available("M1", "2020-01-01", "09:00", 30)


class TestValidationAndErrors:
    @pytest.mark.asyncio
    async def test_unknown_machine(self, engine):
        with pytest.raises(ResourceNotFound):
            await engine.is_slot_available("NOPE", TOMORROW, "14:00", 60)

    @pytest.mark.asyncio
    async def test_bad_time_rejected_before_store(self, engine, store, monkeypatch):
        async def fail(*args, **kwargs):
            raise AssertionError("store must not be called")

        monkeypatch.setattr(store, "get_machine", fail)
        with pytest.raises(InvalidTimeFormat):
            await engine.is_slot_available("M1", TOMORROW, "14:99", 60)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", [0, -30, 721])
    async def test_bad_duration(self, engine, duration):
        with pytest.raises(InvalidInput):
            await engine.is_slot_available("M1", TOMORROW, "14:00", duration)

    @pytest.mark.asyncio
    async def test_missing_machine_id(self, engine):
        with pytest.raises(InvalidInput):
            await engine.is_slot_available("", TOMORROW, "14:00", 60)

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, engine, store, monkeypatch):
        async def broken(*args, **kwargs):
            raise StoreUnavailable("database timed out")

        monkeypatch.setattr(store, "list_bookings_in_window", broken)
        with pytest.raises(StoreUnavailable):
            await engine.is_slot_available("M1", TOMORROW, "14:00", 60)

    @pytest.mark.asyncio
    async def test_read_only(self, engine, store):
        await seed_booking(store, start_time="14:00")
        before = await store.list_bookings()
        await engine.is_slot_available("M1", TOMORROW, "14:30", 30)
        assert await store.list_bookings() == before


class TestFindConflicts:
    @pytest.mark.asyncio
    async def test_returns_conflicting_bookings(self, engine, store):
        first = await seed_booking(store, start_time="14:00", duration_minutes=60)
        await seed_booking(store, start_time="16:00", duration_minutes=60)
        conflicts = await engine.find_conflicts("M1", TOMORROW, "14:30", 60)
        assert [b.id for b in conflicts] == [first.id]

    @pytest.mark.asyncio
    async def test_excludes_given_booking(self, engine, store):
        first = await seed_booking(store, start_time="14:00", duration_minutes=60)
        conflicts = await engine.find_conflicts(
            "M1", TOMORROW, "14:30", 60, exclude_booking_id=first.id
        )
        assert conflicts == []

    @pytest.mark.asyncio
    async def test_spans_the_whole_window(self, engine, store):
        await seed_booking(store, start_time="10:00", duration_minutes=60)
        await seed_booking(store, start_time="12:00", duration_minutes=60)
        conflicts = await engine.find_conflicts("M1", TOMORROW, "09:00", 360)
        assert len(conflicts) == 2
        assert all(b.end_at - b.start_at == timedelta(hours=1) for b in conflicts)
