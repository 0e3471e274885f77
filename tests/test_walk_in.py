"""Tests for the same-day walk-in queue."""

import asyncio

import pytest

from simbooking.errors import InvalidInput, InvalidTransition, ResourceNotFound
from simbooking.scheduling.walk_in import WalkInService
from simbooking.schemas.queue_schema import WalkInStatus
from tests.conftest import TOMORROW, walk_in_request


@pytest.fixture
def walk_ins(store, config, clock):
    return WalkInService(store, config, clock)


class TestJoin:
    @pytest.mark.asyncio
    async def test_numbers_count_up(self, walk_ins):
        first = await walk_ins.join(walk_in_request())
        second = await walk_ins.join(walk_in_request(customer_name="Niran"))
        assert (first.queue_number, second.queue_number) == (1, 2)
        assert first.status == WalkInStatus.WAITING
        assert first.id.startswith("WQ-")

    @pytest.mark.asyncio
    async def test_next_number_preview(self, walk_ins):
        assert await walk_ins.get_next_queue_number() == 1
        await walk_ins.join(walk_in_request())
        assert await walk_ins.get_next_queue_number() == 2

    @pytest.mark.asyncio
    async def test_numbers_reset_on_new_business_day(self, walk_ins, clock):
        await walk_ins.join(walk_in_request())
        await walk_ins.join(walk_in_request())
        clock.set_local(TOMORROW, "09:00")
        assert await walk_ins.get_next_queue_number() == 1
        assert (await walk_ins.join(walk_in_request())).queue_number == 1

    @pytest.mark.asyncio
    async def test_concurrent_joins_get_distinct_numbers(self, walk_ins):
        entries = await asyncio.gather(*(walk_ins.join(walk_in_request()) for _ in range(8)))
        assert sorted(e.queue_number for e in entries) == list(range(1, 9))

    @pytest.mark.asyncio
    async def test_phone_normalized(self, walk_ins):
        entry = await walk_ins.join(walk_in_request(customer_phone="089-999-9999"))
        assert entry.customer_phone == "0899999999"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("party_size", [0, 11])
    async def test_party_size_bounds(self, walk_ins, party_size):
        with pytest.raises(InvalidInput, match="party_size"):
            await walk_ins.join(walk_in_request(party_size=party_size))

    @pytest.mark.asyncio
    async def test_short_name_rejected(self, walk_ins):
        with pytest.raises(InvalidInput, match="customer_name"):
            await walk_ins.join(walk_in_request(customer_name="A"))

    @pytest.mark.asyncio
    async def test_unknown_preferred_machine(self, walk_ins):
        with pytest.raises(ResourceNotFound):
            await walk_ins.join(walk_in_request(preferred_machine_id="M9"))

    @pytest.mark.asyncio
    async def test_missing_phone(self, walk_ins):
        with pytest.raises(InvalidInput):
            await walk_ins.join({"customer_name": "Malee"})


class TestFlow:
    @pytest.mark.asyncio
    async def test_call_seat(self, walk_ins, store, clock):
        entry = await walk_ins.join(walk_in_request())
        await walk_ins.call_customer(entry.id)
        clock.advance(minutes=12)
        seated, session = await walk_ins.seat_customer(entry.id, "M1", estimated_duration_minutes=30)
        assert seated.status == WalkInStatus.SEATED
        assert seated.wait_time_minutes == 12
        assert session.station_id == "M1"

    @pytest.mark.asyncio
    async def test_seat_straight_from_waiting(self, walk_ins):
        entry = await walk_ins.join(walk_in_request())
        seated, _ = await walk_ins.seat_customer(entry.id, "M2")
        assert seated.status == WalkInStatus.SEATED

    @pytest.mark.asyncio
    async def test_seat_on_maintenance_station(self, walk_ins):
        entry = await walk_ins.join(walk_in_request())
        with pytest.raises(InvalidTransition):
            await walk_ins.seat_customer(entry.id, "M3")
        assert (await walk_ins.get_entry(entry.id)).status == WalkInStatus.WAITING

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self, walk_ins):
        entry = await walk_ins.join(walk_in_request())
        await walk_ins.cancel(entry.id)
        again = await walk_ins.cancel(entry.id)
        assert again.status == WalkInStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cannot_call_seated(self, walk_ins):
        entry = await walk_ins.join(walk_in_request())
        await walk_ins.seat_customer(entry.id, "M2")
        with pytest.raises(InvalidTransition):
            await walk_ins.call_customer(entry.id)

    @pytest.mark.asyncio
    async def test_unknown_entry(self, walk_ins):
        with pytest.raises(ResourceNotFound):
            await walk_ins.call_customer("WQ-NOPE")


class TestQueueStatus:
    @pytest.mark.asyncio
    async def test_position_and_wait(self, walk_ins, clock):
        first = await walk_ins.join(walk_in_request())
        clock.advance(minutes=1)
        second = await walk_ins.join(walk_in_request())
        clock.advance(minutes=1)
        third = await walk_ins.join(walk_in_request())

        status = await walk_ins.get_queue_status(third.id)
        assert status.queue_ahead == 2
        assert status.estimated_wait_minutes == 60

        await walk_ins.call_customer(first.id)
        assert (await walk_ins.get_queue_status(third.id)).queue_ahead == 2

        await walk_ins.seat_customer(first.id, "M1")
        await walk_ins.cancel(second.id)
        status = await walk_ins.get_queue_status(third.id)
        assert status.queue_ahead == 1
        assert status.estimated_wait_minutes == 30

    @pytest.mark.asyncio
    async def test_seated_party_still_ahead(self, walk_ins, clock):
        first = await walk_ins.join(walk_in_request())
        clock.advance(minutes=1)
        second = await walk_ins.join(walk_in_request(customer_name="Niran"))
        await walk_ins.seat_customer(first.id, "M1")

        assert (await walk_ins.get_queue_status(second.id)).queue_ahead == 1
        assert (await walk_ins.get_queue_status(first.id)).queue_ahead == 0

    @pytest.mark.asyncio
    async def test_my_queue_status(self, walk_ins, clock):
        await walk_ins.join(walk_in_request())
        clock.advance(minutes=1)
        mine = await walk_ins.join(walk_in_request(customer_id="cust-1"))
        views = await walk_ins.get_my_queue_status("cust-1")
        assert [v.entry.id for v in views] == [mine.id]
        assert views[0].queue_ahead == 1

    @pytest.mark.asyncio
    async def test_my_queue_status_skips_finished(self, walk_ins):
        entry = await walk_ins.join(walk_in_request(customer_id="cust-1"))
        await walk_ins.cancel(entry.id)
        assert await walk_ins.get_my_queue_status("cust-1") == []

    @pytest.mark.asyncio
    async def test_waiting_list(self, walk_ins):
        first = await walk_ins.join(walk_in_request())
        second = await walk_ins.join(walk_in_request())
        third = await walk_ins.join(walk_in_request())
        await walk_ins.call_customer(second.id)
        await walk_ins.cancel(third.id)
        assert [e.id for e in await walk_ins.get_waiting()] == [first.id, second.id]


class TestStats:
    @pytest.mark.asyncio
    async def test_counts_and_average_wait(self, walk_ins, clock):
        a = await walk_ins.join(walk_in_request())
        b = await walk_ins.join(walk_in_request())
        c = await walk_ins.join(walk_in_request())
        await walk_ins.join(walk_in_request())

        clock.advance(minutes=10)
        await walk_ins.seat_customer(a.id, "M1")
        clock.advance(minutes=10)
        await walk_ins.seat_customer(b.id, "M2")
        await walk_ins.call_customer(c.id)

        stats = await walk_ins.get_stats()
        assert stats.waiting_count == 1
        assert stats.called_count == 1
        assert stats.seated_today == 2
        assert stats.average_wait_minutes == 15

    @pytest.mark.asyncio
    async def test_yesterdays_activity_not_counted(self, walk_ins, clock):
        entry = await walk_ins.join(walk_in_request())
        await walk_ins.cancel(entry.id)
        clock.advance(days=1)
        stats = await walk_ins.get_stats()
        assert stats.cancelled_today == 0
