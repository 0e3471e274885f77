"""Tests for creating, rescheduling, cancelling and looking up bookings."""

import pytest

from simbooking.errors import (
    InvalidInput,
    InvalidTimeFormat,
    InvalidTransition,
    ResourceNotFound,
    SlotConflict,
    Unauthorized,
)
from simbooking.scheduling import timeutils
from simbooking.scheduling.booking_service import BookingService
from simbooking.schemas.booking_schema import BookingLogAction, BookingStatus, CreateBookingData
from simbooking.schemas.session_schema import SessionSourceType
from tests.conftest import TODAY, TOMORROW, TZ, booking_request, seed_booking


@pytest.fixture
def service(store, config, clock):
    return BookingService(store, config, clock)


class TestCreate:
    @pytest.mark.asyncio
    async def test_creates_confirmed_booking(self, service):
        booking = await service.create(booking_request())
        assert booking.id.startswith("BK-")
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.customer_phone == "0812345678"
        assert booking.start_at == timeutils.to_absolute_instant(TOMORROW, "14:00", TZ)
        assert booking.local_end_time == "15:00"
        assert booking.total_price == 100

    @pytest.mark.asyncio
    async def test_accepts_request_model(self, service):
        booking = await service.create(CreateBookingData(**booking_request()))
        assert booking.machine_id == "M1"

    @pytest.mark.asyncio
    async def test_price_table_without_hourly_rate(self, service):
        booking = await service.create(booking_request(machine_id="M2", duration_minutes=120))
        assert booking.total_price == 200

    @pytest.mark.asyncio
    async def test_cross_midnight_booking(self, service):
        booking = await service.create(
            booking_request(local_start_time="23:30", duration_minutes=90)
        )
        assert booking.is_cross_midnight
        assert booking.local_end_date == "2026-03-16"
        assert booking.local_end_time == "01:00"

    @pytest.mark.asyncio
    async def test_overlap_rejected(self, service):
        first = await service.create(booking_request())
        with pytest.raises(SlotConflict) as exc_info:
            await service.create(booking_request(local_start_time="14:30", duration_minutes=30))
        assert exc_info.value.conflicting_ids == [first.id]

    @pytest.mark.asyncio
    async def test_adjacent_booking_allowed(self, service):
        await service.create(booking_request())
        second = await service.create(booking_request(local_start_time="15:00"))
        assert second.local_start_time == "15:00"

    @pytest.mark.asyncio
    async def test_cancelled_slot_can_be_rebooked(self, service):
        first = await service.create(booking_request())
        await service.cancel(first.id)
        again = await service.create(booking_request())
        assert again.id != first.id

    @pytest.mark.asyncio
    async def test_past_start_rejected(self, service):
        with pytest.raises(InvalidInput, match="passed"):
            await service.create(booking_request(local_date=TODAY, local_start_time="09:00"))

    @pytest.mark.asyncio
    async def test_reference_time_overrides_clock(self, service):
        reference = timeutils.to_absolute_instant(TOMORROW, "15:00", TZ)
        with pytest.raises(InvalidInput):
            await service.create(booking_request(), reference_time=reference)

    @pytest.mark.asyncio
    async def test_unknown_machine(self, service):
        with pytest.raises(ResourceNotFound):
            await service.create(booking_request(machine_id="M9"))

    @pytest.mark.asyncio
    async def test_inactive_machine(self, service):
        with pytest.raises(InvalidInput, match="not accepting"):
            await service.create(booking_request(machine_id="M4"))

    @pytest.mark.asyncio
    async def test_maintenance_machine_still_bookable_in_advance(self, service):
        booking = await service.create(booking_request(machine_id="M3"))
        assert booking.machine_id == "M3"

    @pytest.mark.asyncio
    async def test_missing_fields_listed(self, service):
        with pytest.raises(InvalidInput, match="machine_id, local_date"):
            await service.create(booking_request(machine_id="", local_date=""))

    @pytest.mark.asyncio
    async def test_bad_phone(self, service):
        with pytest.raises(InvalidInput, match="customer_phone"):
            await service.create(booking_request(customer_phone="12"))

    @pytest.mark.asyncio
    async def test_bad_time(self, service):
        with pytest.raises(InvalidTimeFormat):
            await service.create(booking_request(local_start_time="2pm"))

    @pytest.mark.asyncio
    async def test_duration_over_limit(self, service):
        with pytest.raises(InvalidInput, match="duration_minutes"):
            await service.create(booking_request(duration_minutes=800))

    @pytest.mark.asyncio
    async def test_explicit_timezone(self, service):
        booking = await service.create(booking_request(timezone="Asia/Tokyo"))
        assert booking.business_timezone == "Asia/Tokyo"
        assert booking.start_at == timeutils.to_absolute_instant(TOMORROW, "14:00", "Asia/Tokyo")


class TestUpdate:
    @pytest.mark.asyncio
    async def test_reschedule_moves_interval(self, service):
        booking = await service.create(booking_request())
        moved = await service.update(booking.id, {"local_start_time": "16:00", "duration_minutes": 120})
        assert moved.local_start_time == "16:00"
        assert moved.local_end_time == "18:00"
        assert moved.total_price == 200

    @pytest.mark.asyncio
    async def test_reschedule_onto_itself_allowed(self, service):
        booking = await service.create(booking_request())
        moved = await service.update(booking.id, {"local_start_time": "14:30"})
        assert moved.local_start_time == "14:30"

    @pytest.mark.asyncio
    async def test_reschedule_into_conflict(self, service):
        await service.create(booking_request(local_start_time="16:00"))
        booking = await service.create(booking_request())
        with pytest.raises(SlotConflict):
            await service.update(booking.id, {"local_start_time": "15:30"})
        assert (await service.get_by_id(booking.id)).local_start_time == "14:00"

    @pytest.mark.asyncio
    async def test_reschedule_into_past(self, service):
        booking = await service.create(booking_request())
        with pytest.raises(InvalidInput):
            await service.update(booking.id, {"local_date": TODAY, "local_start_time": "08:00"})

    @pytest.mark.asyncio
    async def test_cannot_reschedule_cancelled(self, service):
        booking = await service.create(booking_request())
        await service.cancel(booking.id)
        with pytest.raises(InvalidTransition):
            await service.update(booking.id, {"local_start_time": "18:00"})

    @pytest.mark.asyncio
    async def test_notes_only(self, service):
        booking = await service.create(booking_request())
        updated = await service.update(booking.id, {"notes": "bring own wheel"})
        assert updated.notes == "bring own wheel"
        assert updated.start_at == booking.start_at

    @pytest.mark.asyncio
    async def test_status_change_goes_through_transitions(self, service):
        booking = await service.create(booking_request())
        cancelled = await service.update(booking.id, {"status": "cancelled"})
        assert cancelled.status == BookingStatus.CANCELLED
        with pytest.raises(InvalidTransition):
            await service.update(booking.id, {"status": "confirmed"})

    @pytest.mark.asyncio
    async def test_status_checked_in_needs_check_in(self, service):
        booking = await service.create(booking_request())
        with pytest.raises(InvalidInput):
            await service.update(booking.id, {"status": "checked_in"})

    @pytest.mark.asyncio
    async def test_other_customer_cannot_update(self, service):
        booking = await service.create(booking_request(customer_id="cust-1"))
        with pytest.raises(Unauthorized):
            await service.update(booking.id, {"notes": "x"}, requester_customer_id="cust-2")


class TestCancelAndCheckIn:
    @pytest.mark.asyncio
    async def test_cancel_twice_returns_same_booking(self, service):
        booking = await service.create(booking_request())
        first = await service.cancel(booking.id)
        second = await service.cancel(booking.id)
        assert first.status == second.status == BookingStatus.CANCELLED
        assert second.updated_at == first.updated_at

    @pytest.mark.asyncio
    async def test_cancel_by_owner_only(self, service):
        booking = await service.create(booking_request(customer_id="cust-1"))
        with pytest.raises(Unauthorized):
            await service.cancel(booking.id, requester_customer_id="cust-2")
        assert (await service.cancel(booking.id, "cust-1")).status == BookingStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_unknown(self, service):
        with pytest.raises(ResourceNotFound):
            await service.cancel("BK-NOPE")

    @pytest.mark.asyncio
    async def test_check_in_starts_session(self, service):
        booking = await service.create(booking_request())
        checked_in, session = await service.check_in(booking.id)
        assert checked_in.status == BookingStatus.CHECKED_IN
        assert session.source_type == SessionSourceType.BOOKING

    @pytest.mark.asyncio
    async def test_check_in_cancelled_rejected(self, service):
        booking = await service.create(booking_request())
        await service.cancel(booking.id)
        with pytest.raises(InvalidTransition):
            await service.check_in(booking.id)


class TestSessionLogs:
    @pytest.mark.asyncio
    async def test_check_in_and_end_record_start_stop(self, service, clock):
        booking = await service.create(booking_request())
        _, session = await service.check_in(booking.id)
        started = clock()
        clock.advance(minutes=60)
        await service.sessions.end_session(session.id)

        logs = await service.get_session_logs([booking.id])
        assert [log.action for log in logs] == [BookingLogAction.START, BookingLogAction.STOP]
        assert logs[0].recorded_at == started
        assert logs[1].recorded_at == clock()
        assert {log.session_id for log in logs} == {session.id}

    @pytest.mark.asyncio
    async def test_manual_marks(self, service, clock):
        booking = await service.create(booking_request())
        await service.log_session(booking.id, "START")
        clock.advance(minutes=5)
        stop = await service.log_session(booking.id, BookingLogAction.STOP)
        assert stop.session_id is None
        logs = await service.get_session_logs(booking.id)
        assert [log.action.value for log in logs] == ["START", "STOP"]

    @pytest.mark.asyncio
    async def test_logs_filtered_by_booking(self, service):
        first = await service.create(booking_request())
        second = await service.create(booking_request(local_start_time="16:00"))
        await service.log_session(first.id, "START")
        await service.log_session(second.id, "START")
        assert [log.booking_id for log in await service.get_session_logs(f"{second.id}, ")] == [second.id]
        both = await service.get_session_logs([first.id, second.id])
        assert len(both) == 2

    @pytest.mark.asyncio
    async def test_unknown_action(self, service):
        booking = await service.create(booking_request())
        with pytest.raises(InvalidInput, match="action"):
            await service.log_session(booking.id, "PAUSE")

    @pytest.mark.asyncio
    async def test_unknown_booking(self, service):
        with pytest.raises(ResourceNotFound):
            await service.log_session("BK-NOPE", "START")

    @pytest.mark.asyncio
    async def test_ids_required(self, service):
        with pytest.raises(InvalidInput):
            await service.get_session_logs([])
        with pytest.raises(InvalidInput):
            await service.get_session_logs(" , ")


class TestLookups:
    @pytest.mark.asyncio
    async def test_my_bookings(self, service):
        mine = await service.create(booking_request(customer_id="cust-1"))
        await service.create(booking_request(customer_id="cust-2", local_start_time="18:00"))
        assert [b.id for b in await service.get_my_bookings("cust-1")] == [mine.id]

    @pytest.mark.asyncio
    async def test_by_phone_ignores_formatting(self, service):
        booking = await service.create(booking_request())
        assert [b.id for b in await service.get_by_phone("081 234 5678")] == [booking.id]

    @pytest.mark.asyncio
    async def test_by_customer_or_phone_deduplicates(self, service):
        booking = await service.create(booking_request(customer_id="cust-1"))
        found = await service.get_by_customer_or_phone("cust-1", "0812345678")
        assert [b.id for b in found] == [booking.id]

    @pytest.mark.asyncio
    async def test_by_customer_or_phone_needs_one(self, service):
        with pytest.raises(InvalidInput):
            await service.get_by_customer_or_phone()

    @pytest.mark.asyncio
    async def test_by_machine_and_date_masks_others(self, service):
        await service.create(booking_request(customer_id="cust-1"))
        await service.create(booking_request(customer_id="cust-2", local_start_time="18:00"))
        bookings = await service.get_by_machine_and_date("M1", TOMORROW, viewer_customer_id="cust-1")
        phones = {b.customer_id: b.customer_phone for b in bookings}
        assert phones == {"cust-1": "0812345678", "cust-2": "******5678"}

    @pytest.mark.asyncio
    async def test_by_machine_and_date_includes_cross_midnight_tail(self, service, store):
        tail = await seed_booking(store, date=TODAY, start_time="23:30", duration_minutes=90)
        bookings = await service.get_by_machine_and_date("M1", TOMORROW)
        assert [b.id for b in bookings] == [tail.id]

    @pytest.mark.asyncio
    async def test_get_by_id_unknown(self, service):
        with pytest.raises(ResourceNotFound):
            await service.get_by_id("BK-NOPE")


class TestDelegation:
    @pytest.mark.asyncio
    async def test_availability_reflects_created_booking(self, service):
        await service.create(booking_request())
        assert not await service.is_slot_available("M1", TOMORROW, "14:30", 30)
        assert await service.is_slot_available("M1", TOMORROW, "15:00", 30)

    @pytest.mark.asyncio
    async def test_day_schedule(self, service):
        booking = await service.create(booking_request())
        schedule = await service.get_day_schedule("M1", TOMORROW)
        assert schedule.slot_at("14:00").booking_id == booking.id

    def test_available_dates_start_today(self, service):
        assert service.get_available_dates(days_ahead=2) == [TODAY, TOMORROW]

    @pytest.mark.asyncio
    async def test_stats(self, service):
        first = await service.create(booking_request())
        await service.create(booking_request(local_start_time="18:00"))
        await service.cancel(first.id)
        totals = await service.get_stats()
        assert totals.total_bookings == 2
        assert totals.confirmed_bookings == 1
        assert totals.cancelled_bookings == 1
        assert (await service.get_stats(TODAY)).total_bookings == 0
