"""
Tests for the booking service: creation, compensation, lifecycle changes.
"""

import asyncio
from uuid import uuid4

import pytest
from structlog.testing import capture_logs

from appointments.core.exceptions import (
    BookingConflictError,
    BookingInternalError,
    BookingNotFoundError,
    BookingValidationError,
    SlotUnavailableError,
    StaleBookingError,
)
from appointments.infrastructure.memory import InMemoryBookingRepository, InMemorySlotGateway
from appointments.schemas.booking import BookingStatus, UpdateBookingRequest
from appointments.services.booking_service import BookingService


class RacingSlotGateway(InMemorySlotGateway):
    """Someone else grabs the slot between the availability check and reserve."""

    async def reserve(self, slot_id, booking_id):
        raise SlotUnavailableError(slot_id)


class BrokenReserveGateway(InMemorySlotGateway):
    async def reserve(self, slot_id, booking_id):
        raise ConnectionError("slot store unreachable")


class CancelledReserveGateway(InMemorySlotGateway):
    async def reserve(self, slot_id, booking_id):
        raise asyncio.CancelledError()


class BrokenReleaseGateway(InMemorySlotGateway):
    async def release(self, slot_id):
        raise ConnectionError("slot store unreachable")


class BrokenLookupGateway(InMemorySlotGateway):
    async def get_slot(self, business_id, slot_id):
        raise ConnectionError("slot store unreachable")


class ReadOnlyRepository(InMemoryBookingRepository):
    async def update(self, booking):
        raise ConnectionError("database is read-only")


class FlakyRepository(InMemoryBookingRepository):
    """Loses the first ``stale_writes`` updates to a concurrent writer."""

    def __init__(self, stale_writes: int):
        super().__init__()
        self.stale_writes = stale_writes

    async def update(self, booking):
        if self.stale_writes:
            self.stale_writes -= 1
            raise StaleBookingError(booking.id, booking.version)
        await super().update(booking)


def with_slot(gateway: InMemorySlotGateway, slot) -> InMemorySlotGateway:
    gateway.slots[slot.id] = slot
    return gateway


# --- create ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_booking(service, make_request, repository, slots, customers, slot):
    """Successful booking is pending, stamped with slot times, and holds the slot."""
    request = make_request()
    booking = await service.create_booking(request)

    assert booking.status is BookingStatus.PENDING
    assert booking.start_time == slot.start_time
    assert booking.end_time == slot.end_time
    assert booking.start_time < booking.end_time
    assert booking.notes == "First visit"
    assert slots.slots[slot.id].booking_id == booking.id
    assert repository.rows[booking.id].status is BookingStatus.PENDING
    assert customers.booking_counts[request.customer_id] == 1


@pytest.mark.asyncio
async def test_create_booking_validation_has_no_side_effects(service, make_request, repository, slots, slot):
    with pytest.raises(BookingValidationError) as exc_info:
        await service.create_booking(make_request(notes="x" * 501))

    assert exc_info.value.code == "NOTES_TOO_LONG"
    assert repository.rows == {}
    assert not slots.slots[slot.id].is_booked


@pytest.mark.asyncio
async def test_create_booking_slot_taken(service, make_request, repository, slot):
    """A slot that is already reserved fails the precheck before any write."""
    slot.booking_id = uuid4()

    with pytest.raises(BookingConflictError) as exc_info:
        await service.create_booking(make_request())

    assert exc_info.value.code == "SLOT_UNAVAILABLE"
    assert repository.rows == {}


@pytest.mark.asyncio
async def test_create_booking_unknown_slot(service, make_request, repository):
    with pytest.raises(BookingConflictError) as exc_info:
        await service.create_booking(make_request(slot_id=uuid4()))

    assert exc_info.value.code == "SLOT_UNAVAILABLE"
    assert repository.rows == {}


@pytest.mark.asyncio
async def test_create_booking_customer_not_found(service, make_request, repository, slots, slot):
    with pytest.raises(BookingNotFoundError) as exc_info:
        await service.create_booking(make_request(customer_id=uuid4()))

    assert exc_info.value.code == "CUSTOMER_NOT_FOUND"
    assert repository.rows == {}
    assert not slots.slots[slot.id].is_booked


@pytest.mark.asyncio
async def test_create_booking_staff_not_found(service, make_request, repository, slots, slot):
    with pytest.raises(BookingNotFoundError) as exc_info:
        await service.create_booking(make_request(staff_id=uuid4()))

    assert exc_info.value.code == "STAFF_NOT_FOUND"
    assert repository.rows == {}
    assert not slots.slots[slot.id].is_booked


@pytest.mark.asyncio
async def test_create_booking_customer_of_other_business(service, make_request, customers):
    """Existence checks are tenant-scoped."""
    outsider = customers.add(uuid4())

    with pytest.raises(BookingNotFoundError) as exc_info:
        await service.create_booking(make_request(customer_id=outsider))
    assert exc_info.value.code == "CUSTOMER_NOT_FOUND"


@pytest.mark.asyncio
async def test_create_booking_slot_lookup_failure_is_internal(
    repository, slots, customers, staff, make_request, slot
):
    service = BookingService(repository, with_slot(BrokenLookupGateway(), slot), customers, staff)

    with pytest.raises(BookingInternalError) as exc_info:
        await service.create_booking(make_request())

    assert exc_info.value.code == "INTERNAL_ERROR"
    assert "unreachable" not in exc_info.value.message
    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert repository.rows == {}


@pytest.mark.asyncio
async def test_lost_reservation_is_compensated(repository, slots, customers, staff, make_request, slot):
    """Create succeeded but reserve lost the race: no pending orphan survives."""
    service = BookingService(repository, with_slot(RacingSlotGateway(), slot), customers, staff)
    request = make_request()

    with capture_logs() as logs:
        with pytest.raises(BookingConflictError) as exc_info:
            await service.create_booking(request)

    assert exc_info.value.code == "SLOT_UNAVAILABLE"
    assert [row.status for row in repository.rows.values()] == [BookingStatus.CANCELLED]
    assert await repository.count_by_status(request.business_id, BookingStatus.PENDING) == 0
    assert customers.booking_counts[request.customer_id] == 0
    assert any(entry["event"] == "booking_compensated" for entry in logs)


@pytest.mark.asyncio
async def test_reserve_failure_is_compensated_and_internal(
    repository, slots, customers, staff, make_request, slot
):
    service = BookingService(repository, with_slot(BrokenReserveGateway(), slot), customers, staff)

    with pytest.raises(BookingInternalError):
        await service.create_booking(make_request())

    assert [row.status for row in repository.rows.values()] == [BookingStatus.CANCELLED]


@pytest.mark.asyncio
async def test_request_cancelled_during_reserve_is_compensated(
    repository, slots, customers, staff, make_request, slot
):
    service = BookingService(repository, with_slot(CancelledReserveGateway(), slot), customers, staff)

    with pytest.raises(asyncio.CancelledError):
        await service.create_booking(make_request())

    assert [row.status for row in repository.rows.values()] == [BookingStatus.CANCELLED]


@pytest.mark.asyncio
async def test_failed_compensation_is_logged_as_critical(slots, customers, staff, make_request, slot):
    repository = ReadOnlyRepository()
    service = BookingService(repository, with_slot(RacingSlotGateway(), slot), customers, staff)

    with capture_logs() as logs:
        with pytest.raises(BookingConflictError) as exc_info:
            await service.create_booking(make_request())

    assert exc_info.value.code == "SLOT_UNAVAILABLE"
    critical = [entry for entry in logs if entry["log_level"] == "critical"]
    assert [entry["event"] for entry in critical] == ["booking_compensation_failed"]
    assert critical[0]["reason"] == "slot_taken"


@pytest.mark.asyncio
async def test_customer_counter_failure_does_not_fail_booking(service, make_request, customers, slots, slot):
    request = make_request()

    async def broken_increment(customer_id):
        raise ConnectionError("stats store down")

    customers.increment_booking_count = broken_increment

    with capture_logs() as logs:
        booking = await service.create_booking(request)

    assert booking.status is BookingStatus.PENDING
    assert slots.slots[slot.id].booking_id == booking.id
    assert any(entry["event"] == "customer_booking_count_failed" for entry in logs)


# --- lifecycle --------------------------------------------------------------


@pytest.mark.asyncio
async def test_booking_lifecycle_scenario(service, make_request, slots, slot, business_id):
    """Create 09:00-09:30, confirm, cancel (slot freed), confirm again is rejected."""
    booking = await service.create_booking(make_request())
    assert booking.status is BookingStatus.PENDING
    assert (booking.start_time.hour, booking.start_time.minute) == (9, 0)

    confirmed = await service.confirm_booking(business_id, booking.id)
    assert confirmed.status is BookingStatus.CONFIRMED

    cancelled = await service.cancel_booking(business_id, booking.id)
    assert cancelled.status is BookingStatus.CANCELLED
    await slots.validate_availability(slot.id)

    with pytest.raises(BookingConflictError) as exc_info:
        await service.confirm_booking(business_id, booking.id)
    assert exc_info.value.code == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_slot_can_be_rebooked_after_cancellation(service, make_request, business_id):
    first = await service.create_booking(make_request())
    await service.cancel_booking(business_id, first.id)

    second = await service.create_booking(make_request())
    assert second.id != first.id
    assert second.status is BookingStatus.PENDING


@pytest.mark.asyncio
async def test_complete_confirmed_booking(service, make_request, business_id):
    booking = await service.create_booking(make_request())
    await service.confirm_booking(business_id, booking.id)

    completed = await service.complete_booking(business_id, booking.id)
    assert completed.status is BookingStatus.COMPLETED


@pytest.mark.asyncio
async def test_pending_booking_cannot_complete(service, make_request, business_id):
    booking = await service.create_booking(make_request())

    with pytest.raises(BookingConflictError) as exc_info:
        await service.complete_booking(business_id, booking.id)
    assert exc_info.value.code == "INVALID_TRANSITION"


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", ["cancelled", "completed"])
async def test_cancel_terminal_booking_is_rejected(service, make_request, repository, business_id, terminal):
    booking = await service.create_booking(make_request())
    if terminal == "completed":
        await service.confirm_booking(business_id, booking.id)
        await service.complete_booking(business_id, booking.id)
    else:
        await service.cancel_booking(business_id, booking.id)
    before = repository.rows[booking.id].model_copy()

    with pytest.raises(BookingConflictError) as exc_info:
        await service.cancel_booking(business_id, booking.id)

    assert exc_info.value.code == "INVALID_TRANSITION"
    assert repository.rows[booking.id] == before


@pytest.mark.asyncio
async def test_cancel_survives_slot_release_failure(
    repository, slots, customers, staff, make_request, slot, business_id
):
    service = BookingService(repository, with_slot(BrokenReleaseGateway(), slot), customers, staff)
    booking = await service.create_booking(make_request())

    with capture_logs() as logs:
        cancelled = await service.cancel_booking(business_id, booking.id)

    assert cancelled.status is BookingStatus.CANCELLED
    assert repository.rows[booking.id].status is BookingStatus.CANCELLED
    assert any(
        entry["event"] == "slot_release_failed" and entry["log_level"] == "error"
        for entry in logs
    )


@pytest.mark.asyncio
async def test_cancel_unknown_booking(service, business_id):
    with pytest.raises(BookingNotFoundError) as exc_info:
        await service.cancel_booking(business_id, uuid4())
    assert exc_info.value.code == "BOOKING_NOT_FOUND"


@pytest.mark.asyncio
async def test_bookings_are_invisible_to_other_businesses(service, make_request):
    booking = await service.create_booking(make_request())
    other_business = uuid4()

    with pytest.raises(BookingNotFoundError):
        await service.get_booking(other_business, booking.id)
    with pytest.raises(BookingNotFoundError):
        await service.cancel_booking(other_business, booking.id)


# --- update -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_notes_only(service, make_request, business_id):
    booking = await service.create_booking(make_request())

    updated = await service.update_booking(
        business_id, booking.id, UpdateBookingRequest(notes="Prefers the window seat")
    )

    assert updated.notes == "Prefers the window seat"
    assert updated.status is BookingStatus.PENDING
    assert updated.updated_at >= booking.updated_at
    assert updated.version == booking.version + 1


@pytest.mark.asyncio
async def test_update_same_status_is_not_a_transition(service, make_request, business_id):
    booking = await service.create_booking(make_request())

    updated = await service.update_booking(
        business_id, booking.id, UpdateBookingRequest(status="pending", notes="same")
    )
    assert updated.status is BookingStatus.PENDING
    assert updated.notes == "same"


@pytest.mark.asyncio
async def test_update_status_and_notes(service, make_request, business_id):
    booking = await service.create_booking(make_request())

    updated = await service.update_booking(
        business_id, booking.id, UpdateBookingRequest(status="confirmed", notes="Confirmed by phone")
    )
    assert updated.status is BookingStatus.CONFIRMED
    assert updated.notes == "Confirmed by phone"


@pytest.mark.asyncio
async def test_update_illegal_transition_leaves_row_unchanged(service, make_request, repository, business_id):
    booking = await service.create_booking(make_request())
    before = repository.rows[booking.id].model_copy()

    with pytest.raises(BookingConflictError) as exc_info:
        await service.update_booking(
            business_id, booking.id, UpdateBookingRequest(status="completed", notes="changed")
        )

    assert exc_info.value.code == "INVALID_TRANSITION"
    assert repository.rows[booking.id] == before


@pytest.mark.asyncio
async def test_update_rejects_unknown_status(service, make_request, business_id):
    booking = await service.create_booking(make_request())

    with pytest.raises(BookingValidationError) as exc_info:
        await service.update_booking(business_id, booking.id, UpdateBookingRequest(status="no_show"))
    assert exc_info.value.code == "INVALID_STATUS"


@pytest.mark.asyncio
async def test_update_rejects_long_notes(service, make_request, business_id):
    booking = await service.create_booking(make_request())

    with pytest.raises(BookingValidationError) as exc_info:
        await service.update_booking(business_id, booking.id, UpdateBookingRequest(notes="x" * 501))
    assert exc_info.value.code == "NOTES_TOO_LONG"


@pytest.mark.asyncio
async def test_update_unknown_booking(service, business_id):
    with pytest.raises(BookingNotFoundError) as exc_info:
        await service.update_booking(business_id, uuid4(), UpdateBookingRequest(status="confirmed"))
    assert exc_info.value.code == "BOOKING_NOT_FOUND"


@pytest.mark.asyncio
async def test_stale_update_is_retried(slots, customers, staff, make_request, business_id):
    repository = FlakyRepository(stale_writes=0)
    service = BookingService(repository, slots, customers, staff)
    booking = await service.create_booking(make_request())

    repository.stale_writes = 2
    confirmed = await service.confirm_booking(business_id, booking.id)

    assert confirmed.status is BookingStatus.CONFIRMED
    assert repository.rows[booking.id].status is BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_update_gives_up_after_max_retries(slots, customers, staff, make_request, business_id):
    repository = FlakyRepository(stale_writes=0)
    service = BookingService(repository, slots, customers, staff, max_update_retries=3)
    booking = await service.create_booking(make_request())

    repository.stale_writes = 3
    with pytest.raises(BookingConflictError) as exc_info:
        await service.confirm_booking(business_id, booking.id)

    assert exc_info.value.code == "BOOKING_CONFLICT"
    assert repository.rows[booking.id].status is BookingStatus.PENDING


# --- reads ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_listings_and_status_summary(service, make_request, slots, slot, business_id, customer_id, staff_id):
    first = await service.create_booking(make_request())
    later = slots.add_slot(business_id, staff_id, slot.end_time, slot.end_time.replace(minute=59))
    second = await service.create_booking(make_request(slot_id=later.id))
    await service.confirm_booking(business_id, second.id)

    by_customer = await service.get_customer_bookings(business_id, customer_id)
    assert [b.id for b in by_customer] == [second.id, first.id]

    by_staff = await service.get_staff_bookings(business_id, staff_id)
    assert [b.id for b in by_staff] == [first.id, second.id]

    assert len(await service.get_business_bookings(business_id)) == 2
    assert await service.get_business_bookings(uuid4()) == []

    assert await service.count_bookings_by_status(business_id, "pending") == 1
    assert await service.booking_status_summary(business_id) == {
        "pending": 1,
        "confirmed": 1,
        "cancelled": 0,
        "completed": 0,
    }
