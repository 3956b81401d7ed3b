"""
Booking service: slot reservation and booking lifecycle.

CONSISTENCY STRATEGY: Persist, Reserve, Compensate
==================================================

Problem:
  A booking lives in two stores that share no transaction. The booking row
  (tenant-facing record) is ours; the slot's "taken" flag belongs to the slot
  store. Two customers racing for the 09:00 slot must not both end up with a
  booking, and a customer must never see a booking whose slot was lost.

Solution (saga-style):
  1. Validate input, then ask the slot store whether the slot looks free.
     This check is advisory only - it does not lock anything.
  2. Confirm the customer and staff member exist in this business.
  3. Read the slot's time bounds and stamp them onto a new pending booking.
  4. Persist the booking row. First durable side effect.
  5. Ask the slot store to reserve the slot for this booking id. This is the
     real concurrency checkpoint: the store does a compare-and-set
     (UPDATE slots ... WHERE status = 'available'), so at most one racing
     caller wins.
     If the reservation fails the booking row is an orphan and is compensated:
     pending -> cancelled, through the same state machine as every other
     mutation. Nothing is deleted, and no pending row survives.
  6. Bump the customer's booking counter. Best effort: statistics only.

  Cancellation flips the row to cancelled first and releases the slot second.
  A failed release is logged and counted, never surfaced: the booking is
  already durably cancelled and the slot is left for reconciliation.

Update races:
  Booking rows carry a version column. Repository.update is a conditional
  UPDATE ... WHERE version = :expected; when it matches nothing we re-read the
  booking, re-check the transition against the fresh status and try again,
  up to BOOKING_UPDATE_MAX_RETRIES times.

The service keeps no mutable state of its own, so one instance can serve any
number of concurrent requests.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar
from uuid import UUID

from appointments.core.config import get_settings
from appointments.core.exceptions import (
    BookingConflictError,
    BookingError,
    BookingInternalError,
    BookingNotFoundError,
    BookingValidationError,
    SlotError,
    StaleBookingError,
)
from appointments.core.logging import booking_log_context, get_logger
from appointments.core.metrics import (
    booking_latency,
    record_booking_attempt,
    record_compensation,
    record_db_retry,
    record_side_effect_failure,
    record_transition,
)
from appointments.schemas.booking import (
    Booking,
    BookingStatus,
    CreateBookingRequest,
    UpdateBookingRequest,
)
from appointments.services.booking_state import ensure_transition
from appointments.services.interfaces import (
    BookingRepository,
    CustomerDirectory,
    SlotGateway,
    StaffDirectory,
)
from appointments.services.validation import (
    parse_status,
    validate_booking_data,
    validate_create_request,
    validate_notes,
)

logger = get_logger(__name__)

T = TypeVar("T")

_ATTEMPT_OUTCOME = {
    "validation": "validation",
    "not_found": "not_found",
    "conflict": "conflict",
}


class BookingService:
    def __init__(
        self,
        repository: BookingRepository,
        slots: SlotGateway,
        customers: CustomerDirectory,
        staff: StaffDirectory,
        max_update_retries: Optional[int] = None,
    ) -> None:
        self.repository = repository
        self.slots = slots
        self.customers = customers
        self.staff = staff
        self.max_update_retries = max_update_retries or get_settings().BOOKING_UPDATE_MAX_RETRIES

    # ------------------------------------------------------------------ create

    async def create_booking(self, request: Optional[CreateBookingRequest]) -> Booking:
        """
        Claim a slot and persist a pending booking for it.

        Raises:
            BookingValidationError: missing ids, notes too long, bad slot times
            BookingNotFoundError: customer or staff member not in this business
            BookingConflictError: SLOT_UNAVAILABLE (taken before or during the call)
            BookingInternalError: unexpected collaborator failure
        """
        with booking_latency.time():
            try:
                booking = await self._create(request)
            except BookingError as exc:
                record_booking_attempt(_ATTEMPT_OUTCOME.get(exc.kind, "error"))
                raise
        record_booking_attempt("success")
        return booking

    async def _create(self, request: Optional[CreateBookingRequest]) -> Booking:
        validate_create_request(request)

        with booking_log_context(request.business_id, slot_id=request.slot_id):
            # Step 1: advisory availability check
            try:
                await self.slots.validate_availability(request.slot_id)
            except SlotError as exc:
                logger.info("booking_slot_unavailable", reason=str(exc), stage="precheck")
                raise BookingConflictError(
                    "SLOT_UNAVAILABLE", "Selected slot is not available"
                ) from exc
            except Exception as exc:
                raise self._internal("slot_availability_check_failed", exc) from exc

            # Step 2: referenced entities
            if not await self._guard(
                "customer_lookup_failed",
                self.customers.exists(request.business_id, request.customer_id),
            ):
                raise BookingNotFoundError("CUSTOMER_NOT_FOUND", "Customer not found")
            if not await self._guard(
                "staff_lookup_failed",
                self.staff.exists(request.business_id, request.staff_id),
            ):
                raise BookingNotFoundError("STAFF_NOT_FOUND", "Staff not found")

            # Step 3: time bounds come from the slot, never from the caller
            slot = await self._guard(
                "slot_lookup_failed", self.slots.get_slot(request.business_id, request.slot_id)
            )
            booking = Booking.new(
                business_id=request.business_id,
                customer_id=request.customer_id,
                staff_id=request.staff_id,
                service_id=request.service_id,
                slot_id=request.slot_id,
                start_time=slot.start_time,
                end_time=slot.end_time,
                notes=request.notes,
            )
            validate_booking_data(booking)

            # Step 4: persist
            await self._guard("booking_persist_failed", self.repository.create(booking))

            # Step 5: the actual concurrency checkpoint
            with booking_log_context(request.business_id, booking_id=booking.id):
                await self._reserve_or_compensate(booking)

                logger.info(
                    "booking_created",
                    customer_id=str(booking.customer_id),
                    staff_id=str(booking.staff_id),
                    start_time=booking.start_time.isoformat(),
                )

                # Step 6: derived statistics
                try:
                    await self.customers.increment_booking_count(booking.customer_id)
                except Exception as exc:
                    record_side_effect_failure("customer_counter")
                    logger.warning(
                        "customer_booking_count_failed",
                        customer_id=str(booking.customer_id),
                        error=str(exc),
                    )

        return booking

    async def _reserve_or_compensate(self, booking: Booking) -> None:
        try:
            await self.slots.reserve(booking.slot_id, booking.id)
        except SlotError as exc:
            logger.info("booking_slot_unavailable", reason=str(exc), stage="reserve")
            await self._compensate(booking, reason="slot_taken")
            raise BookingConflictError(
                "SLOT_UNAVAILABLE", "Selected slot is not available"
            ) from exc
        except asyncio.CancelledError:
            await self._compensate(booking, reason="request_cancelled")
            raise
        except Exception as exc:
            await self._compensate(booking, reason="reserve_failed")
            raise self._internal("slot_reserve_failed", exc) from exc

    async def _compensate(self, booking: Booking, reason: str) -> None:
        """Retire a booking whose slot reservation failed so no pending orphan remains."""
        try:
            ensure_transition(booking.status, BookingStatus.CANCELLED)
            booking.status = BookingStatus.CANCELLED
            booking.touch()
            await self.repository.update(booking)
        except Exception as exc:
            record_compensation(False)
            # The row is still pending while its slot belongs to someone else.
            logger.critical(
                "booking_compensation_failed",
                slot_id=str(booking.slot_id),
                reason=reason,
                error=str(exc),
                exc_info=True,
            )
            return

        record_compensation(True)
        record_transition(BookingStatus.PENDING.value, BookingStatus.CANCELLED.value)
        logger.warning("booking_compensated", slot_id=str(booking.slot_id), reason=reason)

    # ---------------------------------------------------------- update/cancel

    async def update_booking(
        self,
        business_id: UUID,
        booking_id: UUID,
        request: UpdateBookingRequest,
    ) -> Booking:
        """
        Change status and/or notes.

        A status equal to the current one means "no status change". Anything
        else goes through the state machine.
        """
        target = None
        if request.status is not None and str(request.status).strip():
            target = parse_status(request.status)
        validate_notes(request.notes)

        return await self._apply(business_id, booking_id, target=target, notes=request.notes)

    async def confirm_booking(self, business_id: UUID, booking_id: UUID) -> Booking:
        return await self._apply(
            business_id, booking_id, target=BookingStatus.CONFIRMED, allow_noop=False
        )

    async def complete_booking(self, business_id: UUID, booking_id: UUID) -> Booking:
        return await self._apply(
            business_id, booking_id, target=BookingStatus.COMPLETED, allow_noop=False
        )

    async def cancel_booking(self, business_id: UUID, booking_id: UUID) -> Booking:
        """
        Cancel a booking and release its slot.

        Cancelling a cancelled or completed booking is INVALID_TRANSITION and
        leaves the row untouched. Slot release happens after the cancellation
        is durable and its failure is not the caller's problem.
        """
        booking = await self._apply(
            business_id, booking_id, target=BookingStatus.CANCELLED, allow_noop=False
        )

        with booking_log_context(business_id, booking_id=booking_id, slot_id=booking.slot_id):
            try:
                await self.slots.release(booking.slot_id)
            except Exception as exc:
                record_side_effect_failure("slot_release")
                logger.error("slot_release_failed", error=str(exc))
            else:
                logger.info("booking_cancelled")

        return booking

    async def _apply(
        self,
        business_id: UUID,
        booking_id: UUID,
        target: Optional[BookingStatus] = None,
        notes: Optional[str] = None,
        allow_noop: bool = True,
    ) -> Booking:
        self._require_ids(business_id, booking_id)

        with booking_log_context(business_id, booking_id=booking_id):
            for attempt in range(1, self.max_update_retries + 1):
                booking = await self._load(business_id, booking_id)
                previous = booking.status

                if target is not None and not (allow_noop and target == previous):
                    ensure_transition(previous, target)
                    booking.status = target
                if notes is not None:
                    booking.notes = notes
                booking.touch()

                try:
                    await self.repository.update(booking)
                except StaleBookingError:
                    record_db_retry()
                    logger.info(
                        "booking_update_retry",
                        attempt=attempt,
                        reason="version_conflict",
                    )
                    continue
                except Exception as exc:
                    raise self._internal("booking_update_failed", exc) from exc

                if booking.status != previous:
                    record_transition(previous.value, booking.status.value)
                    logger.info(
                        "booking_status_changed",
                        from_status=previous.value,
                        to_status=booking.status.value,
                    )
                return booking

            logger.warning("booking_update_conflict", attempts=self.max_update_retries)
            raise BookingConflictError(
                "BOOKING_CONFLICT",
                "Booking was modified concurrently. Please try again.",
            )

    # ------------------------------------------------------------------ reads

    async def get_booking(self, business_id: UUID, booking_id: UUID) -> Booking:
        self._require_ids(business_id, booking_id)
        return await self._load(business_id, booking_id)

    async def get_customer_bookings(self, business_id: UUID, customer_id: UUID) -> list[Booking]:
        return await self._guard(
            "customer_bookings_lookup_failed",
            self.repository.get_by_customer(business_id, customer_id),
        )

    async def get_staff_bookings(self, business_id: UUID, staff_id: UUID) -> list[Booking]:
        return await self._guard(
            "staff_bookings_lookup_failed",
            self.repository.get_by_staff(business_id, staff_id),
        )

    async def get_business_bookings(self, business_id: UUID) -> list[Booking]:
        return await self._guard(
            "business_bookings_lookup_failed",
            self.repository.get_by_business(business_id),
        )

    async def count_bookings_by_status(self, business_id: UUID, status) -> int:
        return await self._guard(
            "booking_count_failed",
            self.repository.count_by_status(business_id, parse_status(status)),
        )

    async def booking_status_summary(self, business_id: UUID) -> dict[str, int]:
        """Dashboard counts for every status, zeros included."""
        return {
            status.value: await self.count_bookings_by_status(business_id, status)
            for status in BookingStatus
        }

    # ---------------------------------------------------------------- helpers

    async def _load(self, business_id: UUID, booking_id: UUID) -> Booking:
        booking = await self._guard(
            "booking_lookup_failed", self.repository.get_by_id(business_id, booking_id)
        )
        if booking is None:
            raise BookingNotFoundError("BOOKING_NOT_FOUND", "Booking not found")
        return booking

    @staticmethod
    def _require_ids(business_id: Optional[UUID], booking_id: Optional[UUID]) -> None:
        if business_id is None:
            raise BookingValidationError("BUSINESS_ID_REQUIRED", "Business ID is required")
        if booking_id is None:
            raise BookingValidationError("BOOKING_ID_REQUIRED", "Booking ID is required")

    async def _guard(self, event: str, call: Awaitable[T]) -> T:
        """Await a collaborator call, turning unexpected failures into INTERNAL_ERROR."""
        try:
            return await call
        except BookingError:
            raise
        except Exception as exc:
            raise self._internal(event, exc) from exc

    @staticmethod
    def _internal(event: str, exc: Exception) -> BookingInternalError:
        logger.error(event, error=str(exc), error_type=type(exc).__name__, exc_info=True)
        return BookingInternalError()
