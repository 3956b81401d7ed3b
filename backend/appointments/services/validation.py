"""
Input and invariant checks for bookings.

All of these run before the first collaborator call (or, for the time check,
before the first write), so a failure here never leaves a side effect behind.
"""

from typing import Optional
from uuid import UUID

from appointments.core.config import get_settings
from appointments.core.exceptions import BookingValidationError
from appointments.schemas.booking import Booking, BookingStatus, CreateBookingRequest

_REQUIRED_IDS = (
    ("business_id", "BUSINESS_ID_REQUIRED", "Business ID is required"),
    ("customer_id", "CUSTOMER_ID_REQUIRED", "Customer ID is required"),
    ("staff_id", "STAFF_ID_REQUIRED", "Staff ID is required"),
    ("service_id", "SERVICE_ID_REQUIRED", "Service ID is required"),
    ("slot_id", "SLOT_ID_REQUIRED", "Slot ID is required"),
)

NIL_UUID = UUID(int=0)


def _missing(value: Optional[UUID]) -> bool:
    return value is None or value == NIL_UUID


def validate_notes(notes: Optional[str]) -> None:
    max_length = get_settings().BOOKING_NOTES_MAX_LENGTH
    if notes is not None and len(notes) > max_length:
        raise BookingValidationError(
            "NOTES_TOO_LONG", f"Notes cannot exceed {max_length} characters"
        )


def validate_create_request(request: Optional[CreateBookingRequest]) -> None:
    if request is None:
        raise BookingValidationError("INVALID_REQUEST", "Request cannot be empty")
    for field, code, message in _REQUIRED_IDS:
        if _missing(getattr(request, field)):
            raise BookingValidationError(code, message)
    validate_notes(request.notes)


def parse_status(value) -> BookingStatus:
    """Coerce a caller-supplied status into the closed status set."""
    if isinstance(value, BookingStatus):
        return value
    if value is None or not str(value).strip():
        raise BookingValidationError("STATUS_REQUIRED", "Booking status is required")
    try:
        return BookingStatus(str(value).strip().lower())
    except ValueError:
        raise BookingValidationError(
            "INVALID_STATUS", f"Unknown booking status: {value}"
        ) from None


def validate_booking_data(booking: Booking) -> None:
    """Invariants every persisted booking must satisfy."""
    if booking.start_time >= booking.end_time:
        raise BookingValidationError(
            "INVALID_TIME", "Start time must be before end time"
        )
    validate_notes(booking.notes)
