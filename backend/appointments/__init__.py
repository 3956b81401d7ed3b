"""
Appointment reservation core.

Reserves a staff member's time slot for a customer and drives the booking
through pending -> confirmed/cancelled -> completed, keeping the booking row
and the slot claim consistent without a shared transaction.
"""

from appointments.core.exceptions import (
    BookingConflictError,
    BookingError,
    BookingInternalError,
    BookingNotFoundError,
    BookingValidationError,
)
from appointments.schemas.booking import (
    Booking,
    BookingStatus,
    CreateBookingRequest,
    UpdateBookingRequest,
)
from appointments.services.booking_service import BookingService
from appointments.services.booking_state import is_valid_transition

__version__ = "1.0.0"

__all__ = [
    "Booking", "BookingStatus", "CreateBookingRequest", "UpdateBookingRequest",
    "BookingService", "is_valid_transition",
    "BookingError", "BookingValidationError", "BookingNotFoundError",
    "BookingConflictError", "BookingInternalError",
]
