from appointments.schemas.booking import (
    Booking,
    BookingStatus,
    CreateBookingRequest,
    SlotDetails,
    UpdateBookingRequest,
)

__all__ = [
    "Booking", "BookingStatus",
    "CreateBookingRequest", "UpdateBookingRequest",
    "SlotDetails",
]
