"""
Booking service factory.
Wires the booking service to its storage adapters.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appointments.db.session import create_engine, create_session_factory
from appointments.infrastructure import (
    SqlBookingRepository,
    SqlCustomerDirectory,
    SqlSlotGateway,
    SqlStaffDirectory,
)
from appointments.services.booking_service import BookingService


def build_booking_service(
    session_factory: async_sessionmaker[AsyncSession],
) -> BookingService:
    """
    Booking service over SQL adapters.

    Bookings and slots may live in different databases; pass the factory of
    the store that holds both, or compose BookingService by hand.
    """
    return BookingService(
        repository=SqlBookingRepository(session_factory),
        slots=SqlSlotGateway(session_factory),
        customers=SqlCustomerDirectory(session_factory),
        staff=SqlStaffDirectory(session_factory),
    )


# Singleton instance
_service: Optional[BookingService] = None


def get_booking_service() -> BookingService:
    """Get booking service singleton bound to the configured database."""
    global _service
    if _service is None:
        _service = build_booking_service(create_session_factory(create_engine()))
    return _service
