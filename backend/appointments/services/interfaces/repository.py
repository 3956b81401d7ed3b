"""
Booking repository interface.
Persistence for booking records; every read and write is tenant-scoped.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from appointments.schemas.booking import Booking, BookingStatus


class BookingRepository(ABC):
    """
    Interface for booking persistence.

    Implementations:
    - SqlBookingRepository: SQLAlchemy, conditional UPDATE on a version column
    - InMemoryBookingRepository: process-local dict, used by tests/experiments

    Tenant isolation is the repository's job: a booking stored under one
    business_id must be invisible to lookups under any other.
    """

    @abstractmethod
    async def create(self, booking: Booking) -> None:
        """Insert a new booking row."""

    @abstractmethod
    async def get_by_id(self, business_id: UUID, booking_id: UUID) -> Optional[Booking]:
        """
        Fetch one booking.

        Returns:
            The booking, or None when it does not exist in this tenant
        """

    @abstractmethod
    async def get_by_customer(self, business_id: UUID, customer_id: UUID) -> list[Booking]:
        """Customer's bookings, latest start first."""

    @abstractmethod
    async def get_by_staff(self, business_id: UUID, staff_id: UUID) -> list[Booking]:
        """Staff member's bookings, earliest start first."""

    @abstractmethod
    async def get_by_business(self, business_id: UUID) -> list[Booking]:
        """All bookings of a business, newest first."""

    @abstractmethod
    async def update(self, booking: Booking) -> None:
        """
        Persist status, notes, times and updated_at.

        Only succeeds when the stored version equals ``booking.version``; on
        success the stored and in-memory versions are both bumped.

        Raises:
            StaleBookingError: no row matched (gone, or modified concurrently)
        """

    @abstractmethod
    async def count_by_status(self, business_id: UUID, status: BookingStatus) -> int:
        """Number of bookings of this business in the given status."""
