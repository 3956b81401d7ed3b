"""
Customer and staff directory interfaces.
Only used to gate booking creation; they carry no booking invariants.
"""

from abc import ABC, abstractmethod
from uuid import UUID


class CustomerDirectory(ABC):

    @abstractmethod
    async def exists(self, business_id: UUID, customer_id: UUID) -> bool:
        """True if the customer belongs to this business."""

    @abstractmethod
    async def increment_booking_count(self, customer_id: UUID) -> None:
        """Bump the customer's booking statistics counter."""


class StaffDirectory(ABC):

    @abstractmethod
    async def exists(self, business_id: UUID, staff_id: UUID) -> bool:
        """True if the staff member belongs to this business."""
