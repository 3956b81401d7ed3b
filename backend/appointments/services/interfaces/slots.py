"""
Slot store interface.
The slot store is the single source of truth for whether a time slot is free.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from appointments.schemas.booking import SlotDetails


class SlotGateway(ABC):
    """
    Interface for the slot reservation capability.

    Implementations:
    - SqlSlotGateway: UPDATE ... WHERE status = 'available' (row-level CAS)
    - InMemorySlotGateway: asyncio.Lock-guarded compare-and-set

    Only ``reserve`` is a concurrency guarantee. ``validate_availability`` is
    advisory: it may pass for two racing callers, after which exactly one of
    their ``reserve`` calls succeeds.
    """

    @abstractmethod
    async def validate_availability(self, slot_id: UUID) -> None:
        """
        Check that the slot is currently unreserved.

        Raises:
            SlotNotFoundError: no such slot
            SlotUnavailableError: slot is booked or otherwise not bookable
        """

    @abstractmethod
    async def get_slot(self, business_id: UUID, slot_id: UUID) -> SlotDetails:
        """
        Slot details (time bounds) within a tenant.

        Raises:
            SlotNotFoundError: no such slot in this business
        """

    @abstractmethod
    async def reserve(self, slot_id: UUID, booking_id: UUID) -> None:
        """
        Atomically claim the slot for a booking. First caller wins.

        Raises:
            SlotUnavailableError: the slot is already claimed
        """

    @abstractmethod
    async def release(self, slot_id: UUID) -> None:
        """
        Return the slot to the available pool.

        Raises:
            SlotNotFoundError: no such slot
        """
