"""
In-process implementations of the booking collaborators.

Same contracts as the SQL adapters, backed by dicts. The slot store guards its
compare-and-set with an asyncio.Lock, which gives the same "first reserve wins"
guarantee the conditional UPDATE gives in the database. Used by the test suite
and the slot race experiment.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from appointments.core.exceptions import SlotNotFoundError, SlotUnavailableError, StaleBookingError
from appointments.schemas.booking import Booking, BookingStatus, SlotDetails
from appointments.services.interfaces import (
    BookingRepository,
    CustomerDirectory,
    SlotGateway,
    StaffDirectory,
)


class InMemoryBookingRepository(BookingRepository):

    def __init__(self):
        self.rows: dict[UUID, Booking] = {}

    async def create(self, booking: Booking) -> None:
        if booking.id in self.rows:
            raise ValueError(f"Booking {booking.id} already exists")
        self.rows[booking.id] = booking.model_copy()

    async def get_by_id(self, business_id: UUID, booking_id: UUID) -> Optional[Booking]:
        row = self.rows.get(booking_id)
        if row is None or row.business_id != business_id:
            return None
        return row.model_copy()

    async def get_by_customer(self, business_id: UUID, customer_id: UUID) -> list[Booking]:
        rows = self._scoped(business_id, customer_id=customer_id)
        return sorted(rows, key=lambda b: b.start_time, reverse=True)

    async def get_by_staff(self, business_id: UUID, staff_id: UUID) -> list[Booking]:
        rows = self._scoped(business_id, staff_id=staff_id)
        return sorted(rows, key=lambda b: b.start_time)

    async def get_by_business(self, business_id: UUID) -> list[Booking]:
        rows = self._scoped(business_id)
        return sorted(rows, key=lambda b: b.created_at, reverse=True)

    async def update(self, booking: Booking) -> None:
        row = self.rows.get(booking.id)
        if (
            row is None
            or row.business_id != booking.business_id
            or row.version != booking.version
        ):
            raise StaleBookingError(booking.id, booking.version)
        booking.version += 1
        self.rows[booking.id] = booking.model_copy()

    async def count_by_status(self, business_id: UUID, status: BookingStatus) -> int:
        return len(self._scoped(business_id, status=status))

    def _scoped(self, business_id: UUID, **filters) -> list[Booking]:
        return [
            row.model_copy()
            for row in self.rows.values()
            if row.business_id == business_id
            and all(getattr(row, key) == value for key, value in filters.items())
        ]


@dataclass
class SlotState:
    id: UUID
    business_id: UUID
    staff_id: UUID
    start_time: datetime
    end_time: datetime
    booking_id: Optional[UUID] = None
    blocked: bool = False

    @property
    def is_booked(self) -> bool:
        return self.booking_id is not None


class InMemorySlotGateway(SlotGateway):
    """
    ``latency`` (seconds) is slept before every store call to simulate a
    network hop, which lets racing requests interleave between the advisory
    check and the reservation.
    """

    def __init__(self, latency: float = 0.0):
        self.slots: dict[UUID, SlotState] = {}
        self.latency = latency
        self._lock = asyncio.Lock()

    def add_slot(
        self,
        business_id: UUID,
        staff_id: UUID,
        start_time: datetime,
        end_time: datetime,
        slot_id: Optional[UUID] = None,
    ) -> SlotState:
        slot = SlotState(
            id=slot_id or uuid4(),
            business_id=business_id,
            staff_id=staff_id,
            start_time=start_time,
            end_time=end_time,
        )
        self.slots[slot.id] = slot
        return slot

    async def validate_availability(self, slot_id: UUID) -> None:
        await self._hop()
        slot = self._get(slot_id)
        if slot.is_booked or slot.blocked:
            raise SlotUnavailableError(slot_id)

    async def get_slot(self, business_id: UUID, slot_id: UUID) -> SlotDetails:
        await self._hop()
        slot = self.slots.get(slot_id)
        if slot is None or slot.business_id != business_id:
            raise SlotNotFoundError(slot_id)
        return SlotDetails(
            id=slot.id,
            business_id=slot.business_id,
            staff_id=slot.staff_id,
            start_time=slot.start_time,
            end_time=slot.end_time,
            is_booked=slot.is_booked,
            booking_id=slot.booking_id,
        )

    async def reserve(self, slot_id: UUID, booking_id: UUID) -> None:
        await self._hop()
        async with self._lock:
            slot = self._get(slot_id)
            if slot.is_booked or slot.blocked:
                raise SlotUnavailableError(slot_id)
            slot.booking_id = booking_id

    async def release(self, slot_id: UUID) -> None:
        await self._hop()
        async with self._lock:
            self._get(slot_id).booking_id = None

    async def _hop(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    def _get(self, slot_id: UUID) -> SlotState:
        slot = self.slots.get(slot_id)
        if slot is None:
            raise SlotNotFoundError(slot_id)
        return slot


@dataclass
class InMemoryCustomerDirectory(CustomerDirectory):
    members: dict[UUID, UUID] = field(default_factory=dict)  # customer_id -> business_id
    booking_counts: dict[UUID, int] = field(default_factory=dict)

    def add(self, business_id: UUID, customer_id: Optional[UUID] = None) -> UUID:
        customer_id = customer_id or uuid4()
        self.members[customer_id] = business_id
        self.booking_counts.setdefault(customer_id, 0)
        return customer_id

    async def exists(self, business_id: UUID, customer_id: UUID) -> bool:
        return self.members.get(customer_id) == business_id

    async def increment_booking_count(self, customer_id: UUID) -> None:
        if customer_id not in self.members:
            raise LookupError(f"Customer {customer_id} not found")
        self.booking_counts[customer_id] += 1


@dataclass
class InMemoryStaffDirectory(StaffDirectory):
    members: dict[UUID, UUID] = field(default_factory=dict)  # staff_id -> business_id

    def add(self, business_id: UUID, staff_id: Optional[UUID] = None) -> UUID:
        staff_id = staff_id or uuid4()
        self.members[staff_id] = business_id
        return staff_id

    async def exists(self, business_id: UUID, staff_id: UUID) -> bool:
        return self.members.get(staff_id) == business_id
