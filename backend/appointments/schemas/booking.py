"""
Pydantic schemas for the booking entity and the requests that mutate it.
"""

import enum
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class BookingStatus(str, enum.Enum):
    PENDING = "pending"  # created, waiting for confirmation
    CONFIRMED = "confirmed"  # approved by the provider
    CANCELLED = "cancelled"  # cancelled by customer or staff
    COMPLETED = "completed"  # service delivered


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Booking(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    business_id: UUID
    customer_id: UUID
    staff_id: UUID
    service_id: UUID
    slot_id: UUID

    start_time: datetime
    end_time: datetime
    status: BookingStatus = BookingStatus.PENDING
    notes: str = ""

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    version: int = 1

    model_config = {"from_attributes": True, "validate_assignment": True}

    @classmethod
    def new(
        cls,
        business_id: UUID,
        customer_id: UUID,
        staff_id: UUID,
        service_id: UUID,
        slot_id: UUID,
        start_time: datetime,
        end_time: datetime,
        notes: str = "",
    ) -> "Booking":
        """A fresh pending booking stamped with the slot's time bounds."""
        now = utc_now()
        return cls(
            business_id=business_id,
            customer_id=customer_id,
            staff_id=staff_id,
            service_id=service_id,
            slot_id=slot_id,
            start_time=start_time,
            end_time=end_time,
            status=BookingStatus.PENDING,
            notes=notes,
            created_at=now,
            updated_at=now,
        )

    def touch(self) -> None:
        self.updated_at = utc_now()


class CreateBookingRequest(BaseModel):
    # business_id comes from the authenticated session, never from the payload
    business_id: Optional[UUID] = None
    customer_id: Optional[UUID] = None
    staff_id: Optional[UUID] = None
    service_id: Optional[UUID] = None
    slot_id: Optional[UUID] = None
    notes: str = ""


class UpdateBookingRequest(BaseModel):
    status: Optional[str] = None
    notes: Optional[str] = None


class SlotDetails(BaseModel):
    id: UUID
    business_id: UUID
    staff_id: Optional[UUID] = None
    start_time: datetime
    end_time: datetime
    is_booked: bool = False
    booking_id: Optional[UUID] = None

    model_config = {"from_attributes": True}
