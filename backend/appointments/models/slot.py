"""
Slot table, the reservation side of a booking.

Only the columns the reservation core reads or flips are modelled here; slot
generation from working hours lives in the scheduling subsystem.

Key design decisions:
- status + booking_id together form the reservation claim; reserve is a single
  conditional UPDATE on both, so the database arbitrates racing bookings
- deleted_at soft-deletes a slot without breaking bookings that reference it
"""

import enum
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Index, String, Uuid

from appointments.db.base import Base, TimestampMixin


class SlotStatus(str, enum.Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"  # break, training, ...
    UNAVAILABLE = "unavailable"


class Slot(Base, TimestampMixin):
    __tablename__ = "slots"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, nullable=False)
    staff_id = Column(Uuid, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default=SlotStatus.AVAILABLE.value)
    booking_id = Column(Uuid, nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_slot_time_order"),
        Index("ix_slots_business_staff_start", "business_id", "staff_id", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Slot(id={self.id}, start={self.start_time}, status={self.status})>"
