"""
Booking table.

Key design decisions:
- Every query filters on business_id; (business_id, ...) composite indexes back
  the per-customer, per-staff and per-status lookups
- Status is a constrained string so the closed status set also holds in SQL
- version column is the optimistic concurrency token for updates
- Rows are never deleted; cancellation is a status change
"""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Uuid

from appointments.db.base import Base


class BookingRecord(Base):
    __tablename__ = "bookings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, nullable=False)
    customer_id = Column(Uuid, nullable=False)
    staff_id = Column(Uuid, nullable=False)
    service_id = Column(Uuid, nullable=False)
    slot_id = Column(Uuid, nullable=False, index=True)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    notes = Column(String(500), nullable=False, default="")

    # Set by the domain entity, not by the database
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_booking_time_order"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        Index("ix_bookings_business_customer", "business_id", "customer_id"),
        Index("ix_bookings_business_staff", "business_id", "staff_id"),
        Index("ix_bookings_business_status", "business_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<BookingRecord(id={self.id}, slot={self.slot_id}, status={self.status})>"
