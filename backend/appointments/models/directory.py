"""
Customer and staff tables, reduced to what booking creation needs:
tenant membership and the customer's booking counter.
"""

import uuid

from sqlalchemy import Boolean, Column, Integer, String, Uuid

from appointments.db.base import Base, TimestampMixin


class Customer(Base, TimestampMixin):
    __tablename__ = "customers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    booking_count = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, bookings={self.booking_count})>"


class Staff(Base, TimestampMixin):
    __tablename__ = "staff"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Staff(id={self.id}, name={self.full_name})>"
