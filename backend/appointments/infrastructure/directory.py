"""
SQLAlchemy customer and staff directories.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appointments.core.logging import get_logger
from appointments.models.directory import Customer, Staff
from appointments.services.interfaces.directory import CustomerDirectory, StaffDirectory

logger = get_logger(__name__)


class SqlCustomerDirectory(CustomerDirectory):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def exists(self, business_id: UUID, customer_id: UUID) -> bool:
        async with self.session_factory() as session:
            found = await session.scalar(
                select(Customer.id).where(
                    Customer.id == customer_id,
                    Customer.business_id == business_id,
                )
            )
        return found is not None

    async def increment_booking_count(self, customer_id: UUID) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Customer)
                    .where(Customer.id == customer_id)
                    .values(booking_count=Customer.booking_count + 1)
                )
                rowcount = result.rowcount
        if rowcount == 0:
            logger.warning("customer_counter_target_missing", customer_id=str(customer_id))
            raise LookupError(f"Customer {customer_id} not found")


class SqlStaffDirectory(StaffDirectory):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def exists(self, business_id: UUID, staff_id: UUID) -> bool:
        async with self.session_factory() as session:
            found = await session.scalar(
                select(Staff.id).where(
                    Staff.id == staff_id,
                    Staff.business_id == business_id,
                    Staff.is_active.is_(True),
                )
            )
        return found is not None
