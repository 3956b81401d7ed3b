"""
SQLAlchemy booking repository.

Updates use optimistic locking on the version column:

    UPDATE bookings SET ..., version = version + 1
    WHERE id = :id AND business_id = :business_id AND version = :expected

rowcount == 0 means the row vanished or someone else wrote first; the caller
decides whether to re-read and retry.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appointments.core.exceptions import StaleBookingError
from appointments.core.logging import get_logger
from appointments.models.booking import BookingRecord
from appointments.schemas.booking import Booking, BookingStatus
from appointments.services.interfaces.repository import BookingRepository

logger = get_logger(__name__)


class SqlBookingRepository(BookingRepository):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(self, booking: Booking) -> None:
        record = BookingRecord(
            id=booking.id,
            business_id=booking.business_id,
            customer_id=booking.customer_id,
            staff_id=booking.staff_id,
            service_id=booking.service_id,
            slot_id=booking.slot_id,
            start_time=booking.start_time,
            end_time=booking.end_time,
            status=booking.status.value,
            notes=booking.notes,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
            version=booking.version,
        )
        async with self.session_factory() as session:
            async with session.begin():
                session.add(record)

    async def get_by_id(self, business_id: UUID, booking_id: UUID) -> Optional[Booking]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(BookingRecord).where(
                    BookingRecord.id == booking_id,
                    BookingRecord.business_id == business_id,
                )
            )
            record = result.scalar_one_or_none()
        return Booking.model_validate(record) if record else None

    async def get_by_customer(self, business_id: UUID, customer_id: UUID) -> list[Booking]:
        return await self._list(
            select(BookingRecord)
            .where(
                BookingRecord.business_id == business_id,
                BookingRecord.customer_id == customer_id,
            )
            .order_by(BookingRecord.start_time.desc())
        )

    async def get_by_staff(self, business_id: UUID, staff_id: UUID) -> list[Booking]:
        return await self._list(
            select(BookingRecord)
            .where(
                BookingRecord.business_id == business_id,
                BookingRecord.staff_id == staff_id,
            )
            .order_by(BookingRecord.start_time.asc())
        )

    async def get_by_business(self, business_id: UUID) -> list[Booking]:
        return await self._list(
            select(BookingRecord)
            .where(BookingRecord.business_id == business_id)
            .order_by(BookingRecord.created_at.desc())
        )

    async def update(self, booking: Booking) -> None:
        expected_version = booking.version
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(BookingRecord)
                    .where(
                        BookingRecord.id == booking.id,
                        BookingRecord.business_id == booking.business_id,
                        BookingRecord.version == expected_version,
                    )
                    .values(
                        status=booking.status.value,
                        notes=booking.notes,
                        start_time=booking.start_time,
                        end_time=booking.end_time,
                        updated_at=booking.updated_at,
                        version=BookingRecord.version + 1,
                    )
                )
                rowcount = result.rowcount

        if rowcount == 0:
            logger.info(
                "booking_update_stale",
                booking_id=str(booking.id),
                expected_version=expected_version,
            )
            raise StaleBookingError(booking.id, expected_version)
        booking.version = expected_version + 1

    async def count_by_status(self, business_id: UUID, status: BookingStatus) -> int:
        async with self.session_factory() as session:
            count = await session.scalar(
                select(func.count(BookingRecord.id)).where(
                    BookingRecord.business_id == business_id,
                    BookingRecord.status == status.value,
                )
            )
        return count or 0

    async def _list(self, query) -> list[Booking]:
        async with self.session_factory() as session:
            result = await session.execute(query)
            records = result.scalars().all()
        return [Booking.model_validate(record) for record in records]
