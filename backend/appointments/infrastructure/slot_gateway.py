"""
SQLAlchemy slot gateway.

CONCURRENCY STRATEGY: conditional UPDATE as compare-and-set
============================================================

    UPDATE slots SET status = 'booked', booking_id = :booking_id
    WHERE id = :slot_id AND status = 'available'
      AND booking_id IS NULL AND deleted_at IS NULL

The database serializes writers on the row, so when N requests race for one
slot exactly one UPDATE matches a row and the rest see rowcount == 0. No
SELECT FOR UPDATE, no advisory lock, no retry: a caller that loses the race has
lost the slot.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appointments.core.exceptions import SlotNotFoundError, SlotUnavailableError
from appointments.core.logging import get_logger
from appointments.models.slot import Slot, SlotStatus
from appointments.schemas.booking import SlotDetails, utc_now
from appointments.services.interfaces.slots import SlotGateway

logger = get_logger(__name__)


class SqlSlotGateway(SlotGateway):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def validate_availability(self, slot_id: UUID) -> None:
        async with self.session_factory() as session:
            slot = await session.scalar(
                select(Slot).where(Slot.id == slot_id, Slot.deleted_at.is_(None))
            )
        if slot is None:
            raise SlotNotFoundError(slot_id)
        if slot.status != SlotStatus.AVAILABLE.value or slot.booking_id is not None:
            raise SlotUnavailableError(slot_id)

    async def get_slot(self, business_id: UUID, slot_id: UUID) -> SlotDetails:
        async with self.session_factory() as session:
            slot = await session.scalar(
                select(Slot).where(
                    Slot.id == slot_id,
                    Slot.business_id == business_id,
                    Slot.deleted_at.is_(None),
                )
            )
        if slot is None:
            raise SlotNotFoundError(slot_id)
        return SlotDetails(
            id=slot.id,
            business_id=slot.business_id,
            staff_id=slot.staff_id,
            start_time=slot.start_time,
            end_time=slot.end_time,
            is_booked=slot.status == SlotStatus.BOOKED.value,
            booking_id=slot.booking_id,
        )

    async def reserve(self, slot_id: UUID, booking_id: UUID) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Slot)
                    .where(
                        Slot.id == slot_id,
                        Slot.status == SlotStatus.AVAILABLE.value,
                        Slot.booking_id.is_(None),
                        Slot.deleted_at.is_(None),
                    )
                    .values(
                        status=SlotStatus.BOOKED.value,
                        booking_id=booking_id,
                        updated_at=utc_now(),
                    )
                )
                rowcount = result.rowcount

        if rowcount == 0:
            raise SlotUnavailableError(slot_id)
        logger.info("slot_reserved", slot_id=str(slot_id), booking_id=str(booking_id))

    async def release(self, slot_id: UUID) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(Slot)
                    .where(Slot.id == slot_id, Slot.deleted_at.is_(None))
                    .values(
                        status=SlotStatus.AVAILABLE.value,
                        booking_id=None,
                        updated_at=utc_now(),
                    )
                )
                rowcount = result.rowcount

        if rowcount == 0:
            raise SlotNotFoundError(slot_id)
        logger.info("slot_released", slot_id=str(slot_id))
