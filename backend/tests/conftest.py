"""
Pytest fixtures for the booking service and its storage adapters.

Service tests run against the in-process adapters. SQL adapter tests use a
throwaway SQLite file per test (tables created from the ORM metadata), so the
suite does not need a running PostgreSQL.
"""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from appointments.db.base import Base
from appointments.db.session import create_engine, create_session_factory
from appointments.infrastructure.memory import (
    InMemoryBookingRepository,
    InMemoryCustomerDirectory,
    InMemorySlotGateway,
    InMemoryStaffDirectory,
    SlotState,
)
from appointments.schemas.booking import CreateBookingRequest
from appointments.services.booking_service import BookingService

import appointments.models  # noqa: F401 - register tables on Base.metadata


def nine_am_tomorrow() -> datetime:
    tomorrow = datetime.now(timezone.utc) + timedelta(days=1)
    return tomorrow.replace(hour=9, minute=0, second=0, microsecond=0)


@pytest.fixture
def business_id() -> UUID:
    return uuid4()


@pytest.fixture
def repository() -> InMemoryBookingRepository:
    return InMemoryBookingRepository()


@pytest.fixture
def slots() -> InMemorySlotGateway:
    return InMemorySlotGateway()


@pytest.fixture
def customers() -> InMemoryCustomerDirectory:
    return InMemoryCustomerDirectory()


@pytest.fixture
def staff() -> InMemoryStaffDirectory:
    return InMemoryStaffDirectory()


@pytest.fixture
def customer_id(customers, business_id) -> UUID:
    return customers.add(business_id)


@pytest.fixture
def staff_id(staff, business_id) -> UUID:
    return staff.add(business_id)


@pytest.fixture
def slot(slots, business_id, staff_id) -> SlotState:
    """09:00-09:30 tomorrow."""
    start = nine_am_tomorrow()
    return slots.add_slot(business_id, staff_id, start, start + timedelta(minutes=30))


@pytest.fixture
def service(repository, slots, customers, staff) -> BookingService:
    return BookingService(repository, slots, customers, staff)


@pytest.fixture
def make_request(business_id, customer_id, staff_id, slot):
    """Factory for a valid create request; keyword overrides replace fields."""

    def _make(**overrides) -> CreateBookingRequest:
        fields = {
            "business_id": business_id,
            "customer_id": customer_id,
            "staff_id": staff_id,
            "service_id": uuid4(),
            "slot_id": slot.id,
            "notes": "First visit",
        }
        fields.update(overrides)
        return CreateBookingRequest(**fields)

    return _make


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables in a fresh SQLite file, yield a session factory, dispose."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'appointments.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield create_session_factory(engine)

    await engine.dispose()
