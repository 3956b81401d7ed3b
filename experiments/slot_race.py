#!/usr/bin/env python3
"""
Slot race - many customers try to book the same slot at once.
Runs the real booking service over the in-process adapters, with a small
simulated network hop on every slot store call.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from appointments.core.exceptions import BookingError
from appointments.core.logging import setup_logging
from appointments.infrastructure.memory import (
    InMemoryBookingRepository,
    InMemoryCustomerDirectory,
    InMemorySlotGateway,
    InMemoryStaffDirectory,
)
from appointments.schemas.booking import BookingStatus, CreateBookingRequest
from appointments.services.booking_service import BookingService


async def run_race(customers_count: int, latency: float):
    print(f"\n{'='*60}")
    print(f"Customers: {customers_count} | Slot store latency: {latency*1000:.1f}ms")
    print(f"{'='*60}\n")

    business_id = uuid4()
    repository = InMemoryBookingRepository()
    slots = InMemorySlotGateway(latency=latency)
    customers = InMemoryCustomerDirectory()
    staff = InMemoryStaffDirectory()
    service = BookingService(repository, slots, customers, staff)

    staff_id = staff.add(business_id)
    start = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0) + timedelta(days=1)
    slot = slots.add_slot(business_id, staff_id, start, start + timedelta(minutes=30))

    requests = [
        CreateBookingRequest(
            business_id=business_id,
            customer_id=customers.add(business_id),
            staff_id=staff_id,
            service_id=uuid4(),
            slot_id=slot.id,
            notes=f"customer {i}",
        )
        for i in range(customers_count)
    ]

    response_times = []

    async def attempt(request):
        began = time.time()
        try:
            return await service.create_booking(request)
        finally:
            response_times.append((time.time() - began) * 1000)

    start_time = time.time()
    results = await asyncio.gather(*(attempt(r) for r in requests), return_exceptions=True)
    total_time = time.time() - start_time

    created = [r for r in results if not isinstance(r, BaseException)]
    errors = [r for r in results if isinstance(r, BaseException)]
    conflicts = [e for e in errors if isinstance(e, BookingError) and e.code == "SLOT_UNAVAILABLE"]
    pending = [row for row in repository.rows.values() if row.status is BookingStatus.PENDING]
    cancelled = [row for row in repository.rows.values() if row.status is BookingStatus.CANCELLED]

    print(f"Time:         {total_time:.3f}s")
    print(f"Successful:   {len(created)}")
    print(f"Conflicts:    {len(conflicts)}")
    print(f"Other errors: {len(errors) - len(conflicts)}")
    print(f"Rows pending: {len(pending)} | compensated: {len(cancelled)}")

    times = sorted(response_times)
    if times:
        print(f"\nResponse times:")
        print(f"  Avg: {sum(times)/len(times):.1f}ms")
        print(f"  P95: {times[int(len(times)*0.95)]:.1f}ms")
        print(f"  Max: {max(times):.1f}ms")

    print(f"\n{'='*60}")
    if len(created) == 1 and len(pending) == 1 and slot.booking_id == created[0].id:
        print(f"✓ PASS: Slot booked exactly once")
    else:
        print(f"✗ FAIL: {len(created)} bookings, {len(pending)} pending rows for one slot")
    print(f"{'='*60}")


async def main():
    setup_logging()

    print("\n" + "="*60)
    print("SLOT RACE")
    print("="*60)

    await run_race(10, 0.001)
    await run_race(100, 0.002)
    await run_race(500, 0.0)


if __name__ == "__main__":
    asyncio.run(main())
