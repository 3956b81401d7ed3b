"""
Infrastructure layer - storage adapters for the booking service contracts.
Keeps business logic clean from implementation details.
"""

from .booking_repository import SqlBookingRepository
from .directory import SqlCustomerDirectory, SqlStaffDirectory
from .slot_gateway import SqlSlotGateway

__all__ = [
    'SqlBookingRepository',
    'SqlSlotGateway',
    'SqlCustomerDirectory',
    'SqlStaffDirectory',
]
