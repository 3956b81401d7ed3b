"""
Service interfaces for dependency inversion.
The booking service only talks to these; storage adapters live in
appointments.infrastructure.
"""

from .directory import CustomerDirectory, StaffDirectory
from .repository import BookingRepository
from .slots import SlotGateway

__all__ = ['BookingRepository', 'SlotGateway', 'CustomerDirectory', 'StaffDirectory']
