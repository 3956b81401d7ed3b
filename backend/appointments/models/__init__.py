from appointments.models.booking import BookingRecord
from appointments.models.directory import Customer, Staff
from appointments.models.slot import Slot, SlotStatus

__all__ = ["BookingRecord", "Customer", "Staff", "Slot", "SlotStatus"]
