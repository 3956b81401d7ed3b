"""
Error taxonomy for the reservation core.

Every error the orchestrator surfaces is a BookingError carrying a stable
machine-readable ``code``. The surrounding layer maps the ``kind`` to its own
transport (HTTP status, RPC status, ...):

  validation  - malformed/missing input, raised before any side effect
  not_found   - a referenced entity does not exist in this tenant
  conflict    - state or resource contention (slot taken, illegal transition)
  internal    - unexpected collaborator failure; the message stays generic and
                the storage error is only available as ``__cause__``

Collaborators (repository and slot store adapters) raise the lower-level
SlotUnavailableError / SlotNotFoundError / StaleBookingError, which the
orchestrator translates into the kinds above.
"""

from typing import Optional


class BookingError(Exception):
    kind: str = "booking"

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(code={self.code}, message={self.message!r})>"


class BookingValidationError(BookingError):
    kind = "validation"


class BookingNotFoundError(BookingError):
    kind = "not_found"


class BookingConflictError(BookingError):
    kind = "conflict"


class BookingInternalError(BookingError):
    kind = "internal"

    def __init__(self, message: str = "Internal error") -> None:
        super().__init__("INTERNAL_ERROR", message)


# Collaborator-level errors


class SlotError(Exception):
    def __init__(self, slot_id, detail: Optional[str] = None) -> None:
        super().__init__(detail or f"Slot {slot_id} error")
        self.slot_id = slot_id


class SlotNotFoundError(SlotError):
    def __init__(self, slot_id) -> None:
        super().__init__(slot_id, f"Slot {slot_id} not found")


class SlotUnavailableError(SlotError):
    def __init__(self, slot_id) -> None:
        super().__init__(slot_id, f"Slot {slot_id} is not available")


class StaleBookingError(Exception):
    """Conditional update matched no row: the booking is gone or its version moved on."""

    def __init__(self, booking_id, expected_version: int) -> None:
        super().__init__(
            f"Booking {booking_id} not found or modified concurrently "
            f"(expected version {expected_version})"
        )
        self.booking_id = booking_id
        self.expected_version = expected_version


def invalid_transition(current, target) -> BookingConflictError:
    return BookingConflictError(
        "INVALID_TRANSITION",
        f"Cannot change booking status from {_status_value(current)} to {_status_value(target)}",
    )


def _status_value(status) -> str:
    return getattr(status, "value", status)
