"""
Booking status state machine.

    pending ──> confirmed ──> completed
       │            │
       └──> cancelled <┘

cancelled and completed are terminal. The table is closed: any pair not listed
is illegal, including every transition out of a terminal status. Every mutation
path in the booking service consults this module, and nothing else decides
whether a status change is allowed.
"""

from appointments.core.exceptions import invalid_transition
from appointments.schemas.booking import BookingStatus

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


def is_valid_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def is_terminal(status: BookingStatus) -> bool:
    return not ALLOWED_TRANSITIONS.get(status)


def ensure_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise INVALID_TRANSITION unless current -> target is in the table."""
    if not is_valid_transition(current, target):
        raise invalid_transition(current, target)
