# backend/servicespot/services/booking_state_machine.py
"""
Booking lifecycle transition table.

    PENDING --confirm--> CONFIRMED --start--> IN_PROGRESS --complete--> COMPLETED
    PENDING --reject--> REJECTED
    PENDING | CONFIRMED --cancel--> CANCELLED

Any (status, event) pair not in the table is an invalid transition.
COMPLETED, CANCELLED and REJECTED have no outgoing edges.
"""

from typing import Dict, Mapping, Tuple

from ..core.enums import BookingEvent, BookingStatus
from ..core.exceptions import InvalidTransitionException

TRANSITIONS: Mapping[Tuple[BookingStatus, BookingEvent], BookingStatus] = {
    (BookingStatus.PENDING, BookingEvent.CONFIRM): BookingStatus.CONFIRMED,
    (BookingStatus.PENDING, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.PENDING, BookingEvent.REJECT): BookingStatus.REJECTED,
    (BookingStatus.CONFIRMED, BookingEvent.START): BookingStatus.IN_PROGRESS,
    (BookingStatus.CONFIRMED, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.IN_PROGRESS, BookingEvent.COMPLETE): BookingStatus.COMPLETED,
}

# Target status requested by a caller -> event that produces it
EVENT_FOR_TARGET: Dict[BookingStatus, BookingEvent] = {
    target: event for (_, event), target in TRANSITIONS.items()
}


def next_status(current: BookingStatus, event: BookingEvent) -> BookingStatus:
    """Look up the status ``event`` leads to from ``current``; raise if the edge does not exist."""
    try:
        return TRANSITIONS[(BookingStatus(current), BookingEvent(event))]
    except KeyError:
        raise InvalidTransitionException(
            current_status=BookingStatus(current).value, event=BookingEvent(event).value
        ) from None


def can_transition(current: BookingStatus, event: BookingEvent) -> bool:
    return (BookingStatus(current), BookingEvent(event)) in TRANSITIONS


def event_for_target(current: BookingStatus, target: BookingStatus) -> BookingEvent:
    """
    Map a requested target status onto the event that reaches it.

    Targets no event produces (e.g. PENDING) are reported as an invalid
    transition from ``current``.
    """
    target = BookingStatus(target)
    event = EVENT_FOR_TARGET.get(target)
    if event is None:
        raise InvalidTransitionException(
            current_status=BookingStatus(current).value, event=f"move to {target.value}"
        )
    return event
