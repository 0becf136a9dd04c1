# backend/servicespot/services/availability_rules.py
"""
Validation rules shared by both availability services.
"""

from datetime import time
from typing import Iterable, Optional

from ..core.exceptions import AvailabilityOverlapException, ForbiddenException, ValidationException


def format_range(start_time: time, end_time: time) -> str:
    return f"{start_time.strftime('%H:%M')}-{end_time.strftime('%H:%M')}"


def ensure_valid_range(start_time: time, end_time: time) -> None:
    if end_time <= start_time:
        raise ValidationException(
            "End time must be after start time",
            code="INVALID_TIME_RANGE",
            details={"start_time": str(start_time), "end_time": str(end_time)},
        )


def ranges_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    """Half-open [start, end) intersection test."""
    return start_a < end_b and start_b < end_a


def raise_if_overlapping(
    scope: str, start_time: time, end_time: time, existing: Iterable
) -> None:
    """Raise AvailabilityOverlapException for the first slot in ``existing`` that overlaps."""
    for slot in existing:
        if ranges_overlap(slot.start_time, slot.end_time, start_time, end_time):
            raise AvailabilityOverlapException(
                scope=scope,
                new_range=format_range(start_time, end_time),
                conflicting_range=format_range(slot.start_time, slot.end_time),
            )


def ensure_owner(resource_provider_id: str, actor_id: Optional[str]) -> None:
    """Only enforced when the caller identifies the acting provider."""
    if actor_id is not None and actor_id != resource_provider_id:
        raise ForbiddenException(
            "You can only modify your own availability",
            code="NOT_SLOT_OWNER",
        )


def ensure_capacity_fits(max_bookings: Optional[int], current_bookings: int) -> None:
    if max_bookings is not None and max_bookings < current_bookings:
        raise ValidationException(
            f"Max bookings cannot be lower than the {current_bookings} existing booking(s)",
            code="CAPACITY_BELOW_CURRENT",
            details={"max_bookings": max_bookings, "current_bookings": current_bookings},
        )
