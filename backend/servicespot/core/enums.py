# backend/servicespot/core/enums.py
"""
Core enums for the ServiceSpot bookings core.

This module contains enumeration types shared by models, schemas and
services for type safety and consistency.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles resolved through the user directory."""

    ADMIN = "ADMIN"
    PROVIDER = "PROVIDER"
    CUSTOMER = "CUSTOMER"


class DayOfWeek(str, Enum):
    """Weekday of a recurring availability slot, ordered Monday first."""

    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @property
    def ordinal(self) -> int:
        return list(DayOfWeek).index(self)

    @classmethod
    def from_date(cls, value) -> "DayOfWeek":
        """Map a ``date``/``datetime`` to its weekday (``date.weekday()`` is Monday=0)."""
        return list(cls)[value.weekday()]


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_BOOKING_STATUSES


TERMINAL_BOOKING_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.REJECTED}
)


class BookingEvent(str, Enum):
    """Events that drive the booking state machine."""

    CONFIRM = "CONFIRM"
    START = "START"
    COMPLETE = "COMPLETE"
    CANCEL = "CANCEL"
    REJECT = "REJECT"


class CancelledBy(str, Enum):
    """Who initiated a cancellation."""

    CUSTOMER = "customer"
    PROVIDER = "provider"
    SYSTEM = "system"
    ADMIN = "admin"
