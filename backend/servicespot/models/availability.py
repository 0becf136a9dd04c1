# backend/servicespot/models/availability.py
"""
Availability models for the ServiceSpot bookings core.

This module defines the two kinds of bookable slot a provider publishes.

Classes:
    RecurringSlot: Weekly template slot (day of week + time range + capacity)
    DateSpecificSlot: One-off slot bound to a calendar date, optionally
        scoped to a single listing, with optional (unlimited) capacity

Capacity counters are never written from Python attribute assignment during
booking; see AvailabilityRepository.try_reserve/release for the atomic
conditional updates.
"""

from datetime import date
import logging
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class SlotCapacityMixin:
    """Capacity helpers shared by both slot kinds."""

    @property
    def is_fully_booked(self) -> bool:
        if self.max_bookings is None:
            return False
        return (self.current_bookings or 0) >= self.max_bookings

    @property
    def remaining_capacity(self) -> Optional[int]:
        """Remaining bookings, or None when capacity is unlimited."""
        if self.max_bookings is None:
            return None
        return max(0, self.max_bookings - (self.current_bookings or 0))

    def time_range_label(self) -> str:
        return f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')}"


class RecurringSlot(SlotCapacityMixin, Base):
    """Weekly recurring availability slot."""

    __tablename__ = "recurring_availability"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(String(10), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    max_bookings = Column(Integer, nullable=False, default=1)
    current_bookings = Column(Integer, nullable=False, default=0)
    break_duration = Column(Integer, nullable=True, comment="Minutes between consecutive bookings")
    notes = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("provider_id", "day_of_week", "start_time", name="uq_recurring_provider_day_start"),
        CheckConstraint("end_time > start_time", name="ck_recurring_time_order"),
        CheckConstraint("max_bookings >= 1", name="ck_recurring_max_bookings_positive"),
        CheckConstraint("current_bookings >= 0", name="ck_recurring_current_non_negative"),
        CheckConstraint("current_bookings <= max_bookings", name="ck_recurring_within_capacity"),
        CheckConstraint(
            "break_duration IS NULL OR break_duration >= 0",
            name="ck_recurring_break_non_negative",
        ),
        Index("idx_recurring_provider_day", "provider_id", "day_of_week"),
    )

    def can_accept_booking(self) -> bool:
        return bool(self.is_available) and not self.is_fully_booked

    def __repr__(self) -> str:
        return (
            f"<RecurringSlot {self.provider_id} {self.day_of_week} {self.time_range_label()} "
            f"{self.current_bookings}/{self.max_bookings}>"
        )


class DateSpecificSlot(SlotCapacityMixin, Base):
    """
    Availability slot for one calendar date.

    ``service_listing_id`` of None means the slot applies to every listing of
    the provider; ``max_bookings`` of None means unlimited capacity.
    """

    __tablename__ = "date_specific_availability"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    service_listing_id = Column(
        String(26), ForeignKey("service_listings.id", ondelete="CASCADE"), nullable=True, index=True
    )
    available_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    max_bookings = Column(Integer, nullable=True)
    current_bookings = Column(Integer, nullable=False, default=0)
    notes = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_date_specific_time_order"),
        CheckConstraint(
            "max_bookings IS NULL OR max_bookings >= 1",
            name="ck_date_specific_max_bookings_positive",
        ),
        CheckConstraint("current_bookings >= 0", name="ck_date_specific_current_non_negative"),
        CheckConstraint(
            "max_bookings IS NULL OR current_bookings <= max_bookings",
            name="ck_date_specific_within_capacity",
        ),
        Index("idx_date_specific_provider_date", "provider_id", "available_date"),
    )

    def can_accept_booking(self, today: date) -> bool:
        """Bookable when open, not full, and the date has not passed."""
        return bool(self.is_available) and not self.is_fully_booked and self.available_date >= today

    def __repr__(self) -> str:
        cap = "unlimited" if self.max_bookings is None else self.max_bookings
        return (
            f"<DateSpecificSlot {self.provider_id} {self.available_date} {self.time_range_label()} "
            f"{self.current_bookings}/{cap}>"
        )
