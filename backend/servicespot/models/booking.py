# backend/servicespot/models/booking.py
"""
Booking models for the ServiceSpot bookings core.

A booking references its customer, provider and listing by id only; the
slot it consumed is recorded so a cancellation releases capacity on exactly
that slot. Status changes go through BookingService and the transition
table in services.booking_state_machine, never through attribute writes
from callers.
"""

from decimal import Decimal
import logging
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.sql import func
import ulid

from ..core.enums import BookingStatus
from ..database import Base

logger = logging.getLogger(__name__)


class Booking(Base):
    """
    Customer booking of a provider listing.

    Audit timestamps are UTC; booking_date/booking_time are local wall-clock
    values in the configured zone.
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    reference = Column(String(32), nullable=False, unique=True, index=True)

    # Parties (ids only)
    customer_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    service_listing_id = Column(String(26), ForeignKey("service_listings.id"), nullable=False, index=True)

    # Consumed slot; either may be NULL once the retention job purges a past slot
    recurring_slot_id = Column(
        String(26), ForeignKey("recurring_availability.id", ondelete="SET NULL"), nullable=True
    )
    date_specific_slot_id = Column(
        String(26), ForeignKey("date_specific_availability.id", ondelete="SET NULL"), nullable=True
    )

    # When
    booking_date = Column(Date, nullable=False, index=True)
    booking_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)

    # Service address
    service_door_no = Column(String(50), nullable=True)
    service_address_line = Column(String(255), nullable=True)
    service_city = Column(String(100), nullable=True)
    service_state = Column(String(100), nullable=True)
    service_pincode = Column(String(10), nullable=True)

    # Money (label only, no processing)
    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_status = Column(String(20), nullable=False, default="Pending")
    payment_method = Column(String(50), nullable=True)

    customer_notes = Column(Text, nullable=True)
    provider_notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_bookings_duration_positive"),
        CheckConstraint("total_amount >= 0", name="ck_bookings_amount_non_negative"),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED', 'REJECTED')",
            name="ck_bookings_status",
        ),
        Index("idx_bookings_provider_date", "provider_id", "booking_date"),
        Index("idx_bookings_customer_status", "customer_id", "status"),
    )

    @property
    def status_enum(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status_enum.is_terminal

    @property
    def full_service_address(self) -> Optional[str]:
        """Address as 'door, line, city, state - pincode'; None when no address was captured."""
        parts = [
            p
            for p in (
                self.service_door_no,
                self.service_address_line,
                self.service_city,
                self.service_state,
            )
            if p
        ]
        if not parts and not self.service_pincode:
            return None
        address = ", ".join(parts)
        if self.service_pincode:
            address = f"{address} - {self.service_pincode}" if address else self.service_pincode
        return address

    @property
    def formatted_total(self) -> str:
        amount = Decimal(self.total_amount or 0)
        return f"{amount:.2f} {self.currency}"

    def __repr__(self) -> str:
        return f"<Booking {self.reference} {self.booking_date} {self.booking_time} - {self.status}>"


class BookingReferenceSequence(Base):
    """Per-year counter backing BK-<year>-<NNNNNN> references."""

    __tablename__ = "booking_reference_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<BookingReferenceSequence {self.year}:{self.last_value}>"
