# backend/servicespot/schemas/booking.py
"""
Booking schemas for the ServiceSpot bookings core.

A booking is created against a listing and a slot context (explicit slot id
or resolved from the provider's availability). Status changes arrive as a
target status and are mapped onto lifecycle events by BookingService.
"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import Field, model_validator

from ..core.enums import BookingStatus, CancelledBy
from .base import Money, StandardizedModel, StrictRequestModel


class ServiceAddress(StrictRequestModel):
    door_no: Optional[str] = Field(None, max_length=50)
    address_line: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, pattern=r"^\d{6}$")


class BookingCreate(StrictRequestModel):
    """
    Create a booking for a listing.

    At most one of ``recurring_slot_id``/``date_specific_slot_id`` may be
    given; with neither, the slot is resolved from the provider's
    availability at the requested date and time.
    """

    customer_id: str = Field(..., description="Customer making the booking")
    service_listing_id: str = Field(..., description="Listing being booked")
    booking_date: date
    booking_time: time
    duration_minutes: Optional[int] = Field(
        None, ge=15, le=720, description="Defaults to the listing duration"
    )
    service_address: Optional[ServiceAddress] = None
    customer_notes: Optional[str] = Field(None, max_length=1000)
    payment_method: Optional[str] = Field(None, max_length=50)
    recurring_slot_id: Optional[str] = None
    date_specific_slot_id: Optional[str] = None

    @model_validator(mode="after")
    def _single_slot_context(self) -> "BookingCreate":
        if self.recurring_slot_id and self.date_specific_slot_id:
            raise ValueError("Provide at most one of recurring_slot_id or date_specific_slot_id")
        return self


class BookingTransitionRequest(StrictRequestModel):
    """Move a booking to ``target_status``."""

    target_status: BookingStatus
    provider_notes: Optional[str] = Field(None, max_length=1000)
    cancellation_reason: Optional[str] = Field(None, max_length=500)
    cancelled_by: Optional[CancelledBy] = None


class BookingResponse(StandardizedModel):
    id: str
    reference: str
    customer_id: str
    provider_id: str
    service_listing_id: str
    recurring_slot_id: Optional[str] = None
    date_specific_slot_id: Optional[str] = None
    booking_date: date
    booking_time: time
    duration_minutes: int
    status: BookingStatus
    full_service_address: Optional[str] = None
    total_amount: Money
    currency: str
    formatted_total: str
    payment_status: str
    payment_method: Optional[str] = None
    customer_notes: Optional[str] = None
    provider_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
