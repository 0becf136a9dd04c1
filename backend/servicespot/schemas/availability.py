# backend/servicespot/schemas/availability.py
"""
Availability schemas for the ServiceSpot bookings core.

Request models validate shape only; time-range order, overlap, duplicate start
and future-date rules live in the services so they raise domain errors.
"""

from datetime import date, datetime, time
from typing import List, Optional

from pydantic import Field

from ..core.enums import DayOfWeek
from .base import StandardizedModel, StrictRequestModel


class RecurringSlotCreate(StrictRequestModel):
    """Weekly template slot for a provider."""

    provider_id: str = Field(..., description="Provider publishing the slot")
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    is_available: bool = True
    max_bookings: int = Field(1, ge=1)
    break_duration: Optional[int] = Field(None, ge=0, description="Minutes between bookings")
    notes: Optional[str] = Field(None, max_length=500)


class RecurringSlotUpdate(StrictRequestModel):
    """Partial update; only supplied fields are applied."""

    day_of_week: Optional[DayOfWeek] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_available: Optional[bool] = None
    max_bookings: Optional[int] = Field(None, ge=1)
    break_duration: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=500)


class RecurringSlotResponse(StandardizedModel):
    id: str
    provider_id: str
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    is_available: bool
    max_bookings: int
    current_bookings: int
    break_duration: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DateSpecificSlotCreate(StrictRequestModel):
    """One-off slot; ``service_listing_id`` None applies to every listing of the provider."""

    provider_id: str
    service_listing_id: Optional[str] = None
    available_date: date
    start_time: time
    end_time: time
    is_available: bool = True
    max_bookings: Optional[int] = Field(None, ge=1, description="None means unlimited")
    notes: Optional[str] = Field(None, max_length=500)


class DateSpecificSlotUpdate(StrictRequestModel):
    available_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_available: Optional[bool] = None
    max_bookings: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = Field(None, max_length=500)


class DateSpecificSlotResponse(StandardizedModel):
    id: str
    provider_id: str
    service_listing_id: Optional[str] = None
    available_date: date
    start_time: time
    end_time: time
    is_available: bool
    max_bookings: Optional[int] = None
    current_bookings: int
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AvailableDatesResponse(StandardizedModel):
    dates: List[date] = Field(default_factory=list)
