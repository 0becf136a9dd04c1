# backend/servicespot/schemas/__init__.py
"""
Pydantic schemas for the ServiceSpot bookings core.

Request models are what the presentation layer hands to services; response
models are built from ORM rows with ``model_validate``.
"""

from .availability import (
    AvailableDatesResponse,
    DateSpecificSlotCreate,
    DateSpecificSlotResponse,
    DateSpecificSlotUpdate,
    RecurringSlotCreate,
    RecurringSlotResponse,
    RecurringSlotUpdate,
)
from .booking import BookingCreate, BookingResponse, BookingTransitionRequest, ServiceAddress
from .retention import MaintenanceStats, RetentionPurgeRequest, RetentionResult
from .review import ProviderRatingStatistics, ReviewFlagRequest, ReviewResponse, ReviewSubmitRequest

__all__ = [
    "AvailableDatesResponse",
    "BookingCreate",
    "BookingResponse",
    "BookingTransitionRequest",
    "DateSpecificSlotCreate",
    "DateSpecificSlotResponse",
    "DateSpecificSlotUpdate",
    "MaintenanceStats",
    "ProviderRatingStatistics",
    "RecurringSlotCreate",
    "RecurringSlotResponse",
    "RecurringSlotUpdate",
    "RetentionPurgeRequest",
    "RetentionResult",
    "ReviewFlagRequest",
    "ReviewResponse",
    "ReviewSubmitRequest",
    "ServiceAddress",
]
