"""
Database models for the ServiceSpot bookings core.

The models are organized by functionality:
- Directory entities read by the core (users, service listings)
- Availability (recurring weekly slots, date-specific slots)
- Bookings and the per-year reference sequence
- Reviews
"""

from .availability import DateSpecificSlot, RecurringSlot
from .booking import Booking, BookingReferenceSequence
from .review import Review
from .service_listing import ServiceListing
from .user import User

__all__ = [
    "Booking",
    "BookingReferenceSequence",
    "DateSpecificSlot",
    "RecurringSlot",
    "Review",
    "ServiceListing",
    "User",
]
