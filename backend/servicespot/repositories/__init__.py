# backend/servicespot/repositories/__init__.py
"""
Repository Pattern Implementation for the ServiceSpot bookings core.

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- RepositoryFactory: Factory for creating repository instances
- RecurringSlotRepository / DateSpecificSlotRepository: slot queries and
  atomic capacity updates
- BookingRepository: booking queries and the reference sequence
- ReviewRepository / RatingRollupRepository: reviews and rating aggregates

Usage:
    from servicespot.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_booking_repository(db)
    booking = repository.get_by_reference("BK-2026-000001")
"""

from .availability_repository import DateSpecificSlotRepository, RecurringSlotRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .review_repository import RatingRollupRepository, ReviewRepository
from .service_listing_repository import ServiceListingRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "DateSpecificSlotRepository",
    "RatingRollupRepository",
    "RecurringSlotRepository",
    "RepositoryFactory",
    "ReviewRepository",
    "ServiceListingRepository",
    "UserRepository",
]
