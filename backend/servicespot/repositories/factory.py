# backend/servicespot/repositories/factory.py
"""
Repository Factory for the ServiceSpot bookings core.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .availability_repository import DateSpecificSlotRepository, RecurringSlotRepository
    from .booking_repository import BookingRepository
    from .review_repository import RatingRollupRepository, ReviewRepository
    from .service_listing_repository import ServiceListingRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        """Create a generic base repository for any model."""
        return BaseRepository(db, model)

    @staticmethod
    def create_recurring_slot_repository(db: Session) -> "RecurringSlotRepository":
        """Create repository for weekly recurring slots."""
        from .availability_repository import RecurringSlotRepository

        return RecurringSlotRepository(db)

    @staticmethod
    def create_date_specific_slot_repository(db: Session) -> "DateSpecificSlotRepository":
        """Create repository for date-specific slots."""
        from .availability_repository import DateSpecificSlotRepository

        return DateSpecificSlotRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_review_repository(db: Session) -> "ReviewRepository":
        from .review_repository import ReviewRepository

        return ReviewRepository(db)

    @staticmethod
    def create_rating_rollup_repository(db: Session) -> "RatingRollupRepository":
        from .review_repository import RatingRollupRepository

        return RatingRollupRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_service_listing_repository(db: Session) -> "ServiceListingRepository":
        from .service_listing_repository import ServiceListingRepository

        return ServiceListingRepository(db)
