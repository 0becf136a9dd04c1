# backend/servicespot/services/review_service.py
"""
ReviewService: business logic for reviews/ratings.

Implements:
- Submission (one per booking, booking must be COMPLETED and match the parties)
- Incremental rating fold on provider and listing when a review is created
- Full rescan of the remaining reviews when one is deleted
- Moderation flags and provider rating statistics
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus
from ..core.exceptions import (
    ConflictException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..models.review import Review
from ..repositories.factory import RepositoryFactory
from ..repositories.review_repository import RatingRollupRepository, ReviewRepository
from ..schemas.review import ProviderRatingStatistics
from .base import BaseService
from .directory import UserDirectory
from .ratings_math import percentage, round_rating

MIN_COMMENT_LENGTH = 10
MAX_COMMENT_LENGTH = 2000
MAX_TITLE_LENGTH = 200
POSITIVE_RATING = 4


class ReviewService(BaseService):
    """Service layer for reviews & ratings."""

    def __init__(self, db: Session, directory: Optional[UserDirectory] = None) -> None:
        super().__init__(db)
        self.repository: ReviewRepository = RepositoryFactory.create_review_repository(db)
        self.rollup: RatingRollupRepository = RepositoryFactory.create_rating_rollup_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.directory = directory or UserDirectory(db)

    # Submission

    @BaseService.measure_operation("submit_review")
    def submit_review(
        self,
        *,
        customer_id: str,
        provider_id: str,
        rating: int,
        comment: str,
        booking_id: Optional[str] = None,
        title: Optional[str] = None,
        on_time: Optional[bool] = None,
        would_recommend: Optional[bool] = None,
    ) -> Review:
        """
        Create a review and fold its rating into the provider and listing averages.

        Raises:
            ValidationException: Rating/comment/title out of range, booking not
                completed or not between these parties
            NotFoundException: Customer, provider or booking not found
            ConflictException: Booking already reviewed
        """
        comment = (comment or "").strip()
        self._validate_content(rating, comment, title)
        self.directory.require_customer(customer_id)
        self.directory.require_provider(provider_id)

        listing_id: Optional[str] = None
        if booking_id is not None:
            booking = self.booking_repository.get_by_id(booking_id)
            if not booking:
                raise NotFoundException(
                    f"Booking not found with id: {booking_id}", code="BOOKING_NOT_FOUND"
                )
            if booking.customer_id != customer_id or booking.provider_id != provider_id:
                raise ValidationException(
                    "Booking does not belong to this customer and provider",
                    code="BOOKING_PARTY_MISMATCH",
                )
            if booking.status != BookingStatus.COMPLETED.value:
                raise ValidationException(
                    "Only completed bookings can be reviewed",
                    code="BOOKING_NOT_COMPLETED",
                    details={"status": booking.status},
                )
            if self.repository.exists_for_booking(booking_id):
                raise ConflictException(
                    "This booking has already been reviewed", code="ALREADY_REVIEWED"
                )
            listing_id = booking.service_listing_id

        try:
            with self.transaction():
                review = self.repository.create(
                    customer_id=customer_id,
                    provider_id=provider_id,
                    booking_id=booking_id,
                    service_listing_id=listing_id,
                    rating=rating,
                    title=title,
                    comment=comment,
                    on_time=on_time,
                    would_recommend=would_recommend,
                    verified=booking_id is not None,
                    flagged=False,
                )
                self.rollup.fold_into_provider(provider_id, rating)
                if listing_id:
                    self.rollup.fold_into_listing(listing_id, rating)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError) and booking_id is not None:
                raise ConflictException(
                    "This booking has already been reviewed", code="ALREADY_REVIEWED"
                ) from exc
            raise

        self.logger.info(
            "review_submitted",
            extra={
                "review_id": review.id,
                "provider_id": provider_id,
                "booking_id": booking_id,
                "rating": rating,
                "verified": review.verified,
            },
        )
        return review

    @BaseService.measure_operation("delete_review")
    def delete_review(self, review_id: str) -> None:
        """Delete a review and recompute the affected averages from the remaining reviews."""
        review = self.get_review(review_id)
        provider_id = review.provider_id
        listing_id = review.service_listing_id

        with self.transaction():
            self.repository.delete(review_id)
            provider = self.repository.get_provider_aggregate(provider_id)
            self.rollup.set_provider_rating(
                provider_id, provider["raw_average"], provider["review_count"]
            )
            if listing_id:
                listing = self.repository.get_listing_aggregate(listing_id)
                self.rollup.set_listing_rating(
                    listing_id, listing["raw_average"], listing["review_count"]
                )

        self.logger.info(
            "review_deleted",
            extra={"review_id": review_id, "provider_id": provider_id, "service_listing_id": listing_id},
        )

    # Moderation

    def flag_review(self, review_id: str, reason: str) -> Review:
        if not reason or not reason.strip():
            raise ValidationException("A reason is required to flag a review", code="FLAG_REASON_REQUIRED")
        review = self.get_review(review_id)
        with self.transaction():
            review.flagged = True
            review.flag_reason = reason.strip()
        self.logger.info("review_flagged", extra={"review_id": review_id})
        return review

    def unflag_review(self, review_id: str) -> Review:
        review = self.get_review(review_id)
        with self.transaction():
            review.flagged = False
            review.flag_reason = None
        return review

    # Queries

    def get_review(self, review_id: str) -> Review:
        review = self.repository.get_by_id(review_id)
        if not review:
            raise NotFoundException(f"Review not found with id: {review_id}", code="REVIEW_NOT_FOUND")
        return review

    def get_provider_reviews(self, provider_id: str) -> List[Review]:
        return self.repository.get_provider_reviews(provider_id)

    def get_customer_reviews(self, customer_id: str) -> List[Review]:
        return self.repository.get_customer_reviews(customer_id)

    def get_review_for_booking(self, booking_id: str) -> Review:
        review = self.repository.get_by_booking_id(booking_id)
        if not review:
            raise NotFoundException(
                f"Review not found for booking: {booking_id}", code="REVIEW_NOT_FOUND"
            )
        return review

    def has_booking_been_reviewed(self, booking_id: str) -> bool:
        return self.repository.exists_for_booking(booking_id)

    def get_recent_reviews(self, provider_id: str, limit: int = 5) -> List[Review]:
        return self.repository.get_recent_reviews(provider_id, limit)

    def get_positive_reviews(self, provider_id: str) -> List[Review]:
        return self.repository.get_positive_reviews(provider_id, POSITIVE_RATING)

    @BaseService.measure_operation("get_provider_statistics")
    def get_provider_statistics(self, provider_id: str) -> ProviderRatingStatistics:
        """Rating breakdown for a provider; averages and percentages rounded to 1 dp."""
        self.directory.require_provider(provider_id)
        aggregate = self.repository.get_provider_aggregate(provider_id)
        total = aggregate["review_count"]
        stars = self.repository.get_star_counts(provider_id)

        return ProviderRatingStatistics(
            provider_id=provider_id,
            average_rating=round_rating(aggregate["raw_average"]) if total else 0.0,
            total_reviews=total,
            positive_reviews=sum(count for star, count in stars.items() if star >= POSITIVE_RATING),
            star_counts=stars,
            recommendation_percentage=percentage(
                self.repository.count_flag_true(provider_id, "would_recommend"), total
            ),
            on_time_percentage=percentage(
                self.repository.count_flag_true(provider_id, "on_time"), total
            ),
        )

    # Helpers

    @staticmethod
    def _validate_content(rating: int, comment: str, title: Optional[str]) -> None:
        if not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationException(
                "Rating must be between 1 and 5", code="INVALID_RATING", details={"rating": rating}
            )
        if not MIN_COMMENT_LENGTH <= len(comment) <= MAX_COMMENT_LENGTH:
            raise ValidationException(
                f"Comment must be between {MIN_COMMENT_LENGTH} and {MAX_COMMENT_LENGTH} characters",
                code="INVALID_COMMENT_LENGTH",
                details={"length": len(comment)},
            )
        if title is not None and len(title) > MAX_TITLE_LENGTH:
            raise ValidationException(
                f"Title must be at most {MAX_TITLE_LENGTH} characters", code="INVALID_TITLE_LENGTH"
            )
