# backend/servicespot/repositories/review_repository.py
"""
Repositories for the reviews/ratings system.

Follows repository pattern: no business logic, DB-only operations. The
incremental rating fold is expressed as a single UPDATE per target row so
concurrent reviews for the same provider never lose an update.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, TypedDict, cast

from sqlalchemy import func, update
from sqlalchemy.engine import Row
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.review import Review
from ..models.service_listing import ServiceListing
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class RatingAggregate(TypedDict):
    review_count: int
    raw_average: float
    rating_sum: int


class ReviewRepository(BaseRepository[Review]):
    """Data access for `Review`."""

    def __init__(self, db: Session):
        super().__init__(db, Review)
        self.logger = logging.getLogger(__name__)

    def exists_for_booking(self, booking_id: str) -> bool:
        try:
            return (
                self.db.query(self.model.id).filter(self.model.booking_id == booking_id).first()
                is not None
            )
        except Exception as e:
            self.logger.error(f"Error checking review existence: {e}")
            raise RepositoryException(f"Failed to check review existence: {e}")

    def get_by_booking_id(self, booking_id: str) -> Optional[Review]:
        return self.find_one_by(booking_id=booking_id)

    def get_provider_reviews(self, provider_id: str) -> List[Review]:
        """Reviews of a provider, newest first."""
        return self._execute_query(
            self._build_query()
            .filter(Review.provider_id == provider_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )

    def get_customer_reviews(self, customer_id: str) -> List[Review]:
        return self._execute_query(
            self._build_query()
            .filter(Review.customer_id == customer_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )

    def get_recent_reviews(self, provider_id: str, limit: int) -> List[Review]:
        return self._execute_query(
            self._build_query()
            .filter(Review.provider_id == provider_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .limit(limit)
        )

    def get_positive_reviews(self, provider_id: str, min_rating: int = 4) -> List[Review]:
        return self._execute_query(
            self._build_query()
            .filter(Review.provider_id == provider_id, Review.rating >= min_rating)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )

    def _aggregate(self, *criteria: Any) -> RatingAggregate:
        try:
            row = (
                self.db.query(
                    func.count(Review.id).label("review_count"),
                    func.avg(Review.rating * 1.0).label("raw_average"),
                    func.sum(Review.rating).label("rating_sum"),
                )
                .filter(*criteria)
                .first()
            )
            if not row:
                return {"review_count": 0, "raw_average": 0.0, "rating_sum": 0}
            mapping: Mapping[str, Any] = cast(Row[Any], row)._mapping
            return {
                "review_count": int(mapping.get("review_count", 0) or 0),
                "raw_average": float(mapping.get("raw_average", 0.0) or 0.0),
                "rating_sum": int(mapping.get("rating_sum", 0) or 0),
            }
        except Exception as e:
            self.logger.error(f"Error aggregating reviews: {e}")
            raise RepositoryException(f"Failed to aggregate reviews: {e}")

    def get_provider_aggregate(self, provider_id: str) -> RatingAggregate:
        return self._aggregate(Review.provider_id == provider_id)

    def get_listing_aggregate(self, listing_id: str) -> RatingAggregate:
        return self._aggregate(Review.service_listing_id == listing_id)

    def get_star_counts(self, provider_id: str) -> Dict[int, int]:
        """Review count per star value 1..5 (missing values reported as 0)."""
        try:
            rows = (
                self.db.query(Review.rating, func.count(Review.id))
                .filter(Review.provider_id == provider_id)
                .group_by(Review.rating)
                .all()
            )
        except Exception as e:
            self.logger.error(f"Error counting ratings by star: {e}")
            raise RepositoryException(f"Failed to count ratings: {e}")
        counts = {star: 0 for star in range(1, 6)}
        for rating, count in rows:
            counts[int(rating)] = int(count)
        return counts

    def count_flag_true(self, provider_id: str, column_name: str) -> int:
        """Count reviews of a provider where a boolean answer column is true."""
        column = getattr(Review, column_name)
        return self._execute_scalar(
            self.db.query(func.count(Review.id)).filter(
                Review.provider_id == provider_id, column.is_(True)
            )
        )


class RatingRollupRepository:
    """Writes the running rating aggregate onto providers and listings."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(__name__)

    def _fold(self, model: Any, row_id: str, rating: int) -> bool:
        count = model.review_count
        stmt = (
            update(model)
            .where(model.id == row_id)
            .values(
                average_rating=(model.average_rating * count + rating) / (count + 1.0),
                review_count=count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            return self.db.execute(stmt).rowcount == 1
        except Exception as e:
            self.logger.error(f"Error folding rating into {model.__tablename__} {row_id}: {e}")
            raise RepositoryException(f"Failed to update rating: {e}")

    def _overwrite(self, model: Any, row_id: str, average: float, count: int) -> bool:
        stmt = (
            update(model)
            .where(model.id == row_id)
            .values(average_rating=average, review_count=count)
            .execution_options(synchronize_session=False)
        )
        try:
            return self.db.execute(stmt).rowcount == 1
        except Exception as e:
            self.logger.error(f"Error writing rating for {model.__tablename__} {row_id}: {e}")
            raise RepositoryException(f"Failed to update rating: {e}")

    def fold_into_provider(self, provider_id: str, rating: int) -> bool:
        return self._fold(User, provider_id, rating)

    def fold_into_listing(self, listing_id: str, rating: int) -> bool:
        return self._fold(ServiceListing, listing_id, rating)

    def set_provider_rating(self, provider_id: str, average: float, count: int) -> bool:
        return self._overwrite(User, provider_id, average, count)

    def set_listing_rating(self, listing_id: str, average: float, count: int) -> bool:
        return self._overwrite(ServiceListing, listing_id, average, count)
