# backend/servicespot/models/review.py
"""
Review model for the ServiceSpot bookings core.

Design notes:
- ULID string IDs everywhere (26 chars)
- At most one review per booking (DB unique constraint on booking_id)
- A review with a booking is "verified"; unlinked reviews are allowed
- Flagging is a moderation marker only; flagged reviews still count toward ratings
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Review(Base):
    """Customer review of a provider, optionally tied to a completed booking."""

    __tablename__ = "reviews"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))

    customer_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id = Column(String(26), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    service_listing_id = Column(
        String(26), ForeignKey("service_listings.id", ondelete="SET NULL"), nullable=True, index=True
    )

    rating = Column(Integer, nullable=False)
    title = Column(String(200), nullable=True)
    comment = Column(Text, nullable=False)
    on_time = Column(Boolean, nullable=True)
    would_recommend = Column(Boolean, nullable=True)

    verified = Column(Boolean, nullable=False, default=False, comment="Linked to an actual booking")
    flagged = Column(Boolean, nullable=False, default=False)
    flag_reason = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("booking_id", name="uq_reviews_booking"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
        CheckConstraint(
            "length(comment) >= 10 AND length(comment) <= 2000",
            name="ck_reviews_comment_length",
        ),
        Index("idx_reviews_provider_created", "provider_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Review {self.id} {self.rating}* for {self.provider_id}>"
