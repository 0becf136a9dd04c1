# backend/servicespot/models/service_listing.py
"""
Service listing model.

A listing is what a customer books: a provider's offer with a price and a
default duration. Browsing and editing listings belong to the catalog layer;
the bookings core resolves price/duration/provider and maintains the
booking counter and rating aggregate.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class ServiceListing(Base):
    """Provider offer resolved by the catalog lookup."""

    __tablename__ = "service_listings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=True)
    duration_minutes = Column(Integer, nullable=False, default=60)
    active = Column(Boolean, nullable=False, default=True, index=True)

    total_bookings = Column(Integer, nullable=False, default=0)
    average_rating = Column(Float, nullable=False, default=0.0)
    review_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_service_listings_price_non_negative"),
        CheckConstraint("duration_minutes > 0", name="ck_service_listings_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<ServiceListing {self.title} by {self.provider_id}>"
