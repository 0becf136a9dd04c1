# backend/servicespot/models/user.py
"""
User model for the ServiceSpot bookings core.

Accounts are owned by the registration/auth layer; the bookings core only
reads identity and role through the user directory and writes back the
running rating aggregate for providers.

Classes:
    User: Customer, provider or admin account as seen by the core
"""

import logging

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func
import ulid

from ..core.enums import RoleName
from ..database import Base

logger = logging.getLogger(__name__)


class User(Base):
    """
    User account as consumed by the bookings core.

    Attributes:
        id: ULID primary key
        name: Display name
        email: Unique email address
        role: CUSTOMER, PROVIDER or ADMIN
        active: Whether the account may take part in bookings
        average_rating: Running provider rating (full precision)
        review_count: Number of reviews folded into average_rating
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default=RoleName.CUSTOMER.value, index=True)
    active = Column(Boolean, nullable=False, default=True)

    average_rating = Column(Float, nullable=False, default=0.0)
    review_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("review_count >= 0", name="ck_users_review_count_non_negative"),
    )

    @property
    def is_provider(self) -> bool:
        return self.role == RoleName.PROVIDER.value

    @property
    def is_customer(self) -> bool:
        return self.role == RoleName.CUSTOMER.value

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN.value

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
