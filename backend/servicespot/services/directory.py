# backend/servicespot/services/directory.py
"""
Identity and catalog lookups consumed by the bookings core.

Registration, profiles and listing management live outside the core; these
two collaborators are the only way the core resolves a user or a listing,
always by id, and always raising NotFound/Validation in one place.
"""

from dataclasses import dataclass
from decimal import Decimal
import logging

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import RoleName
from ..core.exceptions import NotFoundException, ValidationException
from ..models.service_listing import ServiceListing
from ..models.user import User
from ..repositories.factory import RepositoryFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListingSnapshot:
    """What a booking needs to know about a listing at creation time."""

    id: str
    provider_id: str
    title: str
    price: Decimal
    currency: str
    duration_minutes: int


class UserDirectory:
    """Resolve users and verify their role."""

    def __init__(self, db: Session):
        self.repository = RepositoryFactory.create_user_repository(db)

    def get_user(self, user_id: str) -> User:
        user = self.repository.get_by_id(user_id)
        if not user:
            raise NotFoundException(f"User not found with id: {user_id}", code="USER_NOT_FOUND")
        return user

    def require_role(self, user_id: str, role: RoleName) -> User:
        """Return the user, raising NotFound if missing and Validation if the role differs."""
        user = self.get_user(user_id)
        if user.role != role.value:
            raise ValidationException(
                f"User {user_id} is not a {role.value.lower()}",
                code="WRONG_ROLE",
                details={"user_id": user_id, "expected_role": role.value, "role": user.role},
            )
        if not user.active:
            raise ValidationException(f"User {user_id} is inactive", code="USER_INACTIVE")
        return user

    def require_provider(self, provider_id: str) -> User:
        try:
            return self.require_role(provider_id, RoleName.PROVIDER)
        except NotFoundException:
            raise NotFoundException(
                f"Provider not found with id: {provider_id}", code="PROVIDER_NOT_FOUND"
            ) from None

    def require_customer(self, customer_id: str) -> User:
        try:
            return self.require_role(customer_id, RoleName.CUSTOMER)
        except NotFoundException:
            raise NotFoundException(
                f"Customer not found with id: {customer_id}", code="CUSTOMER_NOT_FOUND"
            ) from None


class ListingCatalog:
    """Resolve listings to price/duration/provider."""

    def __init__(self, db: Session):
        self.repository = RepositoryFactory.create_service_listing_repository(db)

    def get_listing(self, listing_id: str) -> ServiceListing:
        listing = self.repository.get_by_id(listing_id)
        if not listing:
            raise NotFoundException(
                f"Service listing not found with id: {listing_id}", code="LISTING_NOT_FOUND"
            )
        return listing

    def resolve(self, listing_id: str, *, require_active: bool = True) -> ListingSnapshot:
        listing = self.get_listing(listing_id)
        if require_active and not listing.active:
            raise ValidationException(
                "This service listing is not currently accepting bookings",
                code="LISTING_INACTIVE",
                details={"service_listing_id": listing_id},
            )
        return ListingSnapshot(
            id=listing.id,
            provider_id=listing.provider_id,
            title=listing.title,
            price=Decimal(listing.price),
            currency=(listing.currency or settings.default_currency).upper(),
            duration_minutes=listing.duration_minutes,
        )

    def verify_owner(self, listing_id: str, provider_id: str) -> ServiceListing:
        listing = self.get_listing(listing_id)
        if listing.provider_id != provider_id:
            raise ValidationException(
                "Service listing does not belong to this provider",
                code="LISTING_OWNER_MISMATCH",
                details={"service_listing_id": listing_id, "provider_id": provider_id},
            )
        return listing
