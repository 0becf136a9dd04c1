# backend/servicespot/repositories/service_listing_repository.py
"""
Service Listing Repository.

Catalog lookups for booking creation plus the booking counter the core
maintains on each listing.
"""

import logging
from typing import List

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.service_listing import ServiceListing
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ServiceListingRepository(BaseRepository[ServiceListing]):
    """Repository for ServiceListing data access."""

    def __init__(self, db: Session):
        super().__init__(db, ServiceListing)
        self.logger = logging.getLogger(__name__)

    def get_provider_listings(self, provider_id: str, active_only: bool = True) -> List[ServiceListing]:
        query = self._build_query().filter(ServiceListing.provider_id == provider_id)
        if active_only:
            query = query.filter(ServiceListing.active.is_(True))
        return self._execute_query(query.order_by(ServiceListing.title))

    def increment_total_bookings(self, listing_id: str) -> None:
        try:
            self.db.execute(
                update(ServiceListing)
                .where(ServiceListing.id == listing_id)
                .values(total_bookings=ServiceListing.total_bookings + 1)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error incrementing bookings for listing {listing_id}: {str(e)}")
            raise RepositoryException(f"Failed to update listing counters: {str(e)}") from e
