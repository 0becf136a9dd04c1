# backend/servicespot/repositories/booking_repository.py
"""
Booking Repository for the ServiceSpot bookings core.

This repository handles:
- Booking CRUD operations
- Customer/provider/listing/status queries
- Lookup by human-readable reference
- The per-year reference sequence
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus, RoleName
from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingReferenceSequence
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_by_reference(self, reference: str) -> Optional[Booking]:
        return self.find_one_by(reference=reference)

    def get_all_bookings(self, skip: int = 0, limit: int = 100) -> List[Booking]:
        """All bookings, newest first."""
        return self._execute_query(
            self._build_query().order_by(Booking.created_at.desc(), Booking.id.desc()).offset(skip).limit(limit)
        )

    def get_customer_bookings(
        self, customer_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        query = self._build_query().filter(Booking.customer_id == customer_id)
        if status is not None:
            query = query.filter(Booking.status == status.value)
        return self._execute_query(query.order_by(Booking.booking_date.desc(), Booking.booking_time.desc()))

    def get_provider_bookings(
        self, provider_id: str, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        query = self._build_query().filter(Booking.provider_id == provider_id)
        if status is not None:
            query = query.filter(Booking.status == status.value)
        return self._execute_query(query.order_by(Booking.booking_date.desc(), Booking.booking_time.desc()))

    def get_bookings_for_user(self, user_id: str, role: RoleName) -> List[Booking]:
        """Bookings where the user takes part in the given role; admins see everything."""
        if role == RoleName.PROVIDER:
            return self.get_provider_bookings(user_id)
        if role == RoleName.CUSTOMER:
            return self.get_customer_bookings(user_id)
        return self._execute_query(self._build_query().order_by(Booking.created_at.desc()))

    def get_listing_bookings(self, listing_id: str) -> List[Booking]:
        return self._execute_query(
            self._build_query()
            .filter(Booking.service_listing_id == listing_id)
            .order_by(Booking.booking_date.desc(), Booking.booking_time.desc())
        )

    def get_bookings_by_status(self, status: BookingStatus) -> List[Booking]:
        return self._execute_query(
            self._build_query()
            .filter(Booking.status == status.value)
            .order_by(Booking.booking_date, Booking.booking_time)
        )

    def get_current_status(self, booking_id: str) -> Optional[str]:
        """Status as stored right now, bypassing any copy held by the session."""
        return self._execute_scalar(self.db.query(Booking.status).filter(Booking.id == booking_id))

    def compare_and_set_status(
        self, booking_id: str, expected: BookingStatus, target: BookingStatus
    ) -> bool:
        """
        Move a booking from ``expected`` to ``target`` in one conditional UPDATE.

        Returns False when the stored status is no longer ``expected``, i.e.
        another transaction moved the booking first. Nothing is written then.
        """
        stmt = (
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == expected.value)
            .values(status=target.value)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating status of booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to update booking status: {str(e)}") from e
        return result.rowcount == 1

    def delete_in_status(self, booking_id: str, expected: BookingStatus) -> bool:
        """Delete the booking only while it is still in ``expected``."""
        stmt = (
            delete(Booking)
            .where(Booking.id == booking_id, Booking.status == expected.value)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to delete booking: {str(e)}") from e
        return result.rowcount == 1

    def count_bookings(self) -> int:
        return self._execute_scalar(self.db.query(func.count(Booking.id)))

    def next_reference_number(self, year: int) -> int:
        """
        Advance the sequence for ``year`` and return the new value.

        The UPDATE takes a row lock that is held until the surrounding
        transaction ends, so concurrent callers get distinct numbers.
        """
        seq = BookingReferenceSequence
        bump = (
            update(seq)
            .where(seq.year == year)
            .values(last_value=seq.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            if self.db.execute(bump).rowcount == 0:
                try:
                    with self.db.begin_nested():
                        self.db.add(seq(year=year, last_value=1))
                    return 1
                except IntegrityError:
                    # Another transaction created the row first
                    self.db.execute(bump)
            return self.db.execute(select(seq.last_value).where(seq.year == year)).scalar_one()
        except SQLAlchemyError as e:
            self.logger.error(f"Error advancing booking reference sequence for {year}: {str(e)}")
            raise RepositoryException(f"Failed to generate booking reference: {str(e)}") from e
