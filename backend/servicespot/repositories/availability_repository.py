# backend/servicespot/repositories/availability_repository.py
"""
Availability Repository for the ServiceSpot bookings core.

Data access for both slot kinds:
- RecurringSlotRepository: weekly template slots
- DateSpecificSlotRepository: one-off slots bound to a calendar date

Capacity counters are changed only through try_reserve/release, which run
a single conditional UPDATE each. The row filter carries the capacity check,
so two concurrent reservations for the last seat cannot both succeed: the
second one matches zero rows.
"""

from datetime import date, time
import logging
from typing import List, Optional, Type, TypeVar

from sqlalchemy import and_, case, delete, func, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import DayOfWeek
from ..core.exceptions import RepositoryException
from ..models.availability import DateSpecificSlot, RecurringSlot
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

SlotT = TypeVar("SlotT", RecurringSlot, DateSpecificSlot)

_DAY_ORDER = case(
    {day.value: day.ordinal for day in DayOfWeek},
    value=RecurringSlot.day_of_week,
    else_=7,
)


class _SlotCapacityRepository(BaseRepository[SlotT]):
    """Atomic capacity updates shared by both slot tables."""

    def __init__(self, db: Session, model: Type[SlotT]):
        super().__init__(db, model)

    def _reserve_filters(self, today: Optional[date]) -> list:
        model = self.model
        return [
            model.is_available.is_(True),
            or_(model.max_bookings.is_(None), model.current_bookings < model.max_bookings),
        ]

    def try_reserve(self, slot_id: str, today: Optional[date] = None) -> bool:
        """
        Consume one booking of capacity if, and only if, the slot can take it.

        Returns False when the slot is closed, full or already in the past;
        nothing is written in that case.
        """
        model = self.model
        reaches_capacity = and_(
            model.max_bookings.isnot(None),
            model.current_bookings + 1 >= model.max_bookings,
        )
        stmt = (
            update(model)
            .where(model.id == slot_id, *self._reserve_filters(today))
            .values(
                current_bookings=model.current_bookings + 1,
                is_available=case((reaches_capacity, False), else_=model.is_available),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error reserving capacity on {slot_id}: {str(e)}")
            raise RepositoryException(f"Failed to reserve slot capacity: {str(e)}") from e
        return result.rowcount == 1

    def release(self, slot_id: str) -> bool:
        """
        Return one booking of capacity; the count never goes below zero.

        Any effective decrement that leaves the count below a finite maximum
        marks the slot available again. Returns False when the slot no
        longer exists.
        """
        model = self.model
        reopens = and_(
            model.max_bookings.isnot(None),
            model.current_bookings > 0,
            model.current_bookings - 1 < model.max_bookings,
        )
        stmt = (
            update(model)
            .where(model.id == slot_id)
            .values(
                current_bookings=case(
                    (model.current_bookings > 0, model.current_bookings - 1), else_=0
                ),
                is_available=case((reopens, True), else_=model.is_available),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error releasing capacity on {slot_id}: {str(e)}")
            raise RepositoryException(f"Failed to release slot capacity: {str(e)}") from e
        return result.rowcount == 1

    def reload(self, slot_id: str) -> Optional[SlotT]:
        """Fetch a slot, overwriting any stale copy held by the session."""
        return self.db.get(self.model, slot_id, populate_existing=True)


class RecurringSlotRepository(_SlotCapacityRepository[RecurringSlot]):
    """Repository for weekly recurring slots."""

    def __init__(self, db: Session):
        super().__init__(db, RecurringSlot)

    def find_by_provider(self, provider_id: str) -> List[RecurringSlot]:
        """All slots of a provider ordered Monday first, then start time."""
        return self._execute_query(
            self._build_query()
            .filter(RecurringSlot.provider_id == provider_id)
            .order_by(_DAY_ORDER, RecurringSlot.start_time)
        )

    def find_by_provider_and_day(self, provider_id: str, day: DayOfWeek) -> List[RecurringSlot]:
        return self._execute_query(
            self._build_query()
            .filter(
                RecurringSlot.provider_id == provider_id,
                RecurringSlot.day_of_week == day.value,
            )
            .order_by(RecurringSlot.start_time)
        )

    def find_available(
        self, provider_id: str, day: Optional[DayOfWeek] = None
    ) -> List[RecurringSlot]:
        """Open slots with remaining capacity, ordered by day then start time."""
        query = self._build_query().filter(
            RecurringSlot.provider_id == provider_id,
            RecurringSlot.is_available.is_(True),
            RecurringSlot.current_bookings < RecurringSlot.max_bookings,
        )
        if day is not None:
            query = query.filter(RecurringSlot.day_of_week == day.value)
        return self._execute_query(query.order_by(_DAY_ORDER, RecurringSlot.start_time))

    def find_by_start(
        self, provider_id: str, day: DayOfWeek, start_time: time
    ) -> Optional[RecurringSlot]:
        try:
            return (
                self._build_query()
                .filter(
                    RecurringSlot.provider_id == provider_id,
                    RecurringSlot.day_of_week == day.value,
                    RecurringSlot.start_time == start_time,
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error finding slot by start: {str(e)}")
            raise RepositoryException(f"Failed to find slot: {str(e)}") from e

    def find_overlapping(
        self,
        provider_id: str,
        day: DayOfWeek,
        start_time: time,
        end_time: time,
        exclude_id: Optional[str] = None,
    ) -> List[RecurringSlot]:
        """Slots on the same provider/day whose [start, end) intersects the given range."""
        query = self._build_query().filter(
            RecurringSlot.provider_id == provider_id,
            RecurringSlot.day_of_week == day.value,
            RecurringSlot.start_time < end_time,
            start_time < RecurringSlot.end_time,
        )
        if exclude_id:
            query = query.filter(RecurringSlot.id != exclude_id)
        return self._execute_query(query.order_by(RecurringSlot.start_time))

    def find_covering(
        self, provider_id: str, day: DayOfWeek, at_time: time
    ) -> List[RecurringSlot]:
        """Slots on that weekday whose range contains ``at_time``."""
        return self._execute_query(
            self._build_query()
            .filter(
                RecurringSlot.provider_id == provider_id,
                RecurringSlot.day_of_week == day.value,
                RecurringSlot.start_time <= at_time,
                RecurringSlot.end_time > at_time,
            )
            .order_by(RecurringSlot.start_time)
        )

    def count_with_bookings(self, provider_id: str) -> int:
        return self._execute_scalar(
            self.db.query(func.count(RecurringSlot.id)).filter(
                RecurringSlot.provider_id == provider_id,
                RecurringSlot.current_bookings > 0,
            )
        )

    def delete_all_for_provider(self, provider_id: str) -> int:
        try:
            result = self.db.execute(
                delete(RecurringSlot)
                .where(RecurringSlot.provider_id == provider_id)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting slots for provider {provider_id}: {str(e)}")
            raise RepositoryException(f"Failed to delete provider slots: {str(e)}") from e


class DateSpecificSlotRepository(_SlotCapacityRepository[DateSpecificSlot]):
    """Repository for date-specific slots, including the retention deletes."""

    def __init__(self, db: Session):
        super().__init__(db, DateSpecificSlot)

    def _ordered(self, query):
        return query.order_by(DateSpecificSlot.available_date, DateSpecificSlot.start_time)

    def _bookable(self, query, today: date):
        return query.filter(
            DateSpecificSlot.available_date >= today,
            DateSpecificSlot.is_available.is_(True),
            or_(
                DateSpecificSlot.max_bookings.is_(None),
                DateSpecificSlot.current_bookings < DateSpecificSlot.max_bookings,
            ),
        )

    def find_by_provider(self, provider_id: str) -> List[DateSpecificSlot]:
        return self._execute_query(
            self._ordered(self._build_query().filter(DateSpecificSlot.provider_id == provider_id))
        )

    def find_by_listing(self, listing_id: str) -> List[DateSpecificSlot]:
        return self._execute_query(
            self._ordered(
                self._build_query().filter(DateSpecificSlot.service_listing_id == listing_id)
            )
        )

    def find_future_by_provider(self, provider_id: str, today: date) -> List[DateSpecificSlot]:
        return self._execute_query(
            self._ordered(
                self._build_query().filter(
                    DateSpecificSlot.provider_id == provider_id,
                    DateSpecificSlot.available_date >= today,
                )
            )
        )

    def find_future_by_listing(self, listing_id: str, today: date) -> List[DateSpecificSlot]:
        return self._execute_query(
            self._ordered(
                self._build_query().filter(
                    DateSpecificSlot.service_listing_id == listing_id,
                    DateSpecificSlot.available_date >= today,
                )
            )
        )

    def find_overlapping(
        self,
        provider_id: str,
        available_date: date,
        start_time: time,
        end_time: time,
        exclude_id: Optional[str] = None,
    ) -> List[DateSpecificSlot]:
        """Slots on the same provider/date whose [start, end) intersects the given range."""
        query = self._build_query().filter(
            DateSpecificSlot.provider_id == provider_id,
            DateSpecificSlot.available_date == available_date,
            DateSpecificSlot.start_time < end_time,
            start_time < DateSpecificSlot.end_time,
        )
        if exclude_id:
            query = query.filter(DateSpecificSlot.id != exclude_id)
        return self._execute_query(query.order_by(DateSpecificSlot.start_time))

    def find_bookable_for_provider(
        self, provider_id: str, start_date: date, end_date: date, today: date
    ) -> List[DateSpecificSlot]:
        query = self._build_query().filter(
            DateSpecificSlot.provider_id == provider_id,
            DateSpecificSlot.available_date.between(start_date, end_date),
        )
        return self._execute_query(self._ordered(self._bookable(query, today)))

    def find_bookable_for_listing(
        self, listing_id: str, start_date: date, end_date: date, today: date
    ) -> List[DateSpecificSlot]:
        query = self._build_query().filter(
            DateSpecificSlot.service_listing_id == listing_id,
            DateSpecificSlot.available_date.between(start_date, end_date),
        )
        return self._execute_query(self._ordered(self._bookable(query, today)))

    def find_covering(
        self,
        provider_id: str,
        listing_id: str,
        available_date: date,
        at_time: time,
    ) -> List[DateSpecificSlot]:
        """
        Slots on that date containing ``at_time`` that apply to the listing.

        Listing-scoped slots sort before provider-wide ones.
        """
        return self._execute_query(
            self._build_query()
            .filter(
                DateSpecificSlot.provider_id == provider_id,
                DateSpecificSlot.available_date == available_date,
                DateSpecificSlot.start_time <= at_time,
                DateSpecificSlot.end_time > at_time,
                or_(
                    DateSpecificSlot.service_listing_id == listing_id,
                    DateSpecificSlot.service_listing_id.is_(None),
                ),
            )
            .order_by(
                DateSpecificSlot.service_listing_id.is_(None),
                DateSpecificSlot.start_time,
            )
        )

    def _reserve_filters(self, today: Optional[date]) -> list:
        filters = super()._reserve_filters(today)
        if today is not None:
            filters.append(DateSpecificSlot.available_date >= today)
        return filters

    # Retention / maintenance

    def fetch_ids_before(self, cutoff: date, limit: int) -> List[str]:
        """Ids of up to ``limit`` slots dated strictly before ``cutoff``."""
        try:
            rows = (
                self.db.query(DateSpecificSlot.id)
                .filter(DateSpecificSlot.available_date < cutoff)
                .order_by(DateSpecificSlot.available_date, DateSpecificSlot.id)
                .limit(limit)
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing slots before {cutoff}: {str(e)}")
            raise RepositoryException(f"Failed to list past slots: {str(e)}") from e

    def delete_by_ids(self, ids: List[str]) -> int:
        """Hard-delete the given slots; returns rows removed."""
        if not ids:
            return 0
        try:
            result = self.db.execute(
                delete(DateSpecificSlot)
                .where(DateSpecificSlot.id.in_(ids))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            self.logger.error(f"Error purging {len(ids)} slots: {str(e)}")
            raise RepositoryException(f"Failed to purge past slots: {str(e)}") from e

    def delete_for_date(self, available_date: date) -> int:
        try:
            result = self.db.execute(
                delete(DateSpecificSlot)
                .where(DateSpecificSlot.available_date == available_date)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting slots on {available_date}: {str(e)}")
            raise RepositoryException(f"Failed to delete slots for date: {str(e)}") from e

    def count_before(self, cutoff: date) -> int:
        return self._execute_scalar(
            self.db.query(func.count(DateSpecificSlot.id)).filter(
                DateSpecificSlot.available_date < cutoff
            )
        )

    def count_on_or_after(self, day: date) -> int:
        return self._execute_scalar(
            self.db.query(func.count(DateSpecificSlot.id)).filter(
                DateSpecificSlot.available_date >= day
            )
        )
