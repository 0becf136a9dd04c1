# backend/servicespot/services/date_specific_availability_service.py
"""
Date-Specific Availability Service for the ServiceSpot bookings core.

One-off slots bound to a calendar date extend or override the weekly
template. A slot may be scoped to one listing or apply to all of the
provider's listings, and its capacity may be unlimited.

Rules:
- available_date must be strictly after today (local zone) at creation
- end_time > start_time
- no two slots of a provider overlap on the same date
- a listing named on the slot must belong to the provider
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException, StateConflictException, ValidationException
from ..core.timezone_utils import get_local_today
from ..models.availability import DateSpecificSlot
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import DateSpecificSlotCreate, DateSpecificSlotUpdate
from . import slot_capacity
from .availability_rules import (
    ensure_capacity_fits,
    ensure_owner,
    ensure_valid_range,
    raise_if_overlapping,
)
from .base import BaseService
from .directory import ListingCatalog, UserDirectory

logger = logging.getLogger(__name__)

_NULLABLE_FIELDS = ("max_bookings", "notes")


class DateSpecificAvailabilityService(BaseService):
    """Date-specific availability management and bookable-slot queries."""

    def __init__(
        self,
        db: Session,
        directory: Optional[UserDirectory] = None,
        catalog: Optional[ListingCatalog] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_date_specific_slot_repository(db)
        self.directory = directory or UserDirectory(db)
        self.catalog = catalog or ListingCatalog(db)

    # Queries

    def get_slot(self, slot_id: str) -> DateSpecificSlot:
        slot = self.repository.get_by_id(slot_id)
        if not slot:
            raise NotFoundException(
                f"Specific availability not found with id: {slot_id}",
                code="AVAILABILITY_NOT_FOUND",
            )
        return slot

    def get_provider_slots(self, provider_id: str) -> List[DateSpecificSlot]:
        return self.repository.find_by_provider(provider_id)

    def get_listing_slots(self, listing_id: str) -> List[DateSpecificSlot]:
        return self.repository.find_by_listing(listing_id)

    def get_future_provider_slots(
        self, provider_id: str, today: Optional[date] = None
    ) -> List[DateSpecificSlot]:
        return self.repository.find_future_by_provider(provider_id, today or get_local_today())

    def get_future_listing_slots(
        self, listing_id: str, today: Optional[date] = None
    ) -> List[DateSpecificSlot]:
        return self.repository.find_future_by_listing(listing_id, today or get_local_today())

    @BaseService.measure_operation("get_available_dates")
    def get_available_dates(
        self,
        provider_id: str,
        start_date: date,
        end_date: date,
        today: Optional[date] = None,
    ) -> List[date]:
        """Distinct, sorted dates in [start_date, end_date] with at least one bookable slot."""
        self._check_window(start_date, end_date)
        slots = self.repository.find_bookable_for_provider(
            provider_id, start_date, end_date, today or get_local_today()
        )
        return sorted({slot.available_date for slot in slots})

    @BaseService.measure_operation("get_available_dates_for_listing")
    def get_available_dates_for_listing(
        self,
        listing_id: str,
        start_date: date,
        end_date: date,
        today: Optional[date] = None,
    ) -> List[date]:
        self._check_window(start_date, end_date)
        slots = self.repository.find_bookable_for_listing(
            listing_id, start_date, end_date, today or get_local_today()
        )
        return sorted({slot.available_date for slot in slots})

    def get_time_slots_for_date(
        self, provider_id: str, on_date: date, today: Optional[date] = None
    ) -> List[DateSpecificSlot]:
        """Bookable slots of a provider on one date, sorted by start time."""
        today = today or get_local_today()
        slots = self.repository.find_bookable_for_provider(provider_id, on_date, on_date, today)
        return sorted(
            (s for s in slots if s.can_accept_booking(today)), key=lambda s: s.start_time
        )

    def get_time_slots_for_listing_date(
        self, listing_id: str, on_date: date, today: Optional[date] = None
    ) -> List[DateSpecificSlot]:
        today = today or get_local_today()
        slots = self.repository.find_bookable_for_listing(listing_id, on_date, on_date, today)
        return sorted(
            (s for s in slots if s.can_accept_booking(today)), key=lambda s: s.start_time
        )

    # Mutations

    @BaseService.measure_operation("create_date_specific_slot")
    def create_slot(
        self, data: DateSpecificSlotCreate, today: Optional[date] = None
    ) -> DateSpecificSlot:
        """
        Create a slot for one date.

        Raises:
            NotFoundException: Provider or listing does not exist
            ValidationException: Past/today date, bad time range, foreign listing
            ConflictException: Overlaps another slot of the provider on that date
        """
        today = today or get_local_today()
        self.directory.require_provider(data.provider_id)
        if data.service_listing_id:
            self.catalog.verify_owner(data.service_listing_id, data.provider_id)
        self._check_future(data.available_date, today)
        ensure_valid_range(data.start_time, data.end_time)
        raise_if_overlapping(
            data.available_date.isoformat(),
            data.start_time,
            data.end_time,
            self.repository.find_overlapping(
                data.provider_id, data.available_date, data.start_time, data.end_time
            ),
        )

        with self.transaction():
            slot = self.repository.create(
                provider_id=data.provider_id,
                service_listing_id=data.service_listing_id,
                available_date=data.available_date,
                start_time=data.start_time,
                end_time=data.end_time,
                is_available=data.is_available,
                max_bookings=data.max_bookings,
                current_bookings=0,
                notes=data.notes,
            )

        self.logger.info(
            "date_specific_slot_created",
            extra={
                "slot_id": slot.id,
                "provider_id": slot.provider_id,
                "service_listing_id": slot.service_listing_id,
                "available_date": slot.available_date.isoformat(),
                "range": slot.time_range_label(),
                "max_bookings": slot.max_bookings,
            },
        )
        return slot

    @BaseService.measure_operation("update_date_specific_slot")
    def update_slot(
        self,
        slot_id: str,
        data: DateSpecificSlotUpdate,
        actor_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> DateSpecificSlot:
        slot = self.get_slot(slot_id)
        ensure_owner(slot.provider_id, actor_id)

        changes = data.model_dump(exclude_unset=True)
        new_date = changes.get("available_date") or slot.available_date
        start = changes.get("start_time") or slot.start_time
        end = changes.get("end_time") or slot.end_time

        if "available_date" in changes and changes["available_date"] is not None:
            self._check_future(new_date, today or get_local_today())
        ensure_valid_range(start, end)
        if "max_bookings" in changes:
            ensure_capacity_fits(changes["max_bookings"], slot.current_bookings)

        if new_date != slot.available_date or start != slot.start_time or end != slot.end_time:
            raise_if_overlapping(
                new_date.isoformat(),
                start,
                end,
                self.repository.find_overlapping(
                    slot.provider_id, new_date, start, end, exclude_id=slot.id
                ),
            )

        closed_because_full = not slot.is_available and slot.is_fully_booked
        with self.transaction():
            for field, value in changes.items():
                if value is None and field not in _NULLABLE_FIELDS:
                    continue
                setattr(slot, field, value)
            if "max_bookings" in changes and "is_available" not in changes:
                # Raising the ceiling, or clearing it, reopens a slot that only closed for being full
                if slot.is_fully_booked:
                    slot.is_available = False
                elif closed_because_full:
                    slot.is_available = True
            self.db.flush()

        self.logger.info(
            "date_specific_slot_updated",
            extra={"slot_id": slot.id, "fields": sorted(changes)},
        )
        return slot

    @BaseService.measure_operation("delete_date_specific_slot")
    def delete_slot(self, slot_id: str, actor_id: Optional[str] = None) -> None:
        slot = self.get_slot(slot_id)
        ensure_owner(slot.provider_id, actor_id)
        if slot.current_bookings > 0:
            raise StateConflictException(
                "Cannot delete availability with existing bookings",
                code="SLOT_HAS_BOOKINGS",
                details={"slot_id": slot_id, "current_bookings": slot.current_bookings},
            )

        with self.transaction():
            self.repository.delete(slot_id)

        self.logger.info("date_specific_slot_deleted", extra={"slot_id": slot_id})

    def mark_available(self, slot_id: str, actor_id: Optional[str] = None) -> DateSpecificSlot:
        return self.update_slot(slot_id, DateSpecificSlotUpdate(is_available=True), actor_id)

    def mark_unavailable(self, slot_id: str, actor_id: Optional[str] = None) -> DateSpecificSlot:
        return self.update_slot(slot_id, DateSpecificSlotUpdate(is_available=False), actor_id)

    # Capacity

    def increment_booking(self, slot_id: str, today: Optional[date] = None) -> DateSpecificSlot:
        with self.transaction():
            slot = slot_capacity.reserve(
                self.repository,
                slot_id,
                slot_capacity.SlotKind.DATE_SPECIFIC,
                today=today or get_local_today(),
            )
        return slot

    def decrement_booking(self, slot_id: str) -> Optional[DateSpecificSlot]:
        with self.transaction():
            slot = slot_capacity.release(
                self.repository, slot_id, slot_capacity.SlotKind.DATE_SPECIFIC
            )
        return slot

    # Helpers

    @staticmethod
    def _check_future(available_date: date, today: date) -> None:
        if available_date <= today:
            raise ValidationException(
                "Available date must be in the future",
                code="DATE_NOT_IN_FUTURE",
                details={"available_date": available_date.isoformat(), "today": today.isoformat()},
            )

    @staticmethod
    def _check_window(start_date: date, end_date: date) -> None:
        if end_date < start_date:
            raise ValidationException(
                "End date must not be before start date",
                code="INVALID_DATE_RANGE",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )
