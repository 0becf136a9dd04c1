# backend/servicespot/services/recurring_availability_service.py
"""
Recurring Availability Service for the ServiceSpot bookings core.

Manages a provider's weekly template: one slot is a day of week plus a time
range with a booking capacity. Slots of the same provider and day never
overlap and never share a start time.
"""

from datetime import time
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.enums import DayOfWeek
from ..core.exceptions import ConflictException, NotFoundException, StateConflictException
from ..models.availability import RecurringSlot
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import RecurringSlotCreate, RecurringSlotUpdate
from . import slot_capacity
from .availability_rules import (
    ensure_capacity_fits,
    ensure_owner,
    ensure_valid_range,
    format_range,
    raise_if_overlapping,
)
from .base import BaseService
from .directory import UserDirectory

logger = logging.getLogger(__name__)


class RecurringAvailabilityService(BaseService):
    """Weekly availability template management."""

    def __init__(self, db: Session, directory: Optional[UserDirectory] = None):
        super().__init__(db)
        self.repository = RepositoryFactory.create_recurring_slot_repository(db)
        self.directory = directory or UserDirectory(db)

    # Queries

    def get_slot(self, slot_id: str) -> RecurringSlot:
        slot = self.repository.get_by_id(slot_id)
        if not slot:
            raise NotFoundException(
                f"Availability not found with id: {slot_id}", code="AVAILABILITY_NOT_FOUND"
            )
        return slot

    def get_provider_slots(self, provider_id: str) -> List[RecurringSlot]:
        return self.repository.find_by_provider(provider_id)

    def get_provider_slots_for_day(self, provider_id: str, day: DayOfWeek) -> List[RecurringSlot]:
        return self.repository.find_by_provider_and_day(provider_id, day)

    @BaseService.measure_operation("query_available_recurring")
    def query_available(
        self, provider_id: str, day_of_week: Optional[DayOfWeek] = None
    ) -> List[RecurringSlot]:
        """Open slots with remaining capacity, ordered by day then start time."""
        return self.repository.find_available(provider_id, day_of_week)

    def is_slot_available(self, provider_id: str, day: DayOfWeek, start_time: time) -> bool:
        """True when a slot starting at ``start_time`` exists and can take a booking."""
        slot = self.repository.find_by_start(provider_id, day, start_time)
        return slot is not None and slot.can_accept_booking()

    def has_overlapping_slots(
        self,
        provider_id: str,
        day: DayOfWeek,
        start_time: time,
        end_time: time,
        exclude_id: Optional[str] = None,
    ) -> bool:
        return bool(
            self.repository.find_overlapping(provider_id, day, start_time, end_time, exclude_id)
        )

    # Mutations

    @BaseService.measure_operation("create_recurring_slot")
    def create_slot(self, data: RecurringSlotCreate) -> RecurringSlot:
        """
        Create a weekly slot.

        Raises:
            NotFoundException: Provider does not exist
            ValidationException: End time not after start time, or user is not a provider
            ConflictException: Same start time already used, or the range overlaps a slot
        """
        self.directory.require_provider(data.provider_id)
        ensure_valid_range(data.start_time, data.end_time)
        self._check_conflicts(data.provider_id, data.day_of_week, data.start_time, data.end_time)

        with self.transaction():
            slot = self.repository.create(
                provider_id=data.provider_id,
                day_of_week=data.day_of_week.value,
                start_time=data.start_time,
                end_time=data.end_time,
                is_available=data.is_available,
                max_bookings=data.max_bookings,
                current_bookings=0,
                break_duration=data.break_duration,
                notes=data.notes,
            )

        self.logger.info(
            "recurring_slot_created",
            extra={
                "slot_id": slot.id,
                "provider_id": slot.provider_id,
                "day_of_week": slot.day_of_week,
                "range": slot.time_range_label(),
                "max_bookings": slot.max_bookings,
            },
        )
        return slot

    @BaseService.measure_operation("update_recurring_slot")
    def update_slot(
        self, slot_id: str, data: RecurringSlotUpdate, actor_id: Optional[str] = None
    ) -> RecurringSlot:
        """Apply only the supplied fields, then re-validate the merged slot."""
        slot = self.get_slot(slot_id)
        ensure_owner(slot.provider_id, actor_id)

        changes = data.model_dump(exclude_unset=True)
        if "day_of_week" in changes and changes["day_of_week"] is not None:
            changes["day_of_week"] = DayOfWeek(changes["day_of_week"]).value

        day = DayOfWeek(changes.get("day_of_week") or slot.day_of_week)
        start = changes.get("start_time") or slot.start_time
        end = changes.get("end_time") or slot.end_time
        ensure_valid_range(start, end)
        if "max_bookings" in changes and changes["max_bookings"] is not None:
            ensure_capacity_fits(changes["max_bookings"], slot.current_bookings)

        if day.value != slot.day_of_week or start != slot.start_time or end != slot.end_time:
            self._check_conflicts(slot.provider_id, day, start, end, exclude_id=slot.id)

        closed_because_full = not slot.is_available and slot.is_fully_booked
        with self.transaction():
            for field, value in changes.items():
                if value is None and field not in ("break_duration", "notes"):
                    continue
                setattr(slot, field, value)
            if "max_bookings" in changes and "is_available" not in changes:
                if slot.is_fully_booked:
                    slot.is_available = False
                elif closed_because_full:
                    slot.is_available = True
            self.db.flush()

        self.logger.info(
            "recurring_slot_updated",
            extra={"slot_id": slot.id, "fields": sorted(changes)},
        )
        return slot

    @BaseService.measure_operation("delete_recurring_slot")
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

        self.logger.info("recurring_slot_deleted", extra={"slot_id": slot_id})

    @BaseService.measure_operation("delete_provider_recurring_slots")
    def delete_all_for_provider(self, provider_id: str) -> int:
        """Remove a provider's whole weekly template; refused while any slot has bookings."""
        booked = self.repository.count_with_bookings(provider_id)
        if booked:
            raise StateConflictException(
                "Cannot delete availability: some slots have existing bookings",
                code="SLOT_HAS_BOOKINGS",
                details={"provider_id": provider_id, "slots_with_bookings": booked},
            )

        with self.transaction():
            deleted = self.repository.delete_all_for_provider(provider_id)

        self.logger.info(
            "recurring_slots_cleared",
            extra={"provider_id": provider_id, "deleted_count": deleted},
        )
        return deleted

    def set_availability(
        self, slot_id: str, is_available: bool, actor_id: Optional[str] = None
    ) -> RecurringSlot:
        return self.update_slot(slot_id, RecurringSlotUpdate(is_available=is_available), actor_id)

    # Capacity

    def increment_booking(self, slot_id: str) -> RecurringSlot:
        with self.transaction():
            slot = slot_capacity.reserve(
                self.repository, slot_id, slot_capacity.SlotKind.RECURRING
            )
        return slot

    def decrement_booking(self, slot_id: str) -> Optional[RecurringSlot]:
        with self.transaction():
            slot = slot_capacity.release(
                self.repository, slot_id, slot_capacity.SlotKind.RECURRING
            )
        return slot

    # Helpers

    def _check_conflicts(
        self,
        provider_id: str,
        day: DayOfWeek,
        start_time: time,
        end_time: time,
        exclude_id: Optional[str] = None,
    ) -> None:
        duplicate = self.repository.find_by_start(provider_id, day, start_time)
        if duplicate is not None and duplicate.id != exclude_id:
            raise ConflictException(
                f"Availability already exists for {day.value} at {start_time.strftime('%H:%M')}",
                code="DUPLICATE_SLOT_START",
                details={"existing_slot_id": duplicate.id, "range": format_range(start_time, end_time)},
            )
        raise_if_overlapping(
            day.value,
            start_time,
            end_time,
            self.repository.find_overlapping(provider_id, day, start_time, end_time, exclude_id),
        )
