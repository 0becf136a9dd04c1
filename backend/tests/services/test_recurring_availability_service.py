# backend/tests/services/test_recurring_availability_service.py
"""
Tests for RecurringAvailabilityService: weekly template rules and capacity.
"""

from datetime import time

import pytest

from servicespot.core.enums import DayOfWeek, RoleName
from servicespot.core.exceptions import (
    AvailabilityOverlapException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    SlotFullyBookedException,
    StateConflictException,
    ValidationException,
)
from servicespot.schemas.availability import RecurringSlotCreate, RecurringSlotUpdate
from servicespot.services.recurring_availability_service import RecurringAvailabilityService


def _create(service, provider_id, day=DayOfWeek.MONDAY, start=time(9), end=time(10), **kwargs):
    return service.create_slot(
        RecurringSlotCreate(
            provider_id=provider_id, day_of_week=day, start_time=start, end_time=end, **kwargs
        )
    )


class TestCreateSlot:
    def test_creates_open_slot(self, db, provider):
        service = RecurringAvailabilityService(db)

        slot = _create(service, provider.id, max_bookings=2, notes="Bring own tools")

        assert slot.id
        assert slot.day_of_week == "MONDAY"
        assert slot.is_available is True
        assert slot.current_bookings == 0
        assert slot.max_bookings == 2
        assert service.get_slot(slot.id) is slot

    def test_overlapping_slot_same_day_is_conflict(self, db, provider):
        service = RecurringAvailabilityService(db)
        _create(service, provider.id, start=time(9), end=time(10), max_bookings=2)

        with pytest.raises(ConflictException) as exc_info:
            _create(service, provider.id, start=time(9, 30), end=time(10, 30))

        assert isinstance(exc_info.value, AvailabilityOverlapException)
        assert exc_info.value.details["conflicting_slot"] == "09:00-10:00"
        assert len(service.get_provider_slots(provider.id)) == 1

    def test_touching_edges_do_not_overlap(self, db, provider):
        service = RecurringAvailabilityService(db)
        _create(service, provider.id, start=time(9), end=time(10))

        slot = _create(service, provider.id, start=time(10), end=time(11))

        assert slot.start_time == time(10)

    def test_same_range_on_other_day_is_allowed(self, db, provider):
        service = RecurringAvailabilityService(db)
        _create(service, provider.id, day=DayOfWeek.MONDAY)

        _create(service, provider.id, day=DayOfWeek.TUESDAY)

        assert len(service.get_provider_slots(provider.id)) == 2

    def test_duplicate_start_time_is_conflict(self, db, provider):
        service = RecurringAvailabilityService(db)
        _create(service, provider.id, start=time(9), end=time(10))

        with pytest.raises(ConflictException) as exc_info:
            _create(service, provider.id, start=time(9), end=time(9, 30))

        assert exc_info.value.code == "DUPLICATE_SLOT_START"

    def test_other_providers_do_not_conflict(self, db, provider, other_provider):
        service = RecurringAvailabilityService(db)
        _create(service, provider.id)

        _create(service, other_provider.id)

    @pytest.mark.parametrize(("start", "end"), [(time(10), time(9)), (time(9), time(9))])
    def test_end_must_follow_start(self, db, provider, start, end):
        service = RecurringAvailabilityService(db)

        with pytest.raises(ValidationException) as exc_info:
            _create(service, provider.id, start=start, end=end)

        assert exc_info.value.code == "INVALID_TIME_RANGE"

    def test_unknown_provider(self, db):
        service = RecurringAvailabilityService(db)

        with pytest.raises(NotFoundException) as exc_info:
            _create(service, "01HZZZZZZZZZZZZZZZZZZZZZZZ")

        assert exc_info.value.code == "PROVIDER_NOT_FOUND"

    def test_customer_cannot_publish_availability(self, db, customer):
        service = RecurringAvailabilityService(db)

        with pytest.raises(ValidationException) as exc_info:
            _create(service, customer.id)

        assert exc_info.value.code == "WRONG_ROLE"

    def test_inactive_provider_rejected(self, db, make_user):
        inactive = make_user(RoleName.PROVIDER, active=False)
        service = RecurringAvailabilityService(db)

        with pytest.raises(ValidationException) as exc_info:
            _create(service, inactive.id)

        assert exc_info.value.code == "USER_INACTIVE"


class TestUpdateAndDelete:
    def test_partial_update_keeps_other_fields(self, db, provider):
        service = RecurringAvailabilityService(db)
        slot = _create(service, provider.id, max_bookings=3, notes="Morning")

        updated = service.update_slot(slot.id, RecurringSlotUpdate(end_time=time(11)))

        assert updated.end_time == time(11)
        assert updated.start_time == time(9)
        assert updated.max_bookings == 3
        assert updated.notes == "Morning"

    def test_update_into_overlap_is_conflict(self, db, provider):
        service = RecurringAvailabilityService(db)
        _create(service, provider.id, start=time(9), end=time(10))
        later = _create(service, provider.id, start=time(11), end=time(12))

        with pytest.raises(AvailabilityOverlapException):
            service.update_slot(later.id, RecurringSlotUpdate(start_time=time(9, 45)))

    def test_update_inverted_range_rejected(self, db, provider):
        service = RecurringAvailabilityService(db)
        slot = _create(service, provider.id)

        with pytest.raises(ValidationException):
            service.update_slot(slot.id, RecurringSlotUpdate(end_time=time(8)))

    def test_max_bookings_cannot_drop_below_current(self, db, provider, make_recurring_slot):
        slot = make_recurring_slot(max_bookings=3, current_bookings=2)
        service = RecurringAvailabilityService(db)

        with pytest.raises(ValidationException) as exc_info:
            service.update_slot(slot.id, RecurringSlotUpdate(max_bookings=1))

        assert exc_info.value.code == "CAPACITY_BELOW_CURRENT"

    def test_lowering_max_to_current_closes_slot(self, db, provider, make_recurring_slot):
        slot = make_recurring_slot(max_bookings=3, current_bookings=2)
        service = RecurringAvailabilityService(db)

        updated = service.update_slot(slot.id, RecurringSlotUpdate(max_bookings=2))

        assert updated.is_available is False

    def test_raising_max_reopens_slot_closed_for_being_full(self, db, provider, make_recurring_slot):
        slot = make_recurring_slot(max_bookings=2, current_bookings=2, is_available=False)
        service = RecurringAvailabilityService(db)

        updated = service.update_slot(slot.id, RecurringSlotUpdate(max_bookings=4))

        assert updated.is_available is True
        assert service.query_available(provider.id) == [updated]

    def test_raising_max_keeps_manually_closed_slot_closed(self, db, make_recurring_slot):
        slot = make_recurring_slot(max_bookings=3, current_bookings=1, is_available=False)
        service = RecurringAvailabilityService(db)

        updated = service.update_slot(slot.id, RecurringSlotUpdate(max_bookings=5))

        assert updated.is_available is False

    def test_only_owner_may_update_when_actor_given(self, db, provider, other_provider):
        service = RecurringAvailabilityService(db)
        slot = _create(service, provider.id)

        with pytest.raises(ForbiddenException):
            service.update_slot(slot.id, RecurringSlotUpdate(notes="x"), actor_id=other_provider.id)

        service.update_slot(slot.id, RecurringSlotUpdate(notes="ok"), actor_id=provider.id)

    def test_delete_slot(self, db, provider):
        service = RecurringAvailabilityService(db)
        slot = _create(service, provider.id)

        service.delete_slot(slot.id)

        with pytest.raises(NotFoundException):
            service.get_slot(slot.id)

    def test_delete_with_bookings_is_state_conflict(self, db, make_recurring_slot):
        slot = make_recurring_slot(max_bookings=2, current_bookings=1)
        service = RecurringAvailabilityService(db)

        with pytest.raises(StateConflictException) as exc_info:
            service.delete_slot(slot.id)

        assert exc_info.value.code == "SLOT_HAS_BOOKINGS"

    def test_delete_all_for_provider(self, db, provider, make_recurring_slot):
        make_recurring_slot(DayOfWeek.MONDAY)
        make_recurring_slot(DayOfWeek.FRIDAY)
        service = RecurringAvailabilityService(db)

        assert service.delete_all_for_provider(provider.id) == 2
        assert service.get_provider_slots(provider.id) == []

    def test_delete_all_refused_when_any_slot_booked(self, db, provider, make_recurring_slot):
        make_recurring_slot(DayOfWeek.MONDAY)
        make_recurring_slot(DayOfWeek.FRIDAY, max_bookings=2, current_bookings=1)
        service = RecurringAvailabilityService(db)

        with pytest.raises(StateConflictException):
            service.delete_all_for_provider(provider.id)

        assert len(service.get_provider_slots(provider.id)) == 2


class TestQueries:
    def test_query_available_filters_and_orders(self, db, provider, make_recurring_slot):
        make_recurring_slot(DayOfWeek.WEDNESDAY, time(14), time(15))
        make_recurring_slot(DayOfWeek.MONDAY, time(11), time(12))
        make_recurring_slot(DayOfWeek.MONDAY, time(9), time(10))
        make_recurring_slot(DayOfWeek.TUESDAY, time(9), time(10), current_bookings=1)
        make_recurring_slot(DayOfWeek.THURSDAY, time(9), time(10), is_available=False)
        service = RecurringAvailabilityService(db)

        slots = service.query_available(provider.id)

        assert [(s.day_of_week, s.start_time) for s in slots] == [
            ("MONDAY", time(9)),
            ("MONDAY", time(11)),
            ("WEDNESDAY", time(14)),
        ]
        assert [s.start_time for s in service.query_available(provider.id, DayOfWeek.MONDAY)] == [
            time(9),
            time(11),
        ]

    def test_is_slot_available(self, db, provider, make_recurring_slot):
        make_recurring_slot(DayOfWeek.MONDAY, time(9), time(10))
        make_recurring_slot(DayOfWeek.MONDAY, time(10), time(11), current_bookings=1)
        service = RecurringAvailabilityService(db)

        assert service.is_slot_available(provider.id, DayOfWeek.MONDAY, time(9)) is True
        assert service.is_slot_available(provider.id, DayOfWeek.MONDAY, time(10)) is False
        assert service.is_slot_available(provider.id, DayOfWeek.MONDAY, time(12)) is False

    def test_has_overlapping_slots(self, db, provider, make_recurring_slot):
        slot = make_recurring_slot(DayOfWeek.MONDAY, time(9), time(10))
        service = RecurringAvailabilityService(db)

        assert service.has_overlapping_slots(provider.id, DayOfWeek.MONDAY, time(9, 30), time(11))
        assert not service.has_overlapping_slots(provider.id, DayOfWeek.MONDAY, time(10), time(11))
        assert not service.has_overlapping_slots(
            provider.id, DayOfWeek.MONDAY, time(9), time(10), exclude_id=slot.id
        )

    def test_slots_for_day(self, db, provider, make_recurring_slot):
        make_recurring_slot(DayOfWeek.MONDAY)
        make_recurring_slot(DayOfWeek.TUESDAY)
        service = RecurringAvailabilityService(db)

        slots = service.get_provider_slots_for_day(provider.id, DayOfWeek.TUESDAY)

        assert [s.day_of_week for s in slots] == ["TUESDAY"]


class TestCapacity:
    def test_fills_and_closes_at_max(self, db, make_recurring_slot):
        slot = make_recurring_slot(max_bookings=2)
        service = RecurringAvailabilityService(db)

        assert service.increment_booking(slot.id).is_available is True
        full = service.increment_booking(slot.id)

        assert full.current_bookings == 2
        assert full.is_available is False
        with pytest.raises(SlotFullyBookedException):
            service.increment_booking(slot.id)
        assert service.get_slot(slot.id).current_bookings == 2

    def test_release_reopens_full_slot(self, db, make_recurring_slot):
        slot = make_recurring_slot(max_bookings=2, current_bookings=2, is_available=False)
        service = RecurringAvailabilityService(db)

        released = service.decrement_booking(slot.id)

        assert released.current_bookings == 1
        assert released.is_available is True

    def test_release_never_goes_negative(self, db, make_recurring_slot):
        slot = make_recurring_slot(max_bookings=2)
        service = RecurringAvailabilityService(db)

        assert service.decrement_booking(slot.id).current_bookings == 0

    def test_release_below_maximum_marks_closed_slot_available(self, db, make_recurring_slot):
        slot = make_recurring_slot(max_bookings=3, current_bookings=2, is_available=False)
        service = RecurringAvailabilityService(db)

        released = service.decrement_booking(slot.id)

        assert released.current_bookings == 1
        assert released.is_available is True

    def test_release_on_empty_slot_leaves_flag_alone(self, db, make_recurring_slot):
        slot = make_recurring_slot(max_bookings=3, current_bookings=0, is_available=False)
        service = RecurringAvailabilityService(db)

        released = service.decrement_booking(slot.id)

        assert released.current_bookings == 0
        assert released.is_available is False

    def test_closed_slot_rejects_booking(self, db, provider):
        service = RecurringAvailabilityService(db)
        slot = _create(service, provider.id, max_bookings=5)
        service.set_availability(slot.id, False)

        with pytest.raises(SlotFullyBookedException):
            service.increment_booking(slot.id)

    def test_missing_slot(self, db):
        service = RecurringAvailabilityService(db)

        with pytest.raises(NotFoundException):
            service.increment_booking("01HZZZZZZZZZZZZZZZZZZZZZZZ")
        assert service.decrement_booking("01HZZZZZZZZZZZZZZZZZZZZZZZ") is None
