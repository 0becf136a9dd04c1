# backend/tests/repositories/test_slot_capacity_repository.py
"""
Tests for the conditional capacity UPDATEs shared by both slot tables and
the per-year booking reference sequence.
"""

from datetime import time, timedelta

from servicespot.repositories.availability_repository import (
    DateSpecificSlotRepository,
    RecurringSlotRepository,
)
from servicespot.repositories.booking_repository import BookingRepository


def test_try_reserve_closes_slot_at_capacity(db, make_recurring_slot):
    slot = make_recurring_slot(max_bookings=2)
    repo = RecurringSlotRepository(db)

    assert repo.try_reserve(slot.id) is True
    assert repo.reload(slot.id).is_available is True
    assert repo.try_reserve(slot.id) is True
    reloaded = repo.reload(slot.id)
    assert (reloaded.current_bookings, reloaded.is_available) == (2, False)
    assert repo.try_reserve(slot.id) is False
    assert repo.reload(slot.id).current_bookings == 2


def test_try_reserve_on_manually_closed_slot(db, make_recurring_slot):
    slot = make_recurring_slot(max_bookings=5, is_available=False)

    assert RecurringSlotRepository(db).try_reserve(slot.id) is False


def test_release_reopens_slot_below_finite_maximum(db, make_recurring_slot):
    full = make_recurring_slot(max_bookings=1, current_bookings=1, is_available=False)
    closed = make_recurring_slot(
        start=full.end_time, end=full.end_time.replace(hour=11), max_bookings=3,
        current_bookings=2, is_available=False,
    )
    empty = make_recurring_slot(
        start=time(11), end=time(12), max_bookings=3, current_bookings=0, is_available=False,
    )
    repo = RecurringSlotRepository(db)

    assert repo.release(full.id) is True
    assert repo.release(closed.id) is True
    assert repo.release(empty.id) is True

    assert (repo.reload(full.id).current_bookings, repo.reload(full.id).is_available) == (0, True)
    assert (repo.reload(closed.id).current_bookings, repo.reload(closed.id).is_available) == (1, True)
    # Nothing was released, so the flag is left alone
    assert (repo.reload(empty.id).current_bookings, repo.reload(empty.id).is_available) == (0, False)


def test_release_never_goes_negative(db, make_recurring_slot):
    slot = make_recurring_slot(current_bookings=0)
    repo = RecurringSlotRepository(db)

    repo.release(slot.id)

    assert repo.reload(slot.id).current_bookings == 0


def test_release_of_missing_slot(db):
    assert RecurringSlotRepository(db).release("01HZZZZZZZZZZZZZZZZZZZZZZZ") is False


def test_date_specific_reserve_rejects_past_dates(db, make_date_slot, today):
    past = make_date_slot(today - timedelta(days=1), max_bookings=None)
    current = make_date_slot(today, max_bookings=None)
    repo = DateSpecificSlotRepository(db)

    assert repo.try_reserve(past.id, today=today) is False
    assert repo.try_reserve(current.id, today=today) is True


def test_unlimited_date_slot_never_closes(db, make_date_slot, today):
    slot = make_date_slot(max_bookings=None)
    repo = DateSpecificSlotRepository(db)

    for _ in range(3):
        assert repo.try_reserve(slot.id, today=today) is True

    reloaded = repo.reload(slot.id)
    assert (reloaded.current_bookings, reloaded.is_available) == (3, True)


def test_fetch_and_delete_by_ids(db, make_date_slot, today):
    old = [make_date_slot(today - timedelta(days=n)) for n in (3, 2, 1)]
    make_date_slot(today)
    repo = DateSpecificSlotRepository(db)

    ids = repo.fetch_ids_before(today, limit=2)

    assert ids == [old[0].id, old[1].id]
    assert repo.delete_by_ids(ids) == 2
    assert repo.delete_by_ids([]) == 0
    assert repo.count_before(today) == 1
    assert repo.count_on_or_after(today) == 1


def test_reference_sequence_is_per_year(db):
    repo = BookingRepository(db)

    assert [repo.next_reference_number(2030) for _ in range(3)] == [1, 2, 3]
    assert repo.next_reference_number(2031) == 1
    assert repo.next_reference_number(2030) == 4
