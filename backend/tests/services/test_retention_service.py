# backend/tests/services/test_retention_service.py
from datetime import time, timedelta

from servicespot.monitoring.prometheus_metrics import REGISTRY
import pytest

from servicespot.core.enums import BookingStatus
from servicespot.core.exceptions import ValidationException
from servicespot.models import Booking, DateSpecificSlot
from servicespot.services.retention_service import RetentionService


def _deleted_metric(mode: str) -> float:
    return REGISTRY.get_sample_value("servicespot_retention_deleted_total", {"mode": mode}) or 0.0


def _remaining_dates(db):
    return sorted(s.available_date for s in db.query(DateSpecificSlot).all())


def test_purges_only_slots_before_today(db, make_date_slot, today):
    for offset in (-3, -2, -1, 0, 1, 5):
        make_date_slot(today + timedelta(days=offset))

    result = RetentionService(db).purge_past_date_specific_availability(today=today)

    assert result.deleted_count == 3
    assert result.cutoff == today
    assert _remaining_dates(db) == [today, today + timedelta(days=1), today + timedelta(days=5)]


def test_second_run_is_a_no_op(db, make_date_slot, today):
    make_date_slot(today - timedelta(days=1))
    service = RetentionService(db)

    assert service.purge_past_date_specific_availability(today=today).deleted_count == 1
    assert service.purge_past_date_specific_availability(today=today).deleted_count == 0


def test_purge_runs_in_chunks(db, make_date_slot, today):
    for offset in range(1, 6):
        make_date_slot(today - timedelta(days=offset))
    make_date_slot(today + timedelta(days=1))

    result = RetentionService(db, chunk_size=2).purge_past_date_specific_availability(today=today)

    assert result.deleted_count == 5
    assert _remaining_dates(db) == [today + timedelta(days=1)]


def test_purge_ignores_booked_or_closed_state(db, make_date_slot, today):
    make_date_slot(today - timedelta(days=1), max_bookings=2, current_bookings=2, is_available=False)
    make_date_slot(today - timedelta(days=2), max_bookings=None, current_bookings=9)

    assert RetentionService(db).purge_past_date_specific_availability(today=today).deleted_count == 2


def test_bookings_survive_purge_of_their_slot(db, make_date_slot, make_booking, today):
    slot = make_date_slot(today - timedelta(days=3))
    booking = make_booking(BookingStatus.COMPLETED, date_specific_slot_id=slot.id)

    RetentionService(db).purge_past_date_specific_availability(today=today)

    db.expire_all()
    kept = db.get(Booking, booking.id)
    assert kept is not None
    assert kept.date_specific_slot_id is None
    assert kept.booking_date == today - timedelta(days=3)
    assert kept.status == BookingStatus.COMPLETED.value


def test_purge_records_deleted_metric(db, make_date_slot, today):
    before = _deleted_metric("scheduled")
    make_date_slot(today - timedelta(days=1))
    make_date_slot(today - timedelta(days=2))

    RetentionService(db).purge_past_date_specific_availability(today=today)

    assert _deleted_metric("scheduled") - before == 2


def test_purge_older_than(db, make_date_slot, today):
    for offset in (-10, -8, -7, -6, -1):
        make_date_slot(today + timedelta(days=offset))

    result = RetentionService(db).purge_older_than(7, today=today)

    assert result.cutoff == today - timedelta(days=7)
    assert result.deleted_count == 2
    assert _remaining_dates(db) == [
        today - timedelta(days=7),
        today - timedelta(days=6),
        today - timedelta(days=1),
    ]


def test_purge_older_than_zero_matches_scheduled_purge(db, make_date_slot, today):
    make_date_slot(today - timedelta(days=1))
    make_date_slot(today)

    assert RetentionService(db).purge_older_than(0, today=today).deleted_count == 1


def test_purge_older_than_rejects_negative(db, today):
    with pytest.raises(ValidationException) as exc_info:
        RetentionService(db).purge_older_than(-1, today=today)

    assert exc_info.value.code == "INVALID_CUTOFF_DAYS"


def test_purge_for_single_date(db, make_date_slot, today):
    target = today - timedelta(days=2)
    make_date_slot(target)
    make_date_slot(target, time(10), time(11))
    make_date_slot(today - timedelta(days=1))

    result = RetentionService(db).purge_for_date(target)

    assert result.deleted_count == 2
    assert result.cutoff == target
    assert _remaining_dates(db) == [today - timedelta(days=1)]


def test_maintenance_stats(db, make_date_slot, make_booking, today):
    make_date_slot(today - timedelta(days=1))
    make_date_slot(today)
    make_date_slot(today + timedelta(days=2))
    make_booking()

    stats = RetentionService(db).get_maintenance_stats(today=today)

    assert stats.total_date_specific_slots == 3
    assert stats.past_date_specific_slots == 1
    assert stats.future_date_specific_slots == 2
    assert stats.total_bookings == 1
    assert stats.today == today
