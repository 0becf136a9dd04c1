from __future__ import annotations

from contextlib import contextmanager
from datetime import date

import servicespot.tasks.retention_tasks as tasks
from servicespot.schemas.retention import RetentionResult
from servicespot.tasks.beat_schedule import RETENTION_TASK_NAME, get_beat_schedule


class _Session:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def _lock(acquired: bool):
    @contextmanager
    def _job_lock(_name, ttl_s=None):
        yield acquired

    return _job_lock


def test_scheduled_purge_success(monkeypatch):
    session = _Session()
    monkeypatch.setattr(tasks, "SessionLocal", lambda: session)
    monkeypatch.setattr(tasks, "job_lock", _lock(True))

    class _RetentionService:
        def __init__(self, _db):
            pass

        def purge_past_date_specific_availability(self):
            return RetentionResult(deleted_count=3, cutoff=date(2030, 1, 7))

    monkeypatch.setattr(tasks, "RetentionService", _RetentionService)

    result = tasks.purge_past_date_specific_availability_task.run()

    assert result == {"deleted_count": 3, "cutoff": "2030-01-07", "skipped": False}
    assert session.closed is True


def test_scheduled_purge_swallows_failures(monkeypatch, caplog):
    session = _Session()
    monkeypatch.setattr(tasks, "SessionLocal", lambda: session)
    monkeypatch.setattr(tasks, "job_lock", _lock(True))

    class _RetentionService:
        def __init__(self, _db):
            pass

        def purge_past_date_specific_availability(self):
            raise RuntimeError("boom")

    monkeypatch.setattr(tasks, "RetentionService", _RetentionService)

    result = tasks.purge_past_date_specific_availability_task.run()

    assert result["deleted_count"] == 0
    assert session.closed is True
    assert "Retention purge failed" in caplog.text


def test_scheduled_purge_skips_when_locked(monkeypatch):
    monkeypatch.setattr(tasks, "job_lock", _lock(False))

    def _no_session():
        raise AssertionError("session must not be opened when the lock is held elsewhere")

    monkeypatch.setattr(tasks, "SessionLocal", _no_session)

    result = tasks.purge_past_date_specific_availability_task.run()

    assert result == {"deleted_count": 0, "cutoff": None, "skipped": True}


def test_purge_older_than_task(monkeypatch):
    session = _Session()
    monkeypatch.setattr(tasks, "SessionLocal", lambda: session)
    calls = {}

    class _RetentionService:
        def __init__(self, _db):
            pass

        def purge_older_than(self, cutoff_days):
            calls["cutoff_days"] = cutoff_days
            return RetentionResult(deleted_count=5, cutoff=date(2029, 12, 31))

    monkeypatch.setattr(tasks, "RetentionService", _RetentionService)

    result = tasks.purge_older_than_task.run(7)

    assert calls == {"cutoff_days": 7}
    assert result["deleted_count"] == 5
    assert session.closed is True


def test_purge_for_date_task_parses_iso_date(monkeypatch):
    session = _Session()
    monkeypatch.setattr(tasks, "SessionLocal", lambda: session)
    seen = []

    class _RetentionService:
        def __init__(self, _db):
            pass

        def purge_for_date(self, target_date):
            seen.append(target_date)
            return RetentionResult(deleted_count=1, cutoff=target_date)

    monkeypatch.setattr(tasks, "RetentionService", _RetentionService)

    result = tasks.purge_for_date_task.run("2030-01-05")

    assert seen == [date(2030, 1, 5)]
    assert result["cutoff"] == "2030-01-05"


def test_purge_for_date_task_bad_date_is_logged(monkeypatch):
    session = _Session()
    monkeypatch.setattr(tasks, "SessionLocal", lambda: session)

    result = tasks.purge_for_date_task.run("not-a-date")

    assert result["deleted_count"] == 0
    assert session.closed is True


def test_beat_schedule_runs_daily_at_configured_local_time():
    entry = get_beat_schedule(hour=2, minute=0)["daily-date-specific-availability-purge"]
    assert entry["task"] == RETENTION_TASK_NAME
    assert entry["schedule"].hour == {2}
    assert entry["schedule"].minute == {0}


def test_task_is_registered_under_schedule_name():
    assert tasks.purge_past_date_specific_availability_task.name == RETENTION_TASK_NAME
    assert tasks.celery_app.conf.beat_schedule
