# backend/servicespot/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for ServiceSpot.

The retention purge runs once a day at a fixed local time
(``settings.retention_run_hour``:``settings.retention_run_minute``). The
crontab is interpreted in the Celery app's time zone, which is the local
scheduling zone.
"""

from typing import Any, Optional

from celery.schedules import crontab

from servicespot.core.config import settings

RETENTION_TASK_NAME = "retention.purge_past_date_specific_availability"


def get_beat_schedule(
    hour: Optional[int] = None, minute: Optional[int] = None
) -> dict[str, dict[str, Any]]:
    """
    Build the beat schedule.

    Args:
        hour: Local hour of the daily purge (defaults to settings)
        minute: Local minute of the daily purge (defaults to settings)

    Returns:
        Mapping of schedule entry name to Celery beat configuration dict
    """
    run_hour = settings.retention_run_hour if hour is None else hour
    run_minute = settings.retention_run_minute if minute is None else minute
    return {
        "daily-date-specific-availability-purge": {
            "task": RETENTION_TASK_NAME,
            "schedule": crontab(hour=run_hour, minute=run_minute),
            "args": [],
            "kwargs": {},
            "options": {
                "queue": "maintenance",
                "priority": 2,
            },
        },
    }
