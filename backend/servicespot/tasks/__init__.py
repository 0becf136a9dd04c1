# backend/servicespot/tasks/__init__.py
"""
Celery tasks package for ServiceSpot.

This package contains the periodic maintenance tasks:
- Daily purge of past date-specific availability
- Administrative purges by cutoff days or single date
"""

from servicespot.tasks.celery_app import celery_app
from servicespot.tasks.retention_tasks import (
    purge_for_date_task,
    purge_older_than_task,
    purge_past_date_specific_availability_task,
)

__all__ = [
    "celery_app",
    "purge_past_date_specific_availability_task",
    "purge_older_than_task",
    "purge_for_date_task",
]

# This allows running celery with: celery -A servicespot.tasks worker
