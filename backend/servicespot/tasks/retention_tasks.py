# backend/servicespot/tasks/retention_tasks.py
"""
Celery tasks for date-specific availability retention.

The scheduled purge never retries and never raises: a failed run is logged
and the next daily run picks up whatever is left. A redis advisory lock
keeps concurrent beat/worker instances from running the purge twice.
"""

from __future__ import annotations

from datetime import date
import logging
from typing import Any, Dict, Optional

from servicespot.core.job_lock import job_lock
from servicespot.database import SessionLocal
from servicespot.services.retention_service import RetentionService
from servicespot.tasks.beat_schedule import RETENTION_TASK_NAME
from servicespot.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

LOCK_NAME = "retention_purge"


def _result(deleted_count: int, cutoff: Optional[date] = None, skipped: bool = False) -> Dict[str, Any]:
    return {
        "deleted_count": deleted_count,
        "cutoff": cutoff.isoformat() if cutoff else None,
        "skipped": skipped,
    }


@celery_app.task(name=RETENTION_TASK_NAME)
def purge_past_date_specific_availability_task() -> Dict[str, Any]:
    """Daily purge of date-specific slots dated before today."""
    with job_lock(LOCK_NAME) as acquired:
        if not acquired:
            logger.info("Retention purge skipped: another instance holds the lock")
            return _result(0, skipped=True)

        db = SessionLocal()
        try:
            result = RetentionService(db).purge_past_date_specific_availability()
            logger.info(
                "Retention purge completed",
                extra={"deleted_count": result.deleted_count, "cutoff": str(result.cutoff)},
            )
            return _result(result.deleted_count, result.cutoff)
        except Exception:
            logger.exception("Retention purge failed; will run again at the next scheduled time")
            return _result(0)
        finally:
            db.close()


@celery_app.task(name="retention.purge_older_than")
def purge_older_than_task(cutoff_days: int) -> Dict[str, Any]:
    """Administrative purge of slots dated before today minus ``cutoff_days``."""
    db = SessionLocal()
    try:
        result = RetentionService(db).purge_older_than(cutoff_days)
        logger.info(
            "Retention purge (cutoff days) completed",
            extra={"cutoff_days": cutoff_days, "deleted_count": result.deleted_count},
        )
        return _result(result.deleted_count, result.cutoff)
    except Exception:
        logger.exception("Retention purge (cutoff days) failed", extra={"cutoff_days": cutoff_days})
        return _result(0)
    finally:
        db.close()


@celery_app.task(name="retention.purge_for_date")
def purge_for_date_task(target_date: str) -> Dict[str, Any]:
    """Administrative purge of every slot on one ISO date."""
    db = SessionLocal()
    try:
        result = RetentionService(db).purge_for_date(date.fromisoformat(target_date))
        logger.info(
            "Retention purge (single date) completed",
            extra={"target_date": target_date, "deleted_count": result.deleted_count},
        )
        return _result(result.deleted_count, result.cutoff)
    except Exception:
        logger.exception("Retention purge (single date) failed", extra={"target_date": target_date})
        return _result(0)
    finally:
        db.close()
