# backend/servicespot/services/retention_service.py
"""
RetentionService: purge of date-specific availability whose date has passed.

Slots dated strictly before the cutoff are deleted unconditionally, in
chunks of ``settings.retention_chunk_size`` with one transaction per chunk.
Bookings that referenced a purged slot keep their own date/time; their slot
reference is nulled by the foreign key.

Usage:
    service = RetentionService(db_session)
    result = service.purge_past_date_specific_availability()
"""

from __future__ import annotations

from datetime import date, timedelta
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..core.timezone_utils import get_local_today
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.retention import MaintenanceStats, RetentionResult
from .base import BaseService

logger = logging.getLogger(__name__)


class RetentionService(BaseService):
    """
    Removes stale date-specific slots.

    Running a purge twice with the same cutoff deletes nothing the second
    time, so the scheduled job can be re-run safely.
    """

    def __init__(self, db: Session, chunk_size: Optional[int] = None) -> None:
        super().__init__(db)
        self.slot_repository = RepositoryFactory.create_date_specific_slot_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.chunk_size = chunk_size or settings.retention_chunk_size

    @BaseService.measure_operation("purge_past_date_specific_availability")
    def purge_past_date_specific_availability(
        self, today: Optional[date] = None
    ) -> RetentionResult:
        """Delete every date-specific slot dated before today (local zone)."""
        cutoff = today or get_local_today()
        deleted = self._purge_before(cutoff)
        prometheus_metrics.record_retention_deleted("scheduled", deleted)
        return RetentionResult(deleted_count=deleted, cutoff=cutoff)

    @BaseService.measure_operation("purge_older_than")
    def purge_older_than(self, cutoff_days: int, today: Optional[date] = None) -> RetentionResult:
        """
        Delete slots dated before ``today - cutoff_days``.

        ``cutoff_days=0`` behaves like the scheduled purge.
        """
        if cutoff_days < 0:
            raise ValidationException(
                "cutoff_days must be non-negative",
                code="INVALID_CUTOFF_DAYS",
                details={"cutoff_days": cutoff_days},
            )
        cutoff = (today or get_local_today()) - timedelta(days=cutoff_days)
        deleted = self._purge_before(cutoff)
        prometheus_metrics.record_retention_deleted("cutoff_days", deleted)
        return RetentionResult(deleted_count=deleted, cutoff=cutoff)

    @BaseService.measure_operation("purge_for_date")
    def purge_for_date(self, target_date: date) -> RetentionResult:
        """Delete every date-specific slot on exactly ``target_date``."""
        with self.transaction():
            deleted = self.slot_repository.delete_for_date(target_date)

        logger.info(
            "Retention purge for %s removed %s date-specific slots",
            target_date.isoformat(),
            deleted,
        )
        prometheus_metrics.record_retention_deleted("single_date", deleted)
        return RetentionResult(deleted_count=deleted, cutoff=target_date)

    def get_maintenance_stats(self, today: Optional[date] = None) -> MaintenanceStats:
        today = today or get_local_today()
        past = self.slot_repository.count_before(today)
        future = self.slot_repository.count_on_or_after(today)
        return MaintenanceStats(
            total_date_specific_slots=past + future,
            future_date_specific_slots=future,
            past_date_specific_slots=past,
            total_bookings=self.booking_repository.count_bookings(),
            today=today,
        )

    def _purge_before(self, cutoff: date) -> int:
        """Delete slots before ``cutoff`` in chunks; returns the total removed."""
        eligible = self.slot_repository.count_before(cutoff)
        if eligible == 0:
            logger.info("Retention purge: no date-specific slots before %s", cutoff.isoformat())
            return 0

        logger.info(
            "Retention purge: %s date-specific slots before %s",
            eligible,
            cutoff.isoformat(),
        )

        total_deleted = 0
        chunks = 0
        while True:
            ids = self.slot_repository.fetch_ids_before(cutoff, self.chunk_size)
            if not ids:
                break
            with self.transaction():
                deleted = self.slot_repository.delete_by_ids(ids)
            total_deleted += deleted
            chunks += 1
            if deleted == 0:
                # Rows vanished under a concurrent purge; nothing left to do.
                break

        logger.info(
            "retention_purge_completed",
            extra={
                "cutoff": cutoff.isoformat(),
                "deleted": total_deleted,
                "chunks": chunks,
                "chunk_size": self.chunk_size,
            },
        )
        return total_deleted
