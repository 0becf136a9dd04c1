# backend/servicespot/services/slot_capacity.py
"""
Capacity bookkeeping shared by recurring and date-specific slots.

increment: current += 1; a finite maximum that is reached closes the slot.
decrement: current = max(0, current - 1); when the count actually drops
and ends below a finite maximum the slot is available again.

Both run as conditional UPDATEs in the repository, inside the caller's
transaction; these helpers turn the row counts into domain outcomes.
"""

from datetime import date
from enum import Enum
import logging
from typing import Optional, Union

from ..core.exceptions import NotFoundException, SlotFullyBookedException
from ..models.availability import DateSpecificSlot, RecurringSlot
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.availability_repository import (
    DateSpecificSlotRepository,
    RecurringSlotRepository,
)

logger = logging.getLogger(__name__)

Slot = Union[RecurringSlot, DateSpecificSlot]
SlotRepository = Union[RecurringSlotRepository, DateSpecificSlotRepository]


class SlotKind(str, Enum):
    RECURRING = "recurring"
    DATE_SPECIFIC = "date_specific"


def reserve(
    repository: SlotRepository,
    slot_id: str,
    kind: SlotKind,
    *,
    today: Optional[date] = None,
) -> Slot:
    """
    Consume one unit of capacity on ``slot_id`` and return the refreshed slot.

    Raises:
        NotFoundException: The slot does not exist
        SlotFullyBookedException: The slot is closed, full, or its date has passed
    """
    if not repository.try_reserve(slot_id, today=today):
        if repository.get_by_id(slot_id) is None:
            raise NotFoundException(f"Availability slot not found with id: {slot_id}")
        prometheus_metrics.record_capacity_conflict(kind.value)
        logger.info(
            "slot_capacity_conflict",
            extra={"slot_id": slot_id, "slot_kind": kind.value},
        )
        raise SlotFullyBookedException(slot_id, details={"slot_kind": kind.value})

    slot = repository.reload(slot_id)
    logger.debug(
        "slot_capacity_reserved",
        extra={
            "slot_id": slot_id,
            "slot_kind": kind.value,
            "current_bookings": slot.current_bookings,
            "max_bookings": slot.max_bookings,
            "is_available": slot.is_available,
        },
    )
    return slot


def release(repository: SlotRepository, slot_id: str, kind: SlotKind) -> Optional[Slot]:
    """
    Return one unit of capacity on ``slot_id``.

    A slot that no longer exists (purged or deleted) is skipped and None is
    returned; the count never goes negative.
    """
    if not repository.release(slot_id):
        logger.warning(
            "slot_capacity_release_skipped",
            extra={"slot_id": slot_id, "slot_kind": kind.value, "reason": "slot_missing"},
        )
        return None

    slot = repository.reload(slot_id)
    logger.debug(
        "slot_capacity_released",
        extra={
            "slot_id": slot_id,
            "slot_kind": kind.value,
            "current_bookings": slot.current_bookings if slot else None,
        },
    )
    return slot
