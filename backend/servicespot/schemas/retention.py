# backend/servicespot/schemas/retention.py
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .base import StrictRequestModel


class RetentionPurgeRequest(StrictRequestModel):
    """Administrative purge: either a cutoff in days or one explicit date."""

    cutoff_days: Optional[int] = Field(None, ge=0)
    cutoff_date: Optional[date] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "RetentionPurgeRequest":
        if (self.cutoff_days is None) == (self.cutoff_date is None):
            raise ValueError("Provide exactly one of cutoff_days or cutoff_date")
        return self


class RetentionResult(BaseModel):
    deleted_count: int
    cutoff: Optional[date] = None
    skipped: bool = False


class MaintenanceStats(BaseModel):
    total_date_specific_slots: int
    future_date_specific_slots: int
    past_date_specific_slots: int
    total_bookings: int
    today: date
