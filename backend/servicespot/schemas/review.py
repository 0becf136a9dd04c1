# backend/servicespot/schemas/review.py
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field
from pydantic.functional_validators import field_validator

from .base import StandardizedModel, StrictRequestModel


class ReviewSubmitRequest(StrictRequestModel):
    customer_id: str
    provider_id: str
    booking_id: Optional[str] = None
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=200)
    comment: str = Field(..., min_length=10, max_length=2000)
    on_time: Optional[bool] = None
    would_recommend: Optional[bool] = None

    @field_validator("comment")
    @classmethod
    def _clean_text(cls, v: str) -> str:
        v2 = v.strip()
        if len(v2) < 10:
            raise ValueError("Comment must be at least 10 characters")
        return v2


class ReviewFlagRequest(StrictRequestModel):
    reason: str = Field(..., min_length=1, max_length=500)


class ReviewResponse(StandardizedModel):
    id: str
    customer_id: str
    provider_id: str
    booking_id: Optional[str] = None
    service_listing_id: Optional[str] = None
    rating: int
    title: Optional[str] = None
    comment: str
    on_time: Optional[bool] = None
    would_recommend: Optional[bool] = None
    verified: bool
    flagged: bool
    flag_reason: Optional[str] = None
    created_at: Optional[datetime] = None


class ProviderRatingStatistics(BaseModel):
    provider_id: str
    average_rating: float = Field(..., description="Rounded to 1 decimal place")
    total_reviews: int
    positive_reviews: int = Field(..., description="Reviews rated 4 or 5")
    star_counts: Dict[int, int]
    recommendation_percentage: float
    on_time_percentage: float
