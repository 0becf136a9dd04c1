# backend/servicespot/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "testing", "staging", "production"] = Field(
        default="development",
        description="Deployment environment name",
    )
    log_level: str = Field(default="INFO", description="Root log level for services and workers")

    # Persistence
    database_url: str = Field(
        default="sqlite:///./servicespot.db",
        description="SQLAlchemy database URL",
    )
    database_pool_size: int = Field(default=20, ge=1)
    database_max_overflow: int = Field(default=10, ge=0)
    database_pool_timeout: int = Field(default=30, ge=1)

    # Redis (advisory locks + Celery broker fallback)
    redis_url: str = Field(default="redis://localhost:6379", description="Redis connection URL")
    celery_broker_url: str | None = Field(default=None, description="Overrides redis_url for Celery")
    lock_namespace: str = Field(default="servicespot", description="Prefix for redis lock keys")

    # Scheduling model: one implicit local time zone for every date/time value
    timezone: str = Field(default="Asia/Kolkata", description="IANA zone for local dates/times")

    # Bookings
    default_currency: str = Field(default="INR", min_length=3, max_length=3)
    booking_reference_prefix: str = Field(default="BK", min_length=1, max_length=8)
    booking_reference_digits: int = Field(default=6, ge=4, le=12)

    # Retention job
    retention_run_hour: int = Field(default=2, description="Local hour of the daily purge")
    retention_run_minute: int = Field(default=0, description="Local minute of the daily purge")
    retention_chunk_size: int = Field(default=1000, ge=1)
    retention_lock_ttl_seconds: int = Field(default=900, ge=1)

    # Observability
    slow_operation_threshold_seconds: float = Field(default=1.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("retention_run_hour")
    @classmethod
    def _validate_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError(f"retention_run_hour must be between 0 and 23, got {value}")
        return value

    @field_validator("retention_run_minute")
    @classmethod
    def _validate_minute(cls, value: int) -> int:
        if not 0 <= value <= 59:
            raise ValueError(f"retention_run_minute must be between 0 and 59, got {value}")
        return value

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown time zone: {value!r}") from None
        return value

    @field_validator("default_currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def _testing_defaults(self) -> "Settings":
        if is_running_tests() and self.environment == "development":
            self.environment = "testing"
        return self

    @property
    def broker_url(self) -> str:
        """Broker URL for Celery, preferring the explicit override."""
        return self.celery_broker_url or self.redis_url

    def get_database_url(self) -> str:
        """Get the database URL, refusing SQLite for production deployments."""
        url = self.database_url
        if self.environment == "production" and url.startswith("sqlite"):
            raise ValueError("SQLite is not supported in production")
        return url


settings = Settings()
