"""
Prometheus metrics module for the ServiceSpot bookings core.

This module provides Prometheus-compatible metrics fed by the
@measure_operation decorator plus a handful of domain counters for
capacity, lifecycle and retention events.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "servicespot_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "servicespot_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "servicespot_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

slot_capacity_conflicts_total = Counter(
    "servicespot_slot_capacity_conflicts_total",
    "Booking attempts rejected because the slot had no remaining capacity",
    ["slot_kind"],  # recurring | date_specific
    registry=REGISTRY,
)

booking_transitions_total = Counter(
    "servicespot_booking_transitions_total",
    "Booking lifecycle transitions by event and outcome",
    ["event", "outcome"],  # outcome: applied | rejected
    registry=REGISTRY,
)

retention_deleted_total = Counter(
    "servicespot_retention_deleted_total",
    "Date-specific availability slots removed by the retention job",
    ["mode"],  # scheduled | cutoff_days | single_date
    registry=REGISTRY,
)

job_lock_total = Counter(
    "servicespot_job_lock_total",
    "Advisory job lock operations",
    ["action", "status"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'create_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_capacity_conflict(slot_kind: str) -> None:
        slot_capacity_conflicts_total.labels(slot_kind=slot_kind).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_booking_transition(event: str, outcome: str) -> None:
        booking_transitions_total.labels(event=event, outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_retention_deleted(mode: str, count: int) -> None:
        if count > 0:
            retention_deleted_total.labels(mode=mode).inc(count)
            PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_job_lock(action: str, status: str) -> None:
        job_lock_total.labels(action=action, status=status).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        now = monotonic()
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts

        if payload is not None and ts is not None and (now - ts) <= PrometheusMetrics._cache_ttl_seconds:
            return payload

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = cast(bytes, generate_latest(REGISTRY))
            PrometheusMetrics._cache_ts = monotonic()
            return PrometheusMetrics._cache_payload

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        """Invalidate cached metrics so next scrape refreshes."""
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
