# backend/servicespot/tasks/celery_app.py
"""
Celery application configuration for ServiceSpot.

Sets up the Celery app with Redis as the broker, the local scheduling time
zone for beat, JSON serialization and registration of the task modules.
"""

from typing import Any, Dict

from celery import Celery
from celery.signals import setup_logging

from servicespot.core.config import settings


def _with_db_index(url: str) -> str:
    """Ensure a Redis URL names a database number."""
    if not any(url.endswith(f"/{i}") for i in range(16)):
        return f"{url.rstrip('/')}/0"
    return url


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Celery: Configured Celery application instance
    """
    broker_url = _with_db_index(settings.broker_url)

    celery_app = Celery("servicespot", broker=broker_url, backend=broker_url)

    celery_app.conf.update(
        {
            # Task settings
            "task_serializer": "json",
            "accept_content": ["json"],
            "result_serializer": "json",
            # Beat crontabs are evaluated in the local scheduling zone
            "timezone": settings.timezone,
            "enable_utc": True,
            # Worker settings
            "worker_prefetch_multiplier": 4,
            "worker_max_tasks_per_child": 1000,
            # Task execution settings
            "task_soft_time_limit": 300,
            "task_time_limit": 600,
            "task_acks_late": True,
            "task_reject_on_worker_lost": True,
            "beat_schedule_filename": "celerybeat-schedule",
            # Logging
            "worker_hijack_root_logger": False,
            "worker_redirect_stdouts": True,
            "worker_redirect_stdouts_level": "INFO",
            "broker_transport_options": {
                "visibility_timeout": 3600,
                "polling_interval": 10.0,
            },
        }
    )

    # Force import of task modules so tasks are registered without autodiscovery
    celery_app.conf.imports = ("servicespot.tasks.retention_tasks",)
    celery_app.conf.task_routes = {
        "retention.*": {"queue": "maintenance"},
    }

    from servicespot.tasks.beat_schedule import get_beat_schedule

    celery_app.conf.beat_schedule = get_beat_schedule()

    return celery_app


# Disable Celery's default logging configuration
@setup_logging.connect  # type: ignore[misc]
def config_loggers(*args: Any, **kwargs: Any) -> None:
    """Configure logging to integrate with the application's logging setup."""
    import logging

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


celery_app = create_celery_app()


@celery_app.task(name="servicespot.tasks.health_check")  # type: ignore[misc]
def health_check() -> Dict[str, str]:
    """Simple health check task to verify Celery is working."""
    from datetime import datetime, timezone

    current_task = celery_app.current_task

    return {
        "status": "healthy",
        "worker": current_task.request.hostname if current_task else "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
