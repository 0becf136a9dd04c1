"""
Redis advisory lock for periodic jobs.

The retention purge may be scheduled on several worker instances; this
lock makes sure only one of them runs a given job at a time. Each holder
stores a unique token and release is a compare-and-delete on that token,
so a run that outlives its TTL cannot free a lock taken over by another
worker. When redis is unreachable the lock fails open so a single-instance
deployment keeps working.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
from typing import Iterator, Optional

from redis import Redis
import ulid

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_RELEASE_LUA = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _lock_key(job_name: str) -> str:
    return f"job:{job_name}:mutex"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("job_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_job_lock(job_name: str, ttl_s: int, token: str) -> bool:
    """SET NX EX with ``token`` as the value; only that token may release the lock."""
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_job_lock("acquire", "redis_unavailable")
        return True
    try:
        acquired = bool(
            client.set(_namespaced_key(_lock_key(job_name)), token, nx=True, ex=ttl_s)
        )
    except Exception as exc:
        prometheus_metrics.record_job_lock("acquire", "error")
        logger.warning(
            "job_lock_acquire_failed",
            extra={
                "job_name": job_name,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return True
    prometheus_metrics.record_job_lock("acquire", "success" if acquired else "blocked")
    return acquired


def release_job_lock(job_name: str, token: str) -> bool:
    """Delete the lock only while it still holds ``token``; returns whether it was deleted."""
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_job_lock("release", "redis_unavailable")
        return False
    try:
        deleted = bool(client.eval(_RELEASE_LUA, 1, _namespaced_key(_lock_key(job_name)), token))
    except Exception as exc:
        prometheus_metrics.record_job_lock("release", "error")
        logger.warning(
            "job_lock_release_failed",
            extra={
                "job_name": job_name,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return False
    if not deleted:
        # Expired mid-run; another worker may hold it now
        logger.warning("job_lock_lost", extra={"job_name": job_name})
    prometheus_metrics.record_job_lock("release", "success" if deleted else "not_owner")
    return deleted


@contextmanager
def job_lock(job_name: str, ttl_s: Optional[int] = None) -> Iterator[bool]:
    """Hold the named job lock for the duration of the block; yields whether it was acquired."""
    token = str(ulid.ULID())
    acquired = acquire_job_lock(
        job_name, ttl_s=ttl_s or settings.retention_lock_ttl_seconds, token=token
    )
    try:
        yield acquired
    finally:
        if acquired:
            release_job_lock(job_name, token)
