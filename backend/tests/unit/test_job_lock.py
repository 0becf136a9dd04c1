# backend/tests/unit/test_job_lock.py
from __future__ import annotations

import pytest

import servicespot.core.job_lock as job_lock_module

KEY = "servicespot:lock:job:retention_purge:mutex"


class _FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.scripts: list[str] = []

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        self.ttls[key] = ex
        return True

    def eval(self, script, numkeys, *args):
        # Compare-and-delete, as the release script does server side
        self.scripts.append(script)
        keys, argv = args[:numkeys], args[numkeys:]
        if self.store.get(keys[0]) == argv[0]:
            del self.store[keys[0]]
            return 1
        return 0


class _BrokenRedis:
    def set(self, *args, **kwargs):
        raise ConnectionError("redis down")

    def eval(self, *args, **kwargs):
        raise ConnectionError("redis down")


@pytest.fixture
def fake_redis(monkeypatch):
    client = _FakeRedis()
    monkeypatch.setattr(job_lock_module, "_get_sync_redis", lambda: client)
    return client


def test_acquire_stores_token_under_namespaced_key_with_ttl(fake_redis):
    assert job_lock_module.acquire_job_lock("retention_purge", ttl_s=60, token="tok-a") is True
    assert fake_redis.store[KEY] == "tok-a"
    assert fake_redis.ttls[KEY] == 60


def test_second_acquire_is_blocked(fake_redis):
    assert job_lock_module.acquire_job_lock("retention_purge", ttl_s=60, token="tok-a") is True
    assert job_lock_module.acquire_job_lock("retention_purge", ttl_s=60, token="tok-b") is False


def test_release_with_other_token_keeps_lock(fake_redis):
    job_lock_module.acquire_job_lock("retention_purge", ttl_s=60, token="tok-b")

    assert job_lock_module.release_job_lock("retention_purge", "tok-a") is False
    assert fake_redis.store[KEY] == "tok-b"

    assert job_lock_module.release_job_lock("retention_purge", "tok-b") is True
    assert fake_redis.store == {}
    assert all("redis.call(\"get\"" in script for script in fake_redis.scripts)


def test_context_manager_releases(fake_redis):
    with job_lock_module.job_lock("retention_purge") as acquired:
        assert acquired is True
        assert fake_redis.store
    assert fake_redis.store == {}


def test_context_manager_does_not_release_foreign_lock(fake_redis):
    job_lock_module.acquire_job_lock("retention_purge", ttl_s=60, token="tok-other")
    with job_lock_module.job_lock("retention_purge") as acquired:
        assert acquired is False
    assert fake_redis.store[KEY] == "tok-other"


def test_expired_lock_taken_over_survives_original_holder(fake_redis):
    with job_lock_module.job_lock("retention_purge") as acquired:
        assert acquired is True
        # TTL runs out mid-job and another worker takes the lock
        fake_redis.store.pop(KEY)
        assert job_lock_module.acquire_job_lock("retention_purge", ttl_s=60, token="tok-next")

    assert fake_redis.store[KEY] == "tok-next"


def test_fails_open_without_redis(monkeypatch):
    monkeypatch.setattr(job_lock_module, "_get_sync_redis", lambda: None)
    with job_lock_module.job_lock("retention_purge") as acquired:
        assert acquired is True


def test_fails_open_on_redis_error(monkeypatch):
    monkeypatch.setattr(job_lock_module, "_get_sync_redis", lambda: _BrokenRedis())
    assert job_lock_module.acquire_job_lock("retention_purge", ttl_s=60, token="tok-a") is True
    # Release errors are logged, not raised
    assert job_lock_module.release_job_lock("retention_purge", "tok-a") is False
