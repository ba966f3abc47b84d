"""Tests for caching functionality."""

from datetime import date

import pytest
import redis.asyncio as redis

from dairyledger.config import settings
from dairyledger.utils import cache as cache_module
from dairyledger.utils.cache import _cacheable_kwargs, cache_key, cached, invalidate_cache


class FakeRedis:
    """In-memory stand-in for the few redis.asyncio calls the cache makes."""

    def __init__(self, fail: bool = False):
        self.store: dict[str, str] = {}
        self.fail = fail

    async def get(self, key):
        if self.fail:
            raise redis.ConnectionError("redis down")
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        if self.fail:
            raise redis.ConnectionError("redis down")
        self.store[key] = value

    async def scan_iter(self, match=None):
        prefix = match.rstrip("*") if match else ""
        for key in list(self.store):
            if key.startswith(prefix):
                yield key

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)


@pytest.fixture
def fake_redis(monkeypatch):
    client = FakeRedis()

    async def _get_redis():
        return client

    monkeypatch.setattr(settings, "cache_enabled", True)
    monkeypatch.setattr(cache_module, "get_redis", _get_redis)
    return client


@pytest.mark.cache
class TestCacheKeys:
    def test_cache_key_generation(self):
        key1 = cache_key(limit=50, offset=0)
        key2 = cache_key(limit=50, offset=0)
        key3 = cache_key(limit=100, offset=0)

        assert key1 == key2
        assert key1 != key3
        assert cache_key() == "default"

    def test_only_simple_kwargs_feed_the_key(self):
        kwargs = {"db": object(), "month": 3, "on": date(2026, 3, 1), "_private": 1}
        assert _cacheable_kwargs(kwargs) == {"month": 3, "on": "2026-03-01"}


@pytest.mark.cache
@pytest.mark.asyncio
class TestCachedDecorator:
    async def test_hit_after_miss(self, fake_redis):
        call_count = 0

        @cached(ttl=10, prefix="billing")
        async def summary(*, month: int):
            nonlocal call_count
            call_count += 1
            return {"month": month, "total": 3000.0}

        assert await summary(month=2) == {"month": 2, "total": 3000.0}
        assert await summary(month=2) == {"month": 2, "total": 3000.0}
        assert call_count == 1

        await summary(month=3)
        assert call_count == 2
        assert all(key.startswith("billing:summary:") for key in fake_redis.store)

    async def test_disabled_bypasses_redis(self, fake_redis, monkeypatch):
        monkeypatch.setattr(settings, "cache_enabled", False)
        call_count = 0

        @cached(prefix="billing")
        async def summary():
            nonlocal call_count
            call_count += 1
            return {"ok": True}

        await summary()
        await summary()

        assert call_count == 2
        assert fake_redis.store == {}

    async def test_redis_error_falls_back(self, fake_redis):
        fake_redis.fail = True

        @cached(prefix="billing")
        async def summary():
            return {"ok": True}

        assert await summary() == {"ok": True}

    async def test_invalidation(self, fake_redis):
        fake_redis.store.update({
            "billing:dashboard:abc": "1",
            "billing:summary:def": "2",
            "other:thing:xyz": "3",
        })

        await invalidate_cache("billing:*")

        assert list(fake_redis.store) == ["other:thing:xyz"]
