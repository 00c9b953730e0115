"""Tests for the Redis JSON cache with SWR, locks and tag invalidation."""

import pytest

from nearby_ingest.cache.service import CacheService, create_redis
from nearby_ingest.config.settings import Settings

TAG = "city:berlin:search"


class TestKeys:
    def test_build_key_is_namespaced_and_order_independent(self, cache) -> None:
        key = cache.build_key("search", {"a": 1, "b": [1, 2]})
        assert key.startswith("test:search:")
        assert len(key.rsplit(":", 1)[1]) == 64
        assert key == cache.build_key("search", {"b": [1, 2], "a": 1})
        assert key != cache.build_key("catalog", {"a": 1, "b": [1, 2]})


class TestGetSet:
    async def test_round_trip_with_tag_index(self, cache, fake_redis) -> None:
        await cache.set_json("test:k", {"a": 1}, 60, tags=[TAG])
        assert await cache.get_json("test:k") == {"a": 1}
        assert fake_redis.ttls["test:k"] == 60
        assert fake_redis.store["test:index:city:berlin:search"] == {"test:k"}
        assert fake_redis.ttls["test:index:city:berlin:search"] == 600

    async def test_miss(self, cache) -> None:
        assert await cache.get_json("test:missing") is None

    async def test_invalid_payload_is_a_miss(self, cache, fake_redis) -> None:
        fake_redis.store["test:bad"] = "{not json"
        assert await cache.get_json("test:bad") is None


class TestStaleWhileRevalidate:
    async def test_fresh_then_stale(self, cache, fake_redis) -> None:
        await cache.set_json_swr("test:k", [1, 2], 60, 300, tags=[TAG])
        assert fake_redis.ttls["test:k"] == 360
        assert fake_redis.ttls["test:k:fresh"] == 60

        cached = await cache.get_json_swr("test:k")
        assert (cached.data, cached.stale) == ([1, 2], False)

        # freshness marker expires first
        await fake_redis.delete("test:k:fresh")
        cached = await cache.get_json_swr("test:k")
        assert (cached.data, cached.stale) == ([1, 2], True)

    async def test_missing_value(self, cache) -> None:
        assert await cache.get_json_swr("test:nothing") is None


class TestWithLock:
    async def test_runs_and_releases(self, cache, fake_redis) -> None:
        async def fn():
            assert "test:k:lock" in fake_redis.store
            return 42

        assert await cache.with_lock("test:k:lock", fn) == 42
        assert fake_redis.ttls.get("test:k:lock") is None
        assert "test:k:lock" not in fake_redis.store

    async def test_busy_lock_skips(self, cache, fake_redis) -> None:
        await fake_redis.set("test:k:lock", "1", ex=10)
        calls = []

        async def fn():
            calls.append(1)

        assert await cache.with_lock("test:k:lock", fn) is None
        assert calls == []

    async def test_released_when_fn_raises(self, cache, fake_redis) -> None:
        async def fn():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await cache.with_lock("test:k:lock", fn)
        assert "test:k:lock" not in fake_redis.store


class TestInvalidation:
    async def test_invalidate_by_city(self, cache, fake_redis) -> None:
        await cache.set_json_swr("test:search:a", 1, 60, 300, tags=[TAG])
        await cache.set_json_swr("test:search:b", 2, 60, 300, tags=[TAG])
        await cache.set_json_swr("test:search:c", 3, 60, 300, tags=["city:potsdam:search"])

        deleted = await cache.invalidate_by_city("berlin")

        assert deleted == 4
        assert "test:search:a" not in fake_redis.store
        assert "test:search:b:fresh" not in fake_redis.store
        assert "test:index:city:berlin:search" not in fake_redis.store
        assert await cache.get_json("test:search:c") == 3

    async def test_custom_scopes(self, cache, fake_redis) -> None:
        await cache.set_json("test:catalog:x", 1, 60, tags=["city:berlin:catalog:places"])
        assert await cache.invalidate_by_city("berlin", scopes=["search"]) == 0
        assert await cache.invalidate_by_city("berlin", scopes=["catalog:places"]) == 1

    async def test_flush_namespace(self, cache, fake_redis) -> None:
        for key in ("test:a", "test:b", "test:c"):
            await fake_redis.set(key, "1")
        await fake_redis.set("other:a", "1")

        assert await cache.flush_namespace(batch_size=2) == 3
        assert list(fake_redis.store) == ["other:a"]


class TestDegradation:
    """A disabled or unreachable cache behaves like a permanent miss."""

    @pytest.fixture
    def broken(self, broken_redis, settings) -> CacheService:
        return CacheService(broken_redis, settings)

    async def test_broken_redis(self, broken) -> None:
        await broken.set_json("test:k", 1, 60, tags=[TAG])
        await broken.set_json_swr("test:k", 1, 60, 300)
        assert await broken.get_json("test:k") is None
        assert await broken.get_json_swr("test:k") is None
        assert await broken.invalidate_by_city("berlin") == 0
        assert await broken.flush_namespace() == 0
        await broken.aclose()

    async def test_broken_lock_runs_fn(self, broken) -> None:
        async def fn():
            return "ran"

        assert await broken.with_lock("test:k:lock", fn) == "ran"

    async def test_disabled_by_setting(self, fake_redis, settings) -> None:
        cache = CacheService(fake_redis, settings.model_copy(update={"cache_enabled": False}))

        async def fn():
            return "ran"

        await cache.set_json("test:k", 1, 60)
        assert fake_redis.store == {}
        assert await cache.with_lock("test:k:lock", fn) == "ran"

    def test_create_redis_unconfigured(self) -> None:
        assert create_redis(Settings(redis_url=None)) is None
        assert create_redis(Settings(cache_enabled=False)) is None

    async def test_aclose(self, cache, fake_redis) -> None:
        await cache.aclose()
        assert fake_redis.closed
