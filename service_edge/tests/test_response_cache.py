"""
Unit tests for the response cache backends.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from service_edge.app.caching.response_cache import InMemoryCache, RedisCache, build_cache


class TestInMemoryCache:
    """Test cases for InMemoryCache."""

    @pytest.mark.asyncio
    async def test_get_before_ttl_hits(self, cache, clock):
        await cache.put("ratings:7", {"average": 4.5, "count": 2}, 300)
        clock.advance(299)

        assert await cache.get("ratings:7") == {"average": 4.5, "count": 2}

    @pytest.mark.asyncio
    async def test_get_at_ttl_misses(self, cache, clock):
        await cache.put("ratings:7", {"average": 4.5}, 300)
        clock.advance(300)

        assert await cache.get("ratings:7") is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_delete_forces_miss(self, cache):
        await cache.put("ratings:7", {"average": 4.5}, 300)
        await cache.invalidate("ratings:7")

        assert await cache.get("ratings:7") is None

    @pytest.mark.asyncio
    async def test_delete_missing_key_is_noop(self, cache):
        await cache.delete("missing")

        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_non_positive_ttl_removes_entry(self, cache):
        await cache.put("key", {"a": 1}, 60)
        await cache.put("key", {"a": 2}, 0)

        assert await cache.get("key") is None

    @pytest.mark.asyncio
    async def test_returned_values_are_copies(self, cache):
        value = {"count": 1}
        await cache.put("key", value, 60)
        value["count"] = 2
        fetched = await cache.get("key")
        fetched["count"] = 3

        assert await cache.get("key") == {"count": 1}

    @pytest.mark.asyncio
    async def test_expired_entries_are_reaped_on_write(self, clock):
        cache = InMemoryCache(clock=clock, reap_every=2)
        await cache.put("old", 1, 10)
        clock.advance(11)
        await cache.put("new", 2, 10)

        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_ping(self, cache):
        assert await cache.ping() is True


class TestRedisCache:
    """Test cases for RedisCache."""

    @pytest.fixture
    def redis_cache(self):
        return RedisCache("redis://localhost:6379/0")

    @pytest.mark.asyncio
    async def test_put_uses_millisecond_expiry(self, redis_cache):
        with patch.object(redis_cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis

            await redis_cache.put("ratings:7", {"average": 4.0}, 1.5)

            mock_redis.set.assert_awaited_once_with(
                "edge:ratings:7", json.dumps({"average": 4.0}), px=1500
            )

    @pytest.mark.asyncio
    async def test_get_decodes_json(self, redis_cache):
        with patch.object(redis_cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_redis.get.return_value = b'{"count": 3}'
            mock_get_redis.return_value = mock_redis

            assert await redis_cache.get("ratings:7") == {"count": 3}
            mock_redis.get.assert_awaited_once_with("edge:ratings:7")

    @pytest.mark.asyncio
    async def test_get_miss(self, redis_cache):
        with patch.object(redis_cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_redis.get.return_value = None
            mock_get_redis.return_value = mock_redis

            assert await redis_cache.get("ratings:7") is None

    @pytest.mark.asyncio
    async def test_delete(self, redis_cache):
        with patch.object(redis_cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_get_redis.return_value = mock_redis

            await redis_cache.invalidate("ratings:7")

            mock_redis.delete.assert_awaited_once_with("edge:ratings:7")

    @pytest.mark.asyncio
    async def test_ping_failure_reports_false(self, redis_cache):
        with patch.object(redis_cache, "_get_redis", new_callable=AsyncMock) as mock_get_redis:
            mock_redis = AsyncMock()
            mock_redis.ping.side_effect = ConnectionError("refused")
            mock_get_redis.return_value = mock_redis

            assert await redis_cache.ping() is False


class TestBuildCache:
    """Test cases for backend selection."""

    def test_memory_backend_by_default(self, config):
        assert isinstance(build_cache(config), InMemoryCache)

    def test_redis_backend(self, config):
        redis_config = config.model_copy(update={"cache_backend": "redis"})

        assert isinstance(build_cache(redis_config), RedisCache)
