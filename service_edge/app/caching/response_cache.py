"""
Shared expiring key/value store for the edge gateway.

Both backends honour the same contract: a ``get`` issued ``ttl`` seconds or
more after ``put`` observes a miss, and ``delete`` makes the next ``get`` a
miss regardless of TTL. Values are JSON-serialisable objects.
"""

import abc
import json
import math
import time
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from shared.config import BaseConfig
from shared.logging import get_logger


class ResponseCache(abc.ABC):
    """Minimal ``{get, put, delete}`` interface with TTL semantics."""

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or ``None`` on a miss."""

    @abc.abstractmethod
    async def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""

    @abc.abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` immediately."""

    async def invalidate(self, key: str) -> None:
        await self.delete(key)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class InMemoryCache(ResponseCache):
    """Process-local cache; expired entries are reaped lazily."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, reap_every: int = 256):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._reap_every = max(1, reap_every)
        self._writes = 0

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return json.loads(payload)

    async def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            self._entries.pop(key, None)
            return
        # Serialise on write so callers never share mutable state with the store
        self._entries[key] = (json.dumps(value), self._clock() + ttl_seconds)
        self._writes += 1
        if self._writes % self._reap_every == 0:
            self._reap()

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def _reap(self) -> None:
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


class RedisCache(ResponseCache):
    """Cache backed by Redis key expiry."""

    def __init__(self, redis_url: str, namespace: str = "edge"):
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("edge.cache")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        redis_client = await self._get_redis()
        cached_data = await redis_client.get(self._make_key(key))
        if cached_data is None:
            return None
        if isinstance(cached_data, bytes):
            cached_data = cached_data.decode("utf-8")
        return json.loads(cached_data)

    async def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        redis_client = await self._get_redis()
        # Redis expiry is integral; round up so entries never vanish early
        ttl_ms = max(1, int(math.ceil(ttl_seconds * 1000)))
        await redis_client.set(self._make_key(key), json.dumps(value), px=ttl_ms)
        self.logger.debug("Cached value", key=key, ttl_ms=ttl_ms)

    async def delete(self, key: str) -> None:
        redis_client = await self._get_redis()
        await redis_client.delete(self._make_key(key))

    async def ping(self) -> bool:
        try:
            redis_client = await self._get_redis()
            return bool(await redis_client.ping())
        except Exception as exc:
            self.logger.warning("Cache ping failed", error=str(exc))
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def build_cache(config: BaseConfig) -> ResponseCache:
    """Select the cache backend named by ``config.cache_backend``."""
    if config.cache_backend == "redis":
        return RedisCache(config.redis_url)
    return InMemoryCache()
