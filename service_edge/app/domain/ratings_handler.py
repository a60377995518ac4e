"""
Aggregate ratings: cached reads and invalidating writes.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import BackgroundTasks, Request

from shared.errors import RateLimitError, UpstreamUnavailableError, ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..adapters.authority_client import AuthorityClient
from ..caching.response_cache import ResponseCache
from ..ratelimit.fixed_window import FixedWindowRateLimiter
from . import request_guards

READ_ACTION = "ratings_read"
WRITE_ACTION = "ratings_write"
RATINGS_CACHE_TTL = 300
MIN_RATING = 1
MAX_RATING = 5

logger = get_logger("edge.ratings")


def ratings_cache_key(resource_id: int) -> str:
    return f"ratings:{resource_id}"


async def run_best_effort(description: str, operation: Callable[..., Awaitable[Any]], *args: Any) -> None:
    """Run a detached side effect; failures are logged and swallowed."""
    try:
        await operation(*args)
    except Exception as exc:
        logger.warning("Best-effort task failed", task=description, error=str(exc))


def parse_rating(value: Any) -> Optional[int]:
    rating = request_guards.parse_positive_int(value)
    if rating is None or not MIN_RATING <= rating <= MAX_RATING:
        return None
    return rating


class RatingsHandler:
    """Read path: limit, validate, cache, authority. Write path: limit, validate, authority, invalidate."""

    def __init__(
        self,
        cache: ResponseCache,
        authority: AuthorityClient,
        rate_limiter: FixedWindowRateLimiter,
        *,
        max_body_size: int = 1024,
        cache_ttl: int = RATINGS_CACHE_TTL,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.cache = cache
        self.authority = authority
        self.rate_limiter = rate_limiter
        self.max_body_size = max_body_size
        self.cache_ttl = cache_ttl
        self.metrics = metrics

    async def _enforce_rate_limit(self, request: Request, action: str) -> str:
        ip = request_guards.client_ip(request)
        rate = await self.rate_limiter.check(ip, action)
        if not rate.allowed:
            raise RateLimitError("Too many requests.", retry_after=rate.retry_after)
        return ip

    async def read(self, request: Request, background: BackgroundTasks) -> Dict[str, Any]:
        await self._enforce_rate_limit(request, READ_ACTION)

        raw = request_guards.first_present(request.query_params, "resourceId", "courseId")
        if not raw:
            raise ValidationError("Missing resourceId")
        resource_id = request_guards.parse_positive_int(raw)
        if resource_id is None:
            raise ValidationError("Invalid resourceId")

        key = ratings_cache_key(resource_id)
        try:
            cached = await self.cache.get(key)
        except Exception as exc:
            logger.warning("Ratings cache read failed", resource_id=resource_id, error=str(exc))
            cached = None

        if cached is not None:
            self._count("cache_hits_total")
            return cached
        self._count("cache_misses_total")

        try:
            payload = await self.authority.get_ratings(resource_id)
        except UpstreamUnavailableError:
            raise UpstreamUnavailableError("Backend unavailable")

        background.add_task(
            run_best_effort, "populate ratings cache", self.cache.put, key, payload, self.cache_ttl
        )
        return payload

    async def write(self, request: Request, background: BackgroundTasks) -> Dict[str, Any]:
        ip = await self._enforce_rate_limit(request, WRITE_ACTION)

        request_guards.require_json_content_type(request)
        body = await request_guards.read_json_body(request, self.max_body_size)

        resource_id = request_guards.parse_positive_int(
            request_guards.first_present(body, "resourceId", "courseId")
        )
        if resource_id is None:
            raise ValidationError("Invalid resourceId")

        rating = parse_rating(body.get("rating"))
        if rating is None:
            raise ValidationError("Rating must be 1–5")

        try:
            payload = await self.authority.add_rating(resource_id, rating, ip)
        except UpstreamUnavailableError:
            raise UpstreamUnavailableError("Backend unavailable")

        if payload.get("status") == "success":
            background.add_task(
                run_best_effort, "invalidate ratings cache", self.cache.invalidate, ratings_cache_key(resource_id)
            )
        return payload

    def _count(self, metric: str) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric, cache_type="ratings")
