"""
Fixed-window rate limiter for the edge gateway.
"""

import math
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..caching.response_cache import ResponseCache


@dataclass(frozen=True)
class WindowPolicy:
    """Window length in seconds and the request budget inside it."""

    window: int
    max_requests: int


RATE_LIMITS: Mapping[str, WindowPolicy] = MappingProxyType({
    "login": WindowPolicy(window=60, max_requests=5),
    "ratings_read": WindowPolicy(window=60, max_requests=30),
    "ratings_write": WindowPolicy(window=60, max_requests=5),
})

# Reported for actions without a policy
UNLIMITED_REMAINING = 999


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float
    limit: Optional[int] = None
    # Whole seconds until the window resets, at least 1 when limited
    retry_after: int = 0


class FixedWindowRateLimiter:
    """Counts requests per (action, client) inside fixed windows.

    State lives in the shared cache as ``{"count", "windowStart"}`` with a TTL
    equal to what is left of the window. Read-increment-write is not atomic:
    concurrent requests for the same key may interleave and the last write
    wins. The limiter is best-effort and fails open when the cache errors.
    """

    def __init__(
        self,
        cache: ResponseCache,
        limits: Mapping[str, WindowPolicy] = RATE_LIMITS,
        *,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.cache = cache
        self.limits = limits
        self.metrics = metrics
        self._clock = clock
        self.logger = get_logger("edge.rate_limiter")

    def _make_key(self, action: str, client_id: str) -> str:
        """Generate rate limit key."""
        return f"rate_limit:{action}:{client_id}"

    async def check(self, client_id: str, action: str) -> RateLimitResult:
        """Count one request for ``client_id`` against ``action``'s window."""
        policy = self.limits.get(action)
        if policy is None:
            return RateLimitResult(allowed=True, remaining=UNLIMITED_REMAINING, reset_at=0)

        now = self._clock()
        key = self._make_key(action, client_id)

        try:
            state = self._coerce_state(await self.cache.get(key), now)
        except Exception as exc:
            self.logger.error("Rate limit read error", action=action, error=str(exc))
            state = {"count": 0, "windowStart": now}

        if now - state["windowStart"] > policy.window:
            state = {"count": 0, "windowStart": now}

        state["count"] += 1
        reset_at = state["windowStart"] + policy.window
        ttl = max(1, int(math.ceil(reset_at - now)))

        try:
            await self.cache.put(key, state, ttl)
        except Exception as exc:
            self.logger.error("Rate limit write error", action=action, error=str(exc))

        allowed = state["count"] <= policy.max_requests
        if not allowed:
            self.logger.warning(
                "Rate limit exceeded",
                action=action,
                count=state["count"],
                limit=policy.max_requests,
            )
            if self.metrics:
                self.metrics.increment_counter("rate_limit_rejections_total", action=action)

        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, policy.max_requests - state["count"]),
            reset_at=reset_at,
            limit=policy.max_requests,
            retry_after=ttl,
        )

    @staticmethod
    def _coerce_state(raw: Any, now: float) -> Dict[str, float]:
        if isinstance(raw, dict):
            count = raw.get("count")
            window_start = raw.get("windowStart")
            if isinstance(count, int) and isinstance(window_start, (int, float)):
                return {"count": count, "windowStart": window_start}
        return {"count": 0, "windowStart": now}
