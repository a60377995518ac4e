"""
Rate limiting package for the edge gateway.

Holds the fixed-window limiter that enforces per-client budgets on
abuse-prone actions (login attempts, rating reads and writes).
"""

from .fixed_window import RATE_LIMITS, FixedWindowRateLimiter, RateLimitResult, WindowPolicy

__all__ = [
    "RATE_LIMITS",
    "FixedWindowRateLimiter",
    "RateLimitResult",
    "WindowPolicy",
]
