"""
Edge caching package.

Provides the shared expiring store used both for rate-limit windows and for
cached authority responses. Entries are disposable accelerators; the remote
authority stays the system of record.
"""

from .response_cache import InMemoryCache, RedisCache, ResponseCache, build_cache

__all__ = [
    "InMemoryCache",
    "RedisCache",
    "ResponseCache",
    "build_cache",
]
