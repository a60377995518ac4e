"""
Adapters package for the edge gateway.

Contains HTTP client wrappers for the systems the gateway talks to: the
remote authority and the default origin. Adapters encapsulate:

- Base URLs and request shapes
- Deadlines and circuit breaking
- Error handling that maps to shared errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .authority_client import AuthorityClient
from .origin_proxy import OriginProxy

__all__ = [
    "AuthorityClient",
    "OriginProxy",
]
