"""
Shared fixtures for edge gateway tests.
"""

from unittest.mock import AsyncMock

import pytest

from shared.config import GatewayConfig
from service_edge.app.adapters.authority_client import AuthorityClient
from service_edge.app.adapters.origin_proxy import OriginProxy
from service_edge.app.auth.session_token import SessionTokenCodec
from service_edge.app.caching.response_cache import InMemoryCache

COOKIE_SECRET = "test-cookie-secret"
ALLOWED_ORIGIN = "https://courses.example.com"


class FakeClock:
    """Manually advanced clock for TTL and window tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    """Gateway configuration with every required setting supplied."""
    return GatewayConfig(
        env="test",
        cookie_secret=COOKIE_SECRET,
        authority_url="https://authority.example.com/exec",
        authority_api_key="test-api-key",
        allowed_origin=ALLOWED_ORIGIN,
        contact_number="15550100",
    )


@pytest.fixture
def cache(clock):
    return InMemoryCache(clock=clock)


@pytest.fixture
def codec():
    return SessionTokenCodec(COOKIE_SECRET)


@pytest.fixture
def authority():
    """Authority stand-in; async methods are AsyncMocks."""
    mock = AsyncMock(spec=AuthorityClient)
    mock.check_health.return_value = "ok"
    return mock


@pytest.fixture
def origin_proxy():
    mock = AsyncMock(spec=OriginProxy)
    return mock
