"""
Remote authority client for the edge gateway.

The authority is an opaque third-party backend that owns credentials,
protected-resource locations and ratings. Every call is a JSON ``POST``
carrying an ``action`` discriminator and the shared API key, bound to a
fixed deadline. Calls are never retried here: ``verifyAccess`` and
``addRating`` are not idempotent.
"""

import asyncio
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.errors import UpstreamUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

DEFAULT_TIMEOUT_SECONDS = 8.0


class AuthorityClient:
    """Client for communicating with the remote authority."""

    def __init__(
        self,
        authority_url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        metrics: Optional[MetricsCollector] = None,
        client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.authority_url = authority_url
        self._api_key = api_key
        self._timeout = timeout
        self.metrics = metrics
        self.logger = get_logger("edge.authority_client")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=30.0,
            name="authority",
        )
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _post(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        # One deadline covers connect, send and the full body read
        response = await asyncio.wait_for(
            self._client.post(
                self.authority_url,
                json={"action": action, **payload, "apiKey": self._api_key},
                headers={"Accept": "application/json"},
            ),
            self._timeout,
        )
        if response.status_code < 200 or response.status_code >= 300:
            raise UpstreamUnavailableError(
                "Authority returned a non-success status",
                details={"status_code": response.status_code},
            )
        result = response.json()
        if not isinstance(result, dict):
            raise UpstreamUnavailableError("Authority returned a malformed response")
        return result

    async def _call(self, action: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Run one authority call, mapping every failure to ``UpstreamUnavailableError``."""
        try:
            result = await self.circuit_breaker.call(self._post, action, payload)
        except CircuitBreakerOpenException:
            self._record(action, "circuit_open")
            self.logger.warning("Authority circuit open", action=action)
            raise UpstreamUnavailableError("Authority temporarily unavailable")
        except UpstreamUnavailableError as exc:
            self._record(action, "bad_response")
            self.logger.error("Authority error", action=action, error=exc.message, **exc.details)
            raise
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            self._record(action, "timeout")
            self.logger.error("Authority timeout", action=action, error=type(exc).__name__)
            raise UpstreamUnavailableError("Authority timed out") from exc
        except httpx.HTTPError as exc:
            self._record(action, "http_error")
            self.logger.error("Authority HTTP error", action=action, error=str(exc))
            raise UpstreamUnavailableError("Authority unreachable") from exc
        except ValueError as exc:
            self._record(action, "bad_response")
            self.logger.error("Authority returned invalid JSON", action=action)
            raise UpstreamUnavailableError("Authority returned a malformed response") from exc

        self._record(action, "ok")
        return result

    def _record(self, action: str, outcome: str) -> None:
        if self.metrics:
            self.metrics.increment_counter("authority_calls_total", action=action, outcome=outcome)

    async def get_location(self, resource_id: int) -> Optional[str]:
        """Resolve where the protected resource actually lives.

        Returns ``None`` when the authority answers without a usable location.
        The result must never be cached or shown to the caller.
        """
        result = await self._call("getLocation", {"resourceId": resource_id})
        location = result.get("driveUrl")
        if not isinstance(location, str):
            return None
        location = location.strip()
        if "\r" in location or "\n" in location:
            return None
        parts = urlsplit(location)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            return None
        return location

    async def verify_access(self, identity: str, secret: str, resource_id: int) -> bool:
        """Ask whether ``identity``/``secret`` grants access to ``resource_id``."""
        result = await self._call(
            "verifyAccess",
            {"identity": identity, "secret": secret, "resourceId": resource_id},
        )
        valid = result.get("valid")
        if not isinstance(valid, bool):
            raise UpstreamUnavailableError("Authority returned a malformed response")
        return valid

    async def get_ratings(self, resource_id: int) -> Dict[str, Any]:
        """Fetch the aggregate rating payload (``{average, count}``)."""
        return await self._call("getRatings", {"resourceId": resource_id})

    async def add_rating(self, resource_id: int, rating: int, client_ip: str) -> Dict[str, Any]:
        """Submit a rating; ``client_ip`` lets the authority deduplicate votes."""
        return await self._call(
            "addRating",
            {"resourceId": resource_id, "rating": rating, "ip": client_ip},
        )

    async def check_health(self) -> str:
        return "error" if self.circuit_breaker.is_open() else "ok"
