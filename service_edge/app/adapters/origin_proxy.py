"""
Pass-through proxy to the default origin.
"""

from typing import Optional

import httpx
from fastapi import Request, Response

from shared.errors import NotFoundError, UpstreamUnavailableError
from shared.logging import get_logger

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
    "content-encoding",
})


class OriginProxy:
    """Forwards requests the gateway does not own to the default origin unchanged."""

    def __init__(self, origin_url: Optional[str], *, timeout: float = 30.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.origin_url = origin_url.rstrip("/") if origin_url else None
        self.logger = get_logger("edge.origin_proxy")
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=False)

    async def close(self) -> None:
        await self._client.aclose()

    async def forward(self, request: Request) -> Response:
        """Relay ``request`` to the origin and hand its response back as-is."""
        if not self.origin_url:
            raise NotFoundError()

        url = f"{self.origin_url}{request.url.path}"
        if request.url.query:
            url = f"{url}?{request.url.query}"

        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS
        }

        try:
            upstream = await self._client.request(
                request.method,
                url,
                headers=headers,
                content=await request.body(),
            )
        except httpx.HTTPError as exc:
            self.logger.error("Origin request failed", path=request.url.path, error=str(exc))
            raise UpstreamUnavailableError("Origin unavailable") from exc

        response = Response(content=upstream.content, status_code=upstream.status_code)
        for name, value in upstream.headers.multi_items():
            if name.lower() not in HOP_BY_HOP_HEADERS:
                response.headers.append(name, value)
        return response
