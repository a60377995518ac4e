"""
Edge gateway service for the paid course catalogue.
"""

from typing import Dict, Optional

from fastapi import BackgroundTasks, Request, Response
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import GatewayConfig
from shared.errors import AccessLayerException, MethodNotAllowedError, UpstreamUnavailableError
from .adapters.authority_client import AuthorityClient
from .adapters.origin_proxy import OriginProxy
from .auth.session_token import SessionTokenCodec
from .caching.response_cache import ResponseCache, build_cache
from .domain import pages
from .domain.access_gateway import AccessGateway, AccessOutcome
from .domain.login_handler import LoginHandler
from .domain.ratings_handler import RatingsHandler
from .domain.request_guards import check_origin, client_ip, cors_headers
from .ratelimit.fixed_window import FixedWindowRateLimiter

API_PATHS = ("/auth/login", "/ratings")
PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
ANY_METHOD_BUT_OPTIONS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


def is_api_path(path: str) -> bool:
    normalized = path.rstrip("/") or "/"
    return normalized in API_PATHS or normalized.startswith("/auth/")


class GatewayService(BaseService):
    """Edge gateway service implementation."""

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        *,
        cache: Optional[ResponseCache] = None,
        authority: Optional[AuthorityClient] = None,
        origin_proxy: Optional[OriginProxy] = None,
    ):
        super().__init__(config)
        config = self.config

        # An empty InMemoryCache is falsy, so compare against None explicitly
        self.cache = cache if cache is not None else build_cache(config)
        if authority is None:
            authority = AuthorityClient(
                config.authority_url,
                config.authority_api_key.get_secret_value(),
                timeout=config.authority_timeout_seconds,
                metrics=self.metrics,
            )
        self.authority = authority
        self.origin_proxy = origin_proxy if origin_proxy is not None else OriginProxy(config.origin_url)
        self.codec = SessionTokenCodec(config.cookie_secret.get_secret_value())
        self.rate_limiter = FixedWindowRateLimiter(self.cache, metrics=self.metrics)

        self.access_gateway = AccessGateway(self.codec, self.authority)
        self.login_handler = LoginHandler(
            self.codec,
            self.authority,
            self.rate_limiter,
            allowed_origin=config.allowed_origin,
            max_body_size=config.max_body_size,
            session_lifetime=config.session_lifetime_seconds,
        )
        self.ratings_handler = RatingsHandler(
            self.cache,
            self.authority,
            self.rate_limiter,
            max_body_size=config.max_body_size,
            cache_ttl=config.ratings_cache_ttl,
            metrics=self.metrics,
        )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.authority.close()
            await self.origin_proxy.close()
            await self.cache.close()

        self._setup_gateway_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.gateway_service = self

    def _client_ip(self, request: Request) -> str:
        return client_ip(request)

    def _cors(self) -> Dict[str, str]:
        return cors_headers(self.config.allowed_origin)

    def _error_headers(self, request: Request, exc: AccessLayerException) -> Dict[str, str]:
        if isinstance(exc, UpstreamUnavailableError) and self.config.contact_url:
            exc.details.setdefault("contact", self.config.contact_url)
        if is_api_path(request.url.path):
            return self._cors()
        return {}

    def _setup_gateway_routes(self):
        """Set up gateway-specific routes."""

        @self.app.options("/auth/{rest:path}", include_in_schema=False)
        @self.app.options("/ratings", include_in_schema=False)
        @self.app.options("/ratings/", include_in_schema=False)
        async def cors_preflight():
            """CORS preflight with the fixed allow-list."""
            return Response(status_code=204, headers=self._cors())

        @self.app.get("/protected/{resource_path:path}")
        async def protected_resource(resource_path: str, request: Request):
            """Redirect to the protected resource or challenge for credentials."""
            decision = await self.access_gateway.decide(resource_path, request.cookies)

            if decision.outcome is AccessOutcome.NOT_FOUND:
                return Response("Not Found", status_code=404, media_type="text/plain")
            if decision.outcome is AccessOutcome.CHALLENGE:
                return pages.challenge_page(decision.resource_id, self.config.contact_url)
            if decision.outcome is AccessOutcome.UPSTREAM_UNAVAILABLE:
                return pages.error_page(
                    "Course Unavailable",
                    "This course content is temporarily unavailable. Please contact support.",
                    self.config.contact_url,
                    status_code=503,
                )
            return pages.redirect(decision.location)

        @self.app.api_route("/auth/login", methods=ANY_METHOD_BUT_OPTIONS)
        @self.app.api_route("/auth/login/", methods=ANY_METHOD_BUT_OPTIONS, include_in_schema=False)
        async def login(request: Request):
            """Verify credentials with the authority and issue a session cookie."""
            result = await self.login_handler.handle(request)
            headers = self._cors()
            headers["Set-Cookie"] = result.set_cookie
            return JSONResponse(
                {"status": "success", "redirect": result.redirect},
                headers=headers,
            )

        @self.app.api_route("/ratings", methods=ANY_METHOD_BUT_OPTIONS)
        @self.app.api_route("/ratings/", methods=ANY_METHOD_BUT_OPTIONS, include_in_schema=False)
        async def ratings(request: Request, background_tasks: BackgroundTasks):
            """Read (GET) or submit (POST) aggregate ratings."""
            check_origin(request, self.config.allowed_origin)
            if request.method == "GET":
                payload = await self.ratings_handler.read(request, background_tasks)
            elif request.method == "POST":
                payload = await self.ratings_handler.write(request, background_tasks)
            else:
                raise MethodNotAllowedError()
            return JSONResponse(payload, headers=self._cors())

        @self.app.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
        async def pass_through(path: str, request: Request):
            """Everything else goes to the default origin unchanged."""
            return await self.origin_proxy.forward(request)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check gateway dependencies."""
        return {
            "cache": "ok" if await self.cache.ping() else "error",
            "authority": await self.authority.check_health(),
        }


def create_app(
    config: Optional[GatewayConfig] = None,
    cache: Optional[ResponseCache] = None,
    authority: Optional[AuthorityClient] = None,
    origin_proxy: Optional[OriginProxy] = None,
):
    """Create FastAPI application."""
    service = GatewayService(config, cache=cache, authority=authority, origin_proxy=origin_proxy)
    return service.app


if __name__ == "__main__":
    service = GatewayService()
    service.run()
