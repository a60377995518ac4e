"""
Credential verification and session issuance.
"""

from dataclasses import dataclass

from fastapi import Request

from shared.errors import (
    AuthenticationError,
    MethodNotAllowedError,
    RateLimitError,
    UpstreamUnavailableError,
    ValidationError,
)
from shared.logging import get_logger
from ..adapters.authority_client import AuthorityClient
from ..auth.session_token import SESSION_LIFETIME_SECONDS, SessionClaim, SessionTokenCodec
from ..ratelimit.fixed_window import FixedWindowRateLimiter
from . import request_guards
from .access_gateway import protected_path, session_cookie_name

LOGIN_ACTION = "login"
MIN_SECRET_LENGTH = 4
MAX_SECRET_LENGTH = 128

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password, or you are not enrolled in this course."


@dataclass(frozen=True)
class LoginResult:
    resource_id: int
    redirect: str
    set_cookie: str


def build_session_cookie(resource_id: int, token: str, max_age: int = SESSION_LIFETIME_SECONDS) -> str:
    """Resource-scoped cookie header value."""
    return "; ".join([
        f"{session_cookie_name(resource_id)}={token}",
        f"Path={protected_path(resource_id)}",
        f"Max-Age={max_age}",
        "HttpOnly",
        "Secure",
        "SameSite=Strict",
    ])


class LoginHandler:
    """Validates a login locally, verifies it remotely, then mints a session."""

    def __init__(
        self,
        codec: SessionTokenCodec,
        authority: AuthorityClient,
        rate_limiter: FixedWindowRateLimiter,
        *,
        allowed_origin: str,
        max_body_size: int = 1024,
        session_lifetime: int = SESSION_LIFETIME_SECONDS,
    ):
        self.codec = codec
        self.authority = authority
        self.rate_limiter = rate_limiter
        self.allowed_origin = allowed_origin
        self.max_body_size = max_body_size
        self.session_lifetime = session_lifetime
        self.logger = get_logger("edge.login")

    async def handle(self, request: Request) -> LoginResult:
        # Every local check runs before the authority is contacted
        request_guards.check_origin(request, self.allowed_origin)
        if request.method != "POST":
            raise MethodNotAllowedError()
        request_guards.require_json_content_type(request)

        ip = request_guards.client_ip(request)
        rate = await self.rate_limiter.check(ip, LOGIN_ACTION)
        if not rate.allowed:
            raise RateLimitError(
                "Too many attempts. Please wait a moment.",
                retry_after=rate.retry_after,
            )

        body = await request_guards.read_json_body(request, self.max_body_size)

        identity = request_guards.normalize_identity(body.get("identity"))
        if identity is None:
            raise ValidationError("Valid email address is required")

        secret = body.get("secret")
        if not isinstance(secret, str) or not MIN_SECRET_LENGTH <= len(secret) <= MAX_SECRET_LENGTH:
            raise ValidationError("Invalid credentials")

        resource_id = request_guards.parse_positive_int(
            request_guards.first_present(body, "resourceId", "courseId")
        )
        if resource_id is None:
            raise ValidationError("Invalid course")

        try:
            valid = await self.authority.verify_access(identity, secret, resource_id)
        except UpstreamUnavailableError:
            raise UpstreamUnavailableError("Verification service unavailable")

        if not valid:
            self.logger.info("Login rejected", resource_id=resource_id)
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        claim = SessionClaim.issue(resource_id, identity, lifetime=self.session_lifetime)
        token = self.codec.mint(claim)
        self.logger.info("Login succeeded", resource_id=resource_id)

        return LoginResult(
            resource_id=resource_id,
            redirect=protected_path(resource_id),
            set_cookie=build_session_cookie(resource_id, token, self.session_lifetime),
        )
