"""
Access decision for protected-resource requests.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from shared.errors import UpstreamUnavailableError
from shared.logging import get_logger
from ..adapters.authority_client import AuthorityClient
from ..auth.session_token import SessionClaim, SessionTokenCodec
from .request_guards import parse_positive_int

PROTECTED_PATH_PREFIX = "/protected/"


class AccessOutcome(Enum):
    """Terminal states of an access decision."""
    NOT_FOUND = "not_found"
    CHALLENGE = "challenge"
    REDIRECT = "redirect"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"


@dataclass(frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    resource_id: Optional[int] = None
    location: Optional[str] = None
    claim: Optional[SessionClaim] = None


def session_cookie_name(resource_id: int) -> str:
    return f"__session_{resource_id}"


def protected_path(resource_id: int) -> str:
    return f"{PROTECTED_PATH_PREFIX}{resource_id}"


class AccessGateway:
    """Decides redirect-vs-challenge for a request addressing a protected resource.

    NoToken -> Challenge
    InvalidToken (bad signature, expired, other resource) -> Challenge
    ValidToken -> VerifyingUpstream -> Redirect | UpstreamUnavailable
    """

    def __init__(self, codec: SessionTokenCodec, authority: AuthorityClient):
        self.codec = codec
        self.authority = authority
        self.logger = get_logger("edge.access_gateway")

    async def decide(self, raw_resource_id: str, cookies: Mapping[str, str]) -> AccessDecision:
        """Decide for the path segment after the protected prefix.

        One trailing slash is accepted. Anything else that is not a single
        canonical positive integer is Not Found.
        """
        if raw_resource_id.endswith("/"):
            raw_resource_id = raw_resource_id[:-1]
        resource_id = parse_positive_int(raw_resource_id)
        if resource_id is None:
            return AccessDecision(AccessOutcome.NOT_FOUND)

        token = cookies.get(session_cookie_name(resource_id))
        if not token:
            return AccessDecision(AccessOutcome.CHALLENGE, resource_id)

        claim = self.codec.parse(token)
        if claim is None or claim.resource_id != resource_id:
            self.logger.info("Session rejected", resource_id=resource_id)
            return AccessDecision(AccessOutcome.CHALLENGE, resource_id)

        try:
            location = await self.authority.get_location(resource_id)
        except UpstreamUnavailableError:
            location = None

        if not location:
            self.logger.warning("Protected resource location unavailable", resource_id=resource_id)
            return AccessDecision(AccessOutcome.UPSTREAM_UNAVAILABLE, resource_id, claim=claim)

        self.logger.info("Access granted", resource_id=resource_id)
        return AccessDecision(AccessOutcome.REDIRECT, resource_id, location=location, claim=claim)
