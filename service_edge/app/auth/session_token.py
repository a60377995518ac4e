"""
Session token codec for resource-scoped access cookies.

A token is ``b64(claim-json) + "." + hex(HMAC-SHA256(secret, b64(claim-json)))``
where ``b64`` is the URL-safe base64 alphabet (RFC 4648 section 5: ``-`` and
``_`` instead of ``+`` and ``/``, ``=`` padding kept). The claim JSON has sorted
keys and no whitespace.
"""

from __future__ import annotations

import base64
import binascii
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from . import signer

SESSION_LIFETIME_SECONDS = 30 * 24 * 60 * 60
SEPARATOR = "."


@dataclass(frozen=True)
class SessionClaim:
    """Authenticated fact asserted by a session token."""

    resource_id: int
    subject: str
    issued_at: int
    expires_at: int

    @classmethod
    def issue(
        cls,
        resource_id: int,
        subject: str,
        *,
        lifetime: int = SESSION_LIFETIME_SECONDS,
        now: Optional[int] = None,
    ) -> "SessionClaim":
        """Create a fresh claim starting at ``now``."""
        issued_at = int(time.time()) if now is None else int(now)
        return cls(
            resource_id=resource_id,
            subject=subject.strip().lower(),
            issued_at=issued_at,
            expires_at=issued_at + lifetime,
        )

    def is_active(self, now: Optional[float] = None) -> bool:
        current = time.time() if now is None else now
        return current < self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resourceId": self.resource_id,
            "subject": self.subject,
            "issuedAt": self.issued_at,
            "expiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["SessionClaim"]:
        """Build a claim from decoded JSON, or ``None`` if the shape is wrong."""
        if not isinstance(data, dict):
            return None

        resource_id = data.get("resourceId")
        subject = data.get("subject")
        issued_at = data.get("issuedAt")
        expires_at = data.get("expiresAt")

        for value in (resource_id, issued_at, expires_at):
            if not isinstance(value, int) or isinstance(value, bool):
                return None
        if resource_id < 1:
            return None
        if not isinstance(subject, str) or not subject or subject != subject.lower():
            return None

        return cls(
            resource_id=resource_id,
            subject=subject,
            issued_at=issued_at,
            expires_at=expires_at,
        )


class SessionTokenCodec:
    """Mints and parses signed session tokens."""

    def __init__(self, secret: str, clock: Callable[[], float] = time.time):
        if not secret:
            raise ValueError("Signing secret must not be empty")
        self._secret = secret
        self._clock = clock

    def mint(self, claim: SessionClaim) -> str:
        """Encode and sign ``claim``."""
        return mint(claim, self._secret)

    def parse(self, token: Optional[str]) -> Optional[SessionClaim]:
        """Return the claim carried by ``token`` or ``None`` if it is not a live, authentic token."""
        return parse(token, self._secret, now=self._clock())


def _encode_claim(claim: SessionClaim) -> str:
    canonical = json.dumps(claim.to_dict(), sort_keys=True, separators=(",", ":"))
    return base64.urlsafe_b64encode(canonical.encode("utf-8")).decode("ascii")


def mint(claim: SessionClaim, secret: str) -> str:
    encoded = _encode_claim(claim)
    return f"{encoded}{SEPARATOR}{signer.sign(encoded, secret)}"


def parse(token: Optional[str], secret: str, *, now: Optional[float] = None) -> Optional[SessionClaim]:
    """Decode ``token``.

    Missing separator, bad signature, undecodable payload and expired claims
    all collapse to ``None`` so callers cannot tell them apart from an absent
    token.
    """
    if not token or not isinstance(token, str):
        return None

    encoded, sep, signature = token.rpartition(SEPARATOR)
    if not sep or not encoded:
        return None
    if not signer.verify(encoded, signature, secret):
        return None

    try:
        raw = base64.urlsafe_b64decode(encoded.encode("ascii"))
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        return None

    claim = SessionClaim.from_dict(data)
    if claim is None or not claim.is_active(now):
        return None
    return claim
