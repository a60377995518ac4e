"""
Session signing helpers for the edge gateway.
"""

from .session_token import SessionClaim, SessionTokenCodec, SESSION_LIFETIME_SECONDS
from .signer import sign, verify

__all__ = [
    "SESSION_LIFETIME_SECONDS",
    "SessionClaim",
    "SessionTokenCodec",
    "sign",
    "verify",
]
