"""
HMAC-SHA256 signing for session payloads.
"""

import hashlib
import hmac
from typing import Union

BytesLike = Union[str, bytes]


def _to_bytes(value: BytesLike) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def sign(payload: BytesLike, secret: BytesLike) -> str:
    """Return the lowercase hex HMAC-SHA256 digest of ``payload``."""
    return hmac.new(_to_bytes(secret), _to_bytes(payload), hashlib.sha256).hexdigest()


def verify(payload: BytesLike, signature: object, secret: BytesLike) -> bool:
    """Check ``signature`` against ``payload`` without leaking where a mismatch occurs.

    A length mismatch is rejected immediately; equal-length inputs are compared
    with ``hmac.compare_digest`` which inspects every byte before deciding.
    Malformed input never raises, it simply does not verify.
    """
    if not isinstance(signature, (str, bytes)):
        return False
    try:
        expected = sign(payload, secret).encode("ascii")
        candidate = signature if isinstance(signature, bytes) else signature.encode("ascii")
    except (TypeError, UnicodeError):
        return False

    if len(expected) != len(candidate):
        return False
    return hmac.compare_digest(expected, candidate)
