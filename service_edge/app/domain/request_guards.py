"""
Request validation helpers shared by the login and ratings handlers.
"""

import json
import re
from typing import Any, Dict, Mapping, Optional

from fastapi import Request

from shared.errors import ForbiddenError, ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_IDENTITY_LENGTH = 254
JSON_CONTENT_TYPE = "application/json"

CORS_METHODS = "GET, POST, OPTIONS"
CORS_HEADERS = "Content-Type"
CORS_MAX_AGE = "86400"


def cors_headers(allowed_origin: str) -> Dict[str, str]:
    """Fixed CORS allow-list attached to API responses."""
    return {
        "Access-Control-Allow-Origin": allowed_origin or "",
        "Access-Control-Allow-Methods": CORS_METHODS,
        "Access-Control-Allow-Headers": CORS_HEADERS,
        "Access-Control-Max-Age": CORS_MAX_AGE,
    }


def check_origin(request: Request, allowed_origin: str) -> None:
    """Reject cross-site calls; requests without an ``Origin`` header pass."""
    origin = request.headers.get("Origin")
    if origin is None:
        return
    if origin != allowed_origin:
        raise ForbiddenError("Origin not allowed")


def client_ip(request: Request) -> str:
    """Extract the caller IP from standard headers."""
    connecting_ip = request.headers.get("CF-Connecting-IP")
    if connecting_ip:
        return connecting_ip.strip()
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


def require_json_content_type(request: Request) -> None:
    content_type = request.headers.get("Content-Type") or ""
    if JSON_CONTENT_TYPE not in content_type.lower():
        raise ValidationError("Content-Type must be application/json")


async def read_json_body(request: Request, max_size: int) -> Dict[str, Any]:
    """Read a small JSON object body, enforcing the size cap before parsing."""
    raw = await request.body()
    if len(raw) > max_size:
        raise ValidationError("Request too large")
    try:
        body = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise ValidationError("Invalid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Invalid JSON")
    return body


def parse_positive_int(value: Any) -> Optional[int]:
    """Return ``value`` as an integer >= 1, or ``None``.

    Accepts JSON integers and canonical decimal strings ("7", not "07",
    "7.0" or "7a"). Booleans and floats are rejected.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 1 else None
    if isinstance(value, str) and value.isascii() and value.isdigit():
        number = int(value)
        if number >= 1 and str(number) == value:
            return number
    return None


def first_present(data: Mapping[str, Any], *names: str) -> Any:
    """Value of the first key in ``names`` present in ``data``."""
    for name in names:
        if name in data:
            return data[name]
    return None


def normalize_identity(value: Any) -> Optional[str]:
    """Trim and lower-case an email identity; ``None`` when it is not email-shaped."""
    if not isinstance(value, str):
        return None
    identity = value.strip().lower()
    if not identity or len(identity) > MAX_IDENTITY_LENGTH:
        return None
    if not EMAIL_PATTERN.match(identity):
        return None
    return identity
