"""
Shared error handling for the course access edge.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    status: str = "error"
    code: str
    message: str
    request_id: Optional[str] = None
    details: Dict[str, Any] = {}


class AccessLayerException(Exception):
    """Base exception for edge services."""

    status_code = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        *,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.headers = headers or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(AccessLayerException):
    """Malformed or out-of-range input."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class AuthenticationError(AccessLayerException):
    """Bad credentials or no enrollment. Deliberately generic."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class ForbiddenError(AccessLayerException):
    """Request from a disallowed origin."""

    status_code = 403

    def __init__(self, message: str = "Origin not allowed", details: Optional[Dict[str, Any]] = None):
        super().__init__("FORBIDDEN", message, details)


class NotFoundError(AccessLayerException):
    """Unknown route or malformed resource identifier."""

    status_code = 404

    def __init__(self, message: str = "Not Found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class MethodNotAllowedError(AccessLayerException):
    """HTTP method not supported on the route."""

    status_code = 405

    def __init__(self, message: str = "Method not allowed", details: Optional[Dict[str, Any]] = None):
        super().__init__("METHOD_NOT_ALLOWED", message, details)


class RateLimitError(AccessLayerException):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded", retry_after: int = 1,
                 details: Optional[Dict[str, Any]] = None):
        retry_after = max(1, int(retry_after))
        super().__init__(
            "RATE_LIMIT_ERROR",
            message,
            details,
            headers={"Retry-After": str(retry_after)},
        )
        self.retry_after = retry_after


class UpstreamUnavailableError(AccessLayerException):
    """Network failure, timeout or non-success answer from the remote authority."""

    status_code = 502

    def __init__(self, message: str = "Service unavailable", details: Optional[Dict[str, Any]] = None,
                 *, status_code: Optional[int] = None):
        super().__init__("UPSTREAM_UNAVAILABLE", message, details, status_code=status_code)
