"""Custom exception hierarchy for the JobScout gateway.

This module defines a consistent exception hierarchy that enables:
- Structured error responses with error codes
- Consistent HTTP status code mapping
- A clear split between errors raised before a stream opens (rendered as
  JSON responses) and errors raised inside a stream (rendered as SSE
  ``error`` events)

Usage:
    from jobscout.core.exceptions import RateLimitExceededError

    raise RateLimitExceededError(retry_after_ms=120_000)
"""

import math
from typing import Any


class GatewayError(Exception):
    """Base exception for all gateway errors.

    All custom exceptions should inherit from this class to enable
    consistent error handling and response formatting.

    Attributes:
        code: Machine-readable error code (e.g., "RATE_LIMITED")
        message: Human-readable error message
        status_code: HTTP status code to return
        details: Additional error details (optional)
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Override default message
            code: Override default error code
            details: Additional error details
        """
        if message:
            self.message = message
        if code:
            self.code = code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str] | None:
        """Extra response headers for this error, if any."""
        return None

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        """Convert exception to API error response format.

        Args:
            request_id: Request correlation ID

        Returns:
            Error response dictionary
        """
        error: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if request_id:
            error["request_id"] = request_id
        if self.details:
            error["details"] = self.details
        return {"error": error}


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(GatewayError):
    """Raised when the inbound request is malformed or missing fields."""

    code: str = "VALIDATION_ERROR"
    message: str = "Invalid request"
    status_code: int = 400

    def __init__(
        self,
        message: str | None = None,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with optional field information."""
        if details is None:
            details = {}
        if field:
            details["field"] = field
        super().__init__(message=message, details=details if details else None)


# =============================================================================
# Rate Limiting (429)
# =============================================================================


class RateLimitExceededError(GatewayError):
    """Raised when a user has exhausted the token bucket for an endpoint."""

    code: str = "RATE_LIMITED"
    message: str = "Rate limit exceeded"
    status_code: int = 429

    def __init__(
        self,
        retry_after_ms: int,
        endpoint: str | None = None,
        message: str | None = None,
    ) -> None:
        """Initialize with the time until the bucket refills.

        Args:
            retry_after_ms: Milliseconds until the next refill
            endpoint: Endpoint that was throttled
            message: Override default message
        """
        self.retry_after_ms = max(0, int(retry_after_ms))
        details: dict[str, Any] = {}
        if endpoint:
            details["endpoint"] = endpoint
        super().__init__(message=message, details=details if details else None)

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(math.ceil(self.retry_after_ms / 1000))}

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        body = super().to_dict(request_id=request_id)
        body["retryAfterMs"] = self.retry_after_ms
        return body


# =============================================================================
# Upstream Provider Errors (reported in-stream)
# =============================================================================


class UpstreamError(GatewayError):
    """Base class for model provider failures."""

    code: str = "UPSTREAM_ERROR"
    message: str = "Model provider request failed"
    status_code: int = 502


class UpstreamHTTPError(UpstreamError):
    """Raised when the provider answers with a non-2xx status after retries."""

    code: str = "UPSTREAM_HTTP_ERROR"

    def __init__(self, status: int, body: str = "") -> None:
        """Initialize with the final upstream status and body text.

        Args:
            status: HTTP status returned by the provider
            body: Response body text (kept for diagnostics)
        """
        self.upstream_status = status
        self.body = body
        super().__init__(
            message=f"Provider error: {status} {body}".rstrip(),
            details={"upstream_status": status},
        )


class UpstreamTransportError(UpstreamError):
    """Raised when the provider could not be reached after retries."""

    code: str = "UPSTREAM_TRANSPORT_ERROR"


class ProviderConfigurationError(UpstreamError):
    """Raised when the provider client is missing credentials."""

    code: str = "PROVIDER_NOT_CONFIGURED"
    message: str = "Missing OPENAI_API_KEY"


# =============================================================================
# Persistence Errors (never surfaced to clients)
# =============================================================================


class PersistenceError(GatewayError):
    """Raised when a cache, rate-limit, or log store operation fails.

    The gateway converts this into degraded behaviour; it is never
    rendered to a client.
    """

    code: str = "PERSISTENCE_ERROR"
    message: str = "Store operation failed"
    status_code: int = 503

    def __init__(self, operation: str, error: str | None = None) -> None:
        """Initialize with the failing operation name."""
        details: dict[str, Any] = {"operation": operation}
        if error:
            details["error"] = error
        super().__init__(
            message=f"Store operation failed: {operation}", details=details
        )


# =============================================================================
# Routing Errors (404)
# =============================================================================


class UnknownEndpointError(GatewayError):
    """Raised when a stream route names an agent that does not exist."""

    code: str = "UNKNOWN_ENDPOINT"
    message: str = "Unknown agent endpoint"
    status_code: int = 404

    def __init__(self, endpoint: str) -> None:
        super().__init__(
            message=f"Unknown agent endpoint: {endpoint}",
            details={"endpoint": endpoint},
        )
