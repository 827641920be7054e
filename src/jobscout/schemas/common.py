"""Common Pydantic schemas used across the API.

This module provides shared schemas for:
- Error responses (consistent error format)
- Health and service information responses
"""

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Base Configuration
# =============================================================================


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Allow ORM model conversion
        populate_by_name=True,  # Allow both alias and field name
        str_strip_whitespace=True,  # Strip whitespace from strings
    )


# =============================================================================
# Error Schemas
# =============================================================================


class ErrorDetail(BaseModel):
    """Details of an error response.

    Attributes:
        code: Machine-readable error code (e.g., "RATE_LIMITED")
        message: Human-readable error description
        request_id: Correlation ID for tracing (optional)
        details: Additional error context (optional)
    """

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error description")
    request_id: str | None = Field(
        None, description="Request correlation ID for tracing"
    )
    details: dict[str, str | int | bool | None] | None = Field(
        None, description="Additional error context"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "code": "VALIDATION_ERROR",
                "message": "input.query is required",
                "request_id": "abc-123-def-456",
                "details": {"field": "input.query"},
            }
        }
    )


class ErrorResponse(BaseModel):
    """Standard error response wrapper.

    Returned for 400 and 500 responses; nothing is streamed in that case.

    Attributes:
        error: The error details
    """

    error: ErrorDetail


class RateLimitErrorResponse(ErrorResponse):
    """429 response body with the time until the bucket refills."""

    retry_after_ms: int = Field(..., alias="retryAfterMs", ge=0)

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "error": {
                    "code": "RATE_LIMITED",
                    "message": "Rate limit exceeded",
                    "details": {"endpoint": "research"},
                },
                "retryAfterMs": 182000,
            }
        },
    )


# =============================================================================
# Health Check Schemas
# =============================================================================


class HealthCheckResponse(BaseModel):
    """Health check endpoint response.

    Attributes:
        status: Overall health status
        checks: Individual dependency checks
    """

    status: str = Field(..., pattern="^(ok|degraded|error)$")
    checks: dict[str, str] = Field(
        default_factory=dict, description="Individual service checks"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "ok",
                "checks": {
                    "database": "ok",
                    "provider": "ok",
                },
            }
        }
    )


class ServiceInfo(BaseModel):
    """Root endpoint response."""

    service: str
    version: str
    docs: str = "/docs"
    health: str = "/health/live"
    endpoints: list[str] = Field(default_factory=list)
