"""Common schemas used across the application."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Response schema for the liveness endpoint."""

    status: HealthStatus = Field(description="Current health status")
    timestamp: datetime = Field(default_factory=_now, description="Check timestamp")
    version: str = Field(default="0.1.0", description="API version")


class ReadinessResponse(BaseModel):
    """Response schema for the readiness endpoint.

    Reports whether the document store answered, and how fast.
    """

    status: HealthStatus = Field(description="Overall readiness status")
    timestamp: datetime = Field(default_factory=_now, description="Check timestamp")
    store_backend: str = Field(description="Configured document store")
    latency_ms: float | None = Field(default=None, description="Store response time in milliseconds")
    error: str | None = Field(default=None, description="Error message if unhealthy")


class ErrorDetail(BaseModel):
    loc: list[str] | None = Field(default=None, description="Location of the problem, e.g. a field path")
    msg: str = Field(description="Human-readable description")
    type: str = Field(description="Error type identifier")


class ErrorResponse(BaseModel):
    """Body of every error the API returns, except request validation (422)."""

    error: str = Field(description="Error category, e.g. bad_request")
    message: str = Field(description="Human-readable error description")
    details: list[ErrorDetail] | None = Field(default=None, description="Additional error details")
    request_id: str | None = Field(default=None, description="X-Request-ID of the failed request")
    timestamp: datetime = Field(default_factory=_now, description="Error timestamp")

    @classmethod
    def from_exception(
        cls,
        error_type: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
        request_id: str | None = None,
    ) -> "ErrorResponse":
        error_details = [
            ErrorDetail(loc=d.get("loc"), msg=d.get("msg", str(d)), type=d.get("type", "error"))
            for d in details or []
        ]
        return cls(
            error=error_type,
            message=message,
            details=error_details or None,
            request_id=request_id,
        )
