"""Health check endpoints for monitoring and deployment verification."""

import time

from fastapi import APIRouter, Response, status

from src.core.config import get_settings
from src.core.supabase import check_database_connection
from src.schemas.common import HealthResponse, HealthStatus, ReadinessResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Basic health check to verify the service is running. Used for liveness probes.",
)
async def health_check() -> HealthResponse:
    """Return basic health status.

    This endpoint should always return 200 if the service is running.
    It does not check external dependencies.
    """
    return HealthResponse(status=HealthStatus.HEALTHY)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "Document store reachable"},
        503: {"description": "Document store unreachable"},
    },
    summary="Readiness check",
    description="Check that the document store answers. Used for readiness probes.",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Check readiness of the configured document store.

    The in-memory backend has nothing to reach and is always ready.
    Returns 503 if Supabase does not answer.
    """
    backend = get_settings().order_store_backend
    if backend == "memory":
        return ReadinessResponse(status=HealthStatus.HEALTHY, store_backend=backend)

    start_time = time.perf_counter()
    db_result = await check_database_connection()
    latency_ms = round((time.perf_counter() - start_time) * 1000, 2)

    if not db_result["healthy"]:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(
            status=HealthStatus.UNHEALTHY,
            store_backend=backend,
            latency_ms=latency_ms,
            error=db_result.get("error"),
        )

    return ReadinessResponse(status=HealthStatus.HEALTHY, store_backend=backend, latency_ms=latency_ms)
