"""
Health check routes.
"""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import Response

from src import __version__
from src.api.dependencies import Store
from src.observability.metrics import get_metrics
from src.types.api import HealthResponse

router = APIRouter(tags=["Health"])


async def _redis_status(store) -> str:
    try:
        return "healthy" if await store.ping() else "unhealthy"
    except Exception:
        return "unhealthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the API and Redis connection.",
)
async def health_check(store: Store) -> HealthResponse:
    """
    Perform a health check.

    Checks store connectivity and returns service status.
    """
    redis_status = await _redis_status(store)

    return HealthResponse(
        status="healthy" if redis_status == "healthy" else "degraded",
        version=__version__,
        redis=redis_status,
        timestamp=datetime.now(timezone.utc),
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the service is ready to receive traffic.",
)
async def readiness_check(store: Store) -> dict:
    """Kubernetes readiness probe endpoint."""
    return {"ready": await _redis_status(store) == "healthy"}


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the service is alive.",
)
async def liveness_check() -> dict:
    """Kubernetes liveness probe endpoint."""
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics.",
)
async def metrics() -> Response:
    """Expose Prometheus metrics."""
    metrics_collector = get_metrics()
    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
