"""
FastAPI application entry point.
"""

import logging
import time
from collections.abc import Callable
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from starlette.middleware.base import BaseHTTPMiddleware

from src import __version__
from src.api.routes import auth_router, delayed_router, health_router
from src.config import get_settings
from src.errors import InvalidArgumentError, StoreUnavailableError
from src.observability.logging import bind_context, clear_context, setup_logging
from src.observability.metrics import get_metrics, setup_metrics
from src.observability.tracing import instrument_fastapi, setup_tracing
from src.store import close_redis, init_redis
from src.types.api import ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    setup_logging()
    setup_metrics()
    setup_tracing()
    await init_redis()

    logger.info("Application started")

    yield

    # Shutdown
    await close_redis()
    logger.info("Application shutdown")


async def invalid_argument_handler(request: Request, exc: InvalidArgumentError) -> JSONResponse:
    """Map rejected arguments to 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="invalid_argument", detail=str(exc)).model_dump(),
    )


async def store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map store connectivity failures to 503."""
    logger.error(
        "Store unavailable",
        extra={"path": request.url.path, "error": str(exc)},
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ErrorResponse(error="store_unavailable", detail=str(exc)).model_dump(),
    )


async def metrics_middleware(request: Request, call_next: Callable):
    """Bind request log context and record request count and latency per route."""
    clear_context()
    bind_context(method=request.method, path=request.url.path)

    started = time.monotonic()
    response = await call_next(request)

    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    get_metrics().record_api_request(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code,
        duration_seconds=time.monotonic() - started,
    )
    return response


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: The configured application instance.
    """
    app = FastAPI(
        title="Delayed Scheduler API",
        description="Admin API for Redis-backed delayed job scheduling",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(BaseHTTPMiddleware, dispatch=metrics_middleware)

    app.add_exception_handler(InvalidArgumentError, invalid_argument_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)
    app.add_exception_handler(RedisConnectionError, store_unavailable_handler)
    app.add_exception_handler(RedisTimeoutError, store_unavailable_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(delayed_router)

    # Instrument with OpenTelemetry
    instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    app = create_app()

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    run()
