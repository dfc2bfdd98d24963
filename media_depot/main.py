"""Main FastAPI application module."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from media_depot.api.v1.router import router as v1_router
from media_depot.core.config import settings
from media_depot.core.logging import configure_logging, get_logger
from media_depot.middleware.correlation import CorrelationMiddleware
from media_depot.middleware.errors import register_error_handlers
from media_depot.middleware.metrics import MetricsMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging on startup."""
    configure_logging(
        testing=os.getenv("TESTING") == "true",
        level=settings.LOG_LEVEL,
        json_logs=settings.JSON_LOGS,
    )
    get_logger().info("app_started", version=settings.version)
    yield
    get_logger().info("app_stopped")


def create_app() -> FastAPI:
    """Build the application with middleware, error handlers and routes."""
    app = FastAPI(
        title=settings.app_name,
        description="Queue media downloads, poll their status and stream the files",
        version=settings.version,
        default_response_class=JSONResponse,
        lifespan=lifespan,
    )

    # Added inside -> out: metrics runs within the correlation context
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
        max_age=600,
    )
    register_error_handlers(app)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose Prometheus metrics."""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(v1_router, prefix=settings.api_prefix)
    return app


app = create_app()
