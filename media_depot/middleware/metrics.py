"""Request metrics middleware for Prometheus monitoring."""

import time

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from media_depot.core.logging import get_logger
from media_depot.core.metrics import REQUESTS_TOTAL, RESPONSES_TOTAL

logger = get_logger()

UNMATCHED_PATH = "unmatched"


def route_path(request: Request) -> str:
    """Label for a request: the matched route template, never the raw path.

    Task ids are part of the raw path, so labelling by it would add a series
    per task.
    """
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path if path else UNMATCHED_PATH


class MetricsMiddleware(BaseHTTPMiddleware):
    """Counts requests by method and route and responses by status code."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            REQUESTS_TOTAL.labels(method=request.method, path=route_path(request)).inc()
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
            )
            raise

        # The router records the matched route in the scope while handling the request
        REQUESTS_TOTAL.labels(method=request.method, path=route_path(request)).inc()
        RESPONSES_TOTAL.labels(status_code=str(response.status_code)).inc()
        logger.info(
            "request_processed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=time.time() - start_time,
        )
        return response
