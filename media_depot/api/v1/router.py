"""API v1 router module."""

import mimetypes
from functools import lru_cache

import redis
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from media_depot.api.v1.models import (
    DownloadRequest,
    HealthResponse,
    TaskCreatedResponse,
    TaskStatusResponse,
)
from media_depot.core.config import settings
from media_depot.core.logging import get_request_logger
from media_depot.core.redis import get_redis
from media_depot.service import MediaService, build_service
from media_depot.validators import validate_source_url

router = APIRouter(default_response_class=JSONResponse)


@lru_cache(maxsize=1)
def get_media_service() -> MediaService:
    """Shared service instance; override in tests via ``dependency_overrides``."""
    return build_service()


def get_redis_client() -> redis.Redis:
    return get_redis()


def _download_url(request: Request, task_id: str) -> str:
    base = settings.BASE_URL or str(request.base_url)
    return f"{base.rstrip('/')}{settings.api_prefix}/videos/{task_id}"


@router.post(
    "/videos",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=TaskCreatedResponse,
)
def submit_download(
    body: DownloadRequest,
    request: Request,
    service: MediaService = Depends(get_media_service),
) -> TaskCreatedResponse:
    """
    Queue a URL for download.

    Returns immediately; poll the status endpoint with the returned task ID.
    """
    url = validate_source_url(body.url, settings.ALLOWED_HOSTS)
    task_id = service.enqueue(url)
    get_request_logger(getattr(request.state, "correlation_id", None)).info(
        "download_submitted", task_id=task_id, url=url
    )
    return TaskCreatedResponse(task_id=task_id)


@router.get("/videos/{task_id}/status", response_model=TaskStatusResponse)
def get_task_status(
    task_id: str,
    request: Request,
    service: MediaService = Depends(get_media_service),
) -> TaskStatusResponse:
    """Report the current status of a task."""
    state = service.get_status(task_id)
    return TaskStatusResponse.from_state(state, _download_url(request, task_id))


@router.get("/videos/{task_id}")
def serve_video(
    task_id: str,
    service: MediaService = Depends(get_media_service),
) -> StreamingResponse:
    """Stream the downloaded file of a completed task."""
    delivery = service.open_delivery(task_id)
    filename = delivery.filename.replace('"', '\\"')
    media_type = mimetypes.guess_type(delivery.file_path)[0] or "application/octet-stream"
    return StreamingResponse(
        delivery.iter_chunks(),
        media_type=media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Content-Length": str(delivery.size),
        },
        background=BackgroundTask(delivery.close),
    )


@router.get("/health", response_model=HealthResponse)
def health_check(
    request: Request,
    client: redis.Redis = Depends(get_redis_client),
) -> JSONResponse:
    """
    Health check endpoint.

    Returns 503 when Redis does not answer a ping.
    """
    try:
        client.ping()
        redis_status = "healthy"
    except redis.RedisError as e:
        redis_status = f"unhealthy: {e}"

    healthy = redis_status == "healthy"
    body = HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=settings.version,
        redis=redis_status,
        correlation_id=getattr(request.state, "correlation_id", None),
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(),
    )
