"""Error handlers producing consistent JSON error bodies."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from media_depot.core.logging import get_logger
from media_depot.service import MediaGoneError, TaskNotFoundError, TaskNotReadyError
from media_depot.validators import InvalidURLError

logger = get_logger()

# Exception types and their status codes (None means use the exception's own)
ERROR_MAPPING: dict[type[Exception], int | None] = {
    TaskNotFoundError: HTTP_404_NOT_FOUND,
    MediaGoneError: HTTP_404_NOT_FOUND,
    TaskNotReadyError: HTTP_409_CONFLICT,
    InvalidURLError: HTTP_400_BAD_REQUEST,
    RequestValidationError: HTTP_422_UNPROCESSABLE_ENTITY,
    RedisError: HTTP_503_SERVICE_UNAVAILABLE,
    HTTPException: None,
}


def _status_code_for(exc: Exception) -> int:
    for exc_type, status_code in ERROR_MAPPING.items():
        if isinstance(exc, exc_type):
            if status_code is None and isinstance(exc, HTTPException):
                return exc.status_code
            if status_code is not None:
                return status_code
    return 500


def _detail_for(exc: Exception) -> str:
    if isinstance(exc, HTTPException):
        return str(exc.detail)
    if isinstance(exc, RequestValidationError):
        return "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
    if isinstance(exc, RedisError):
        return "Task storage is unavailable"
    return str(exc)


async def handle_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Turn an exception into a JSON error response.

    Args:
        request: The request that caused the exception
        exc: The exception to handle

    Returns:
        A JSON response with ``error``, ``message``, ``status_code`` and ``correlation_id``
    """
    error_type = exc.__class__.__name__
    status_code = _status_code_for(exc)
    detail = _detail_for(exc)
    correlation_id = getattr(request.state, "correlation_id", None)

    log = logger.error if status_code >= 500 else logger.info
    log(
        "request_error",
        error_type=error_type,
        error_message=str(exc),
        status_code=status_code,
        path=request.url.path,
        method=request.method,
        correlation_id=correlation_id,
    )

    response = JSONResponse(
        status_code=status_code,
        content={
            "error": error_type,
            "message": detail,
            "status_code": status_code,
            "correlation_id": correlation_id if correlation_id else "unknown",
        },
    )
    if correlation_id:
        response.headers["X-Request-ID"] = correlation_id
    return response


def register_error_handlers(app: FastAPI) -> None:
    """Install ``handle_exception`` for every mapped exception type."""
    for exc_type in ERROR_MAPPING:
        app.add_exception_handler(exc_type, handle_exception)
