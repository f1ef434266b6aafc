"""Error taxonomy and the JSON error envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "internal error"


class AnalyticsError(Exception):
    """Base class for failures that map onto a client-visible status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message is not None:
            self.message = message


class PermissionDeniedError(AnalyticsError):
    """Caller's role or scope is not eligible for the report or entity."""

    status_code = status.HTTP_403_FORBIDDEN
    message = "permission denied"


class NotFoundError(AnalyticsError):
    """Entity id does not resolve within the caller's scope."""

    status_code = status.HTTP_404_NOT_FOUND
    message = "not found"


class ScopeUnsupportedError(Exception):
    """Principal's role has no data-visibility scope mapping.

    Never rendered directly: the orchestrator converts it into
    :class:`PermissionDeniedError`.
    """


def error_body(message: str) -> dict[str, str]:
    return {"error": message}


async def _analytics_error_handler(request: Request, exc: AnalyticsError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Analytics failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=error_body(INTERNAL_ERROR_MESSAGE))
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=exc.headers)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("invalid request parameters"),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(INTERNAL_ERROR_MESSAGE),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as ``{"error": "<message>"}``."""

    app.add_exception_handler(AnalyticsError, _analytics_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
