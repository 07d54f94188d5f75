"""
Exception translation for the Content Processor API.

``register_exception_handlers`` installs the only place where failures become
HTTP responses. Every handler logs and answers with the standard envelope:

    {"success": false, "message": "...", "data": {...}?, "timestamp": "..."}
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from content_processor.core.exceptions import (
    GENERIC_ERROR_MESSAGE,
    ContentProcessorError,
    ErrorKind,
)
from content_processor.models.common import ApiResponse


logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    message: str,
    data: object = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build an error envelope response."""
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse.error(message, data).model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


def _field_name(location: tuple) -> str:
    # Drop the "body"/"query"/"path" prefix FastAPI adds to every location
    parts = [str(part) for part in location[1:]] or [str(part) for part in location]
    return ".".join(parts)


async def content_processor_error_handler(
    request: Request, exc: ContentProcessorError
) -> JSONResponse:
    if exc.kind in (ErrorKind.STORAGE_FAILURE, ErrorKind.UNEXPECTED):
        logger.error(
            "%s on %s %s: %s", exc.kind.value, request.method, request.url.path, exc.message,
            exc_info=exc,
        )
    else:
        logger.warning(
            "%s on %s %s: %s", exc.kind.value, request.method, request.url.path, exc.message
        )

    headers = None
    if exc.kind is ErrorKind.UNAUTHENTICATED:
        headers = {"WWW-Authenticate": "Bearer"}

    return error_response(exc.status_code, exc.client_message, exc.data, headers)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors: dict[str, str] = {}
    for error in exc.errors():
        errors.setdefault(_field_name(tuple(error.get("loc", ()))), error.get("msg", "Invalid value"))

    logger.warning("Validation failed on %s %s: %s", request.method, request.url.path, errors)
    return error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", errors)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning(
        "HTTP %d on %s %s: %s", exc.status_code, request.method, request.url.path, exc.detail
    )
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach every exception handler to the application."""
    app.add_exception_handler(ContentProcessorError, content_processor_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
