# src/docsite/api/v1/error_handlers.py
"""
FastAPI exception handlers that map repository-level exceptions to HTTP responses.

    - Repositories raise docsite.exceptions.base.* exceptions.
    - 4xx responses use ``exc.to_payload()`` -> ``{"error", "code", "field"?}``.
    - 5xx responses never carry internals: the body is always GENERIC_ERROR and the cause
      is logged server-side with its traceback.
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging

from docsite.api.v1.pagination import PAGINATION_ERROR, PAGINATION_PARAMS
from docsite.exceptions.base import (
    RepositoryError,
    DuplicateError,
    InvalidFieldError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR = {"error": "Internal server error"}


def _server_error(request: Request, exc: BaseException, cause: BaseException | None = None) -> JSONResponse:
    logger.error(
        "http.unhandled_error",
        extra={"method": request.method, "path": request.url.path, "error_type": type(exc).__name__},
        exc_info=cause or exc,
    )
    return JSONResponse(status_code=500, content=GENERIC_ERROR)


# Most specific first (DuplicateError, InvalidFieldError, NotFoundError)
async def duplicate_error_handler(request: Request, exc: DuplicateError) -> JSONResponse:
    """
    409 Conflict. Payload: {"error": "...", "code": "duplicate", "field": "email"}
    """
    logger.info("http.duplicate", extra={"method": request.method, "path": request.url.path, "field": exc.field})
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


async def invalid_field_handler(request: Request, exc: InvalidFieldError) -> JSONResponse:
    logger.info("http.invalid_field", extra={"method": request.method, "path": request.url.path, "field": exc.field})
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    logger.info("http.not_found", extra={"method": request.method, "path": request.url.path})
    return JSONResponse(status_code=exc.http_status(), content=exc.to_payload())


async def repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
    """
    Fallback for the remaining repository errors (connection, query, transaction).
    """
    status = exc.http_status()
    if status >= 500:
        return _server_error(request, exc, exc.cause)
    logger.warning("http.repository_error", extra={"method": request.method, "path": request.url.path})
    return JSONResponse(status_code=status, content=exc.to_payload())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Malformed request shape (non-JSON body, non-integer page, ...) -> 400, like payload validation.

    A query parameter of the shared pagination pair gets the same message as an out-of-range one.
    """
    errors = exc.errors()
    first = errors[0] if errors else {}
    raw_loc = tuple(first.get("loc", ()))
    loc = [part for part in raw_loc if part not in ("body", "query", "path")]
    field = str(loc[0]) if loc else None
    if raw_loc[:1] == ("query",) and field in PAGINATION_PARAMS:
        message = PAGINATION_ERROR
    else:
        message = f"Invalid request: {first.get('msg', 'malformed input')}"
    payload = {"error": message, "code": "invalid_field"}
    if field:
        payload["field"] = field
    logger.info("http.request_validation", extra={"method": request.method, "path": request.url.path, "field": field})
    return JSONResponse(status_code=400, content=payload)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return _server_error(request, exc)


# Helper to register all handlers on an app (call this from the app factory)
def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DuplicateError, duplicate_error_handler)
    app.add_exception_handler(InvalidFieldError, invalid_field_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(RepositoryError, repository_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
