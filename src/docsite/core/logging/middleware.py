# src/docsite/core/logging/middleware.py
"""
Request ID middleware for FastAPI / Starlette.

Each request gets an id: the incoming ``X-Request-ID`` header when it looks sane, a fresh
UUID4 otherwise. The id is stored in the logging contextvar for the duration of the
request (so RequestIdFilter can stamp it on every record) and echoed back on the response.

Register it early so routers and exception handlers run inside it::

    app.add_middleware(RequestIDMiddleware)
"""
import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .filters import set_request_id, reset_request_id

REQUEST_ID_HEADER = "X-Request-ID"

# Opaque ids only: no whitespace/newlines (log injection), bounded length.
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def _resolve_request_id(candidate: str | None) -> str:
    if candidate and _VALID_REQUEST_ID.match(candidate):
        return candidate
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Starlette / FastAPI middleware that sets a request id for each incoming request.
    """

    async def dispatch(self, request: Request, call_next):
        rid = _resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        token = set_request_id(rid)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            reset_request_id(token)
