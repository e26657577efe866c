# src/docsite/core/logging/filters.py
"""
Logging filters.

- ``RequestIdFilter`` stamps every LogRecord with ``request_id`` taken from a
  ``contextvars.ContextVar``. The middleware sets the var once per HTTP request, and since
  contextvars follow ``await`` boundaries, repository logs emitted deep inside a request
  carry the same id as the access log line.
- ``RedactFilter`` masks record attributes whose names look sensitive.

Both filters always return True: they annotate records, they never drop them.

dictConfig wiring (see builder.py)::

    "filters": {
        "request_id": {"()": RequestIdFilter},
        "redact": {"()": RedactFilter},
    }
"""

import logging
from logging import LogRecord
import contextvars

# Default None means "no request in flight" (startup, background work, tests).
_request_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)


def set_request_id(request_id: str | None):
    """
    Set the request id in the current context and return the token to allow reset.
    """
    return _request_id_ctx.set(request_id)


def reset_request_id(token) -> None:
    _request_id_ctx.reset(token)


def get_request_id() -> str | None:
    return _request_id_ctx.get()


class RequestIdFilter(logging.Filter):
    """
    Guarantee every LogRecord has a ``request_id`` attribute.

    Precedence: an explicit ``extra={"request_id": ...}``, then the contextvar, then "-".
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = (
            getattr(record, "request_id", None) or get_request_id() or "-"
        )
        return True


class RedactFilter(logging.Filter):
    """Mask attributes such as ``password`` or ``authorization`` attached via ``extra``."""

    SENSITIVE = {"password", "secret", "token", "access_token", "refresh_token", "authorization", "cookie"}
    MASK = "***REDACTED***"

    def filter(self, record: LogRecord) -> bool:
        for key in list(record.__dict__.keys()):
            if key.lower() in self.SENSITIVE:
                record.__dict__[key] = self.MASK
        return True
