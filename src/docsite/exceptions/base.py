"""
Custom exceptions for repository-related operations.

Every failure that leaves the data-access layer is a ``RepositoryError`` subclass:

| Exception                 | error_code         | HTTP | Retried?                      |
| ------------------------- | ------------------ | ---- | ----------------------------- |
| `DatabaseConnectionError` | connection_error   | 500  | yes                           |
| `TransactionError`        | transaction_error  | 500  | only for transient SQLSTATEs  |
| `QueryError`              | query_error        | 500  | only for transient SQLSTATEs  |
| `InvalidFieldError`       | invalid_field      | 400  | never                         |
| `DuplicateError`          | duplicate          | 409  | never                         |
| `NotFoundError`           | not_found          | 404  | never                         |
"""

from typing import Iterable

# https://www.postgresql.org/docs/current/errcodes-appendix.html
TRANSIENT_SQLSTATES = frozenset({
    "08000",  # connection_exception
    "08003",  # connection_does_not_exist
    "08006",  # connection_failure
    "08001",  # sqlclient_unable_to_establish_sqlconnection
    "08004",  # sqlserver_rejected_establishment_of_sqlconnection
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
})


# canonical repository-level exception

class RepositoryError(Exception):
    """
    Base exception for repository/service errors.

    - message: human-friendly message (safe to show to clients for 4xx codes)
    - fields: optional list of field names related to the error (e.g., ['email'])
    - constraint: optional DB constraint name (for logs only)
    - error_code: canonical short code used by clients
    - sqlstate: SQLSTATE reported by the driver, when there was one
    - cause: the original exception, kept for server-side logging
    """

    ERROR_CODE_TO_STATUS = {
        "duplicate": 409,
        "invalid_field": 400,
        "not_found": 404,
        "connection_error": 500,
        "transaction_error": 500,
        "query_error": 500,
    }

    def __init__(self, message: str, *, fields: Iterable[str] | None = None,
                 constraint: str | None = None, error_code: str | None = None,
                 sqlstate: str | None = None, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.fields = list(fields) if fields else None
        self.constraint = constraint
        self.error_code = error_code
        self.sqlstate = sqlstate
        self.cause = cause

    @property
    def field(self) -> str | None:
        """The first (usually only) offending field."""
        return self.fields[0] if self.fields else None

    def __str__(self) -> str:
        base = self.message
        parts = []
        if self.fields:
            parts.append(f"fields: {', '.join(self.fields)}")
        if self.constraint:
            parts.append(f"constraint: {self.constraint}")
        if self.error_code:
            parts.append(f"code: {self.error_code}")
        if self.sqlstate:
            parts.append(f"sqlstate: {self.sqlstate}")
        if parts:
            return f"{base} ({'; '.join(parts)})"
        return base

    # ------------------------
    # Structured payload for API responses
    # ------------------------
    def to_payload(self) -> dict:
        """
        Return a JSON-serializable dict suitable for HTTP responses.

        Shape:
            {
                "error": "A human-friendly message",
                "code": "duplicate",
                "field": "email",        # only for field-attributed errors
            }

        ``constraint``, ``sqlstate`` and ``cause`` never appear here.
        """
        payload: dict = {"error": self.message}
        if self.error_code:
            payload["code"] = self.error_code
        if self.field:
            payload["field"] = self.field
        return payload

    def http_status(self) -> int:
        """
        HTTP status for this error, looked up by ``error_code``.

        Unknown or missing codes are server-side failures (500).
        """
        if self.error_code:
            return self.ERROR_CODE_TO_STATUS.get(self.error_code, 500)
        return 500


# =================================================================================================================
# Infrastructure failures
# =================================================================================================================

class DatabaseConnectionError(RepositoryError):
    """The database could not be reached, or the connection dropped mid-operation."""

    def __init__(self, message: str = "Database connection failed", *,
                 sqlstate: str | None = None, cause: BaseException | None = None):
        super().__init__(message, error_code="connection_error", sqlstate=sqlstate, cause=cause)


class QueryError(RepositoryError):
    """A statement failed for a reason that is neither a connection loss nor a transaction abort."""

    def __init__(self, message: str = "Database query failed", *,
                 sqlstate: str | None = None, cause: BaseException | None = None):
        super().__init__(message, error_code="query_error", sqlstate=sqlstate, cause=cause)


class TransactionError(RepositoryError):
    """Serialization failure, deadlock or another transaction-level abort."""

    def __init__(self, message: str = "Database transaction failed", *,
                 sqlstate: str | None = None, cause: BaseException | None = None):
        super().__init__(message, error_code="transaction_error", sqlstate=sqlstate, cause=cause)


# =================================================================================================================
# Client-facing failures
# =================================================================================================================

class NotFoundError(RepositoryError):
    def __init__(self, resource: str, identifier: object | None = None):
        if identifier is not None:
            message = f"{resource} with identifier '{identifier}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message, error_code="not_found")
        self.resource = resource
        self.identifier = identifier


class DuplicateError(RepositoryError):
    """A uniqueness constraint was violated; ``field`` names the conflicting attribute."""

    def __init__(self, message: str, *, fields: Iterable[str] | None = None, constraint: str | None = None,
                 cause: BaseException | None = None):
        super().__init__(message, fields=fields, constraint=constraint, error_code="duplicate", cause=cause)


class InvalidFieldError(RepositoryError):
    """Raised when input fails validation (shape, format, range) before reaching the database."""

    def __init__(self, message: str, *, fields: Iterable[str] | None = None, cause: BaseException | None = None):
        super().__init__(message, fields=fields, error_code="invalid_field", cause=cause)


# =================================================================================================================
# Transient classification
# =================================================================================================================

def is_transient_error(exc: BaseException) -> bool:
    """
    Return True when retrying ``exc`` has a reasonable chance of succeeding.

    Connection failures are always transient. Other repository errors are transient only
    when they carry one of ``TRANSIENT_SQLSTATES``. Validation, conflict and not-found
    errors never are.
    """
    if isinstance(exc, DatabaseConnectionError):
        return True
    if isinstance(exc, (InvalidFieldError, DuplicateError, NotFoundError)):
        return False
    if isinstance(exc, RepositoryError):
        return exc.sqlstate in TRANSIENT_SQLSTATES
    return False


__all__ = [
    "TRANSIENT_SQLSTATES",
    "RepositoryError",
    "DatabaseConnectionError",
    "QueryError",
    "TransactionError",
    "NotFoundError",
    "DuplicateError",
    "InvalidFieldError",
    "is_transient_error",
]
