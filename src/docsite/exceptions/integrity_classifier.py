import logging
from enum import Enum
from typing import Type

from sqlalchemy.exc import IntegrityError
from .base import RepositoryError

logger = logging.getLogger(__name__)

# =================================================================================================================
# Constraint-specific exceptions
# =================================================================================================================
# These are classification labels used inside the mapper only; callers never see them.


class ConstraintViolationError(RepositoryError):
    """Base for integrity/constraint violations (subclass of RepositoryError)."""
    pass


class UniqueConstraintError(ConstraintViolationError):
    """Unique constraint / duplicate value."""
    pass


class NotNullConstraintError(ConstraintViolationError):
    """NOT NULL violation (missing required field)."""
    pass


class ForeignKeyConstraintError(ConstraintViolationError):
    """Foreign key constraint violated."""
    pass


class CheckConstraintError(ConstraintViolationError):
    """CHECK constraint violated."""
    pass


class UnknownIntegrityError(ConstraintViolationError):
    """Unrecognized integrity error."""
    pass


# =================================================================================================================
# Postgres error code mapping
# =================================================================================================================

# https://www.postgresql.org/docs/current/errcodes-appendix.html
class PostgresErrorCodes(str, Enum):
    UNIQUE_VIOLATION = "23505"
    NOT_NULL_VIOLATION = "23502"
    FOREIGN_KEY_VIOLATION = "23503"
    CHECK_VIOLATION = "23514"


PGCODE_EXCEPTION_MAP = {
    PostgresErrorCodes.UNIQUE_VIOLATION.value: UniqueConstraintError,
    PostgresErrorCodes.NOT_NULL_VIOLATION.value: NotNullConstraintError,
    PostgresErrorCodes.FOREIGN_KEY_VIOLATION.value: ForeignKeyConstraintError,
    PostgresErrorCodes.CHECK_VIOLATION.value: CheckConstraintError,
}


# =================================================================================================================
# Driver diagnostics
# =================================================================================================================

def get_sqlstate(orig: BaseException | None) -> str | None:
    """
    Return the SQLSTATE carried by a DB-API exception, if the driver exposes one.

    - psycopg: ``orig.sqlstate`` / ``orig.pgcode``
    - asyncpg (through SQLAlchemy's adapter): ``orig.sqlstate`` / ``orig.pgcode``, and the raw
      asyncpg exception chained as ``orig.__cause__``
    - sqlite3 / aiosqlite: nothing, callers fall back to message parsing
    """
    if orig is None:
        return None
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if isinstance(code, str) and code:
            return code
    return None


def get_constraint_name(orig: BaseException | None) -> str | None:
    if orig is None:
        return None
    diag = getattr(orig, "diag", None)
    name = getattr(diag, "constraint_name", None) if diag else None
    if name:
        return name
    cause = getattr(orig, "__cause__", None)
    name = getattr(cause, "constraint_name", None) if cause is not None else None
    return name if isinstance(name, str) else None


# =================================================================================================================
# Integrity Error Classifiers
# =================================================================================================================

def _match_any(msg: str, keywords: list[str]) -> bool:
    return any(keyword in msg for keyword in keywords)


def _classify_from_sqlstate(orig) -> tuple[Type[ConstraintViolationError] | None, str | None]:
    """
    Classify an integrity error from the driver's SQLSTATE and diagnostics.
    """
    sqlstate = get_sqlstate(orig)
    if not sqlstate:
        return None, None

    constraint_name = get_constraint_name(orig)
    exception_class = PGCODE_EXCEPTION_MAP.get(sqlstate)

    if exception_class:
        logger.debug(
            "Postgres integrity diagnostic",
            extra={"sqlstate": sqlstate, "constraint_name": constraint_name},
        )
        return exception_class, constraint_name

    logger.warning(
        "Unknown Postgres integrity error code encountered",
        extra={"sqlstate": sqlstate, "constraint_name": constraint_name},
    )

    return UnknownIntegrityError, constraint_name


def _classify_from_generic_message(msg: str) -> tuple[Type[ConstraintViolationError], None]:
    """
    Classify integrity error based on message content (fallback for SQLite and friends).
    """
    normalized = msg.lower()

    if _match_any(normalized, ["unique constraint", "unique failed", "unique violation", "duplicate"]):
        return UniqueConstraintError, None

    if _match_any(normalized, ["not null constraint", "not null", "null value in column"]):
        return NotNullConstraintError, None

    if _match_any(normalized, ["foreign key constraint", "foreign key", "is not present in table"]):
        return ForeignKeyConstraintError, None

    if _match_any(normalized, ["check constraint", "check failed"]):
        return CheckConstraintError, None

    logger.warning("Unknown integrity error message encountered", extra={"message_length": len(msg or "")})
    return UnknownIntegrityError, None


def classify_integrity_error(exc: IntegrityError) -> tuple[Type[ConstraintViolationError], str | None]:
    """
    Classify a SQLAlchemy IntegrityError into a specific ConstraintViolationError subclass.

    The structured SQLSTATE wins when the driver provides one; message text is only a fallback.

    Returns:
        A tuple of (ExceptionClass, constraint_name if available)
    """
    orig = exc.orig

    exception_class, constraint_name = _classify_from_sqlstate(orig)
    if exception_class is not None:
        return exception_class, constraint_name

    return _classify_from_generic_message(str(orig) if orig is not None else str(exc))
