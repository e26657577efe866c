import re
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Sequence

from pydantic.alias_generators import to_camel
from sqlalchemy.exc import DBAPIError, IntegrityError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from .integrity_classifier import (
    classify_integrity_error,
    get_sqlstate,
    UniqueConstraintError,
    NotNullConstraintError,
    ForeignKeyConstraintError,
    CheckConstraintError,
)
from .base import (
    DatabaseConnectionError,
    DuplicateError,
    InvalidFieldError,
    QueryError,
    RepositoryError,
    TransactionError,
)

logger = logging.getLogger(__name__)

_TRANSACTION_SQLSTATES = {"40001", "40P01"}

# -----------------------
# Column extraction helpers
# -----------------------

def _extract_columns_postgres(msg: str) -> list[str] | None:
    """
    Try to extract involved column names from common Postgres messages:
      - 'null value in column "name" violates not-null constraint'
      - 'DETAIL:  Key (email)=(a@b.com) already exists.'
      - 'DETAIL:  Key (user_id)=(...) is not present in table "users".'
    """
    if not msg:
        return None

    m = re.search(r'null value in column "(?P<col>[^"]+)"', msg, flags=re.IGNORECASE)
    if m:
        return [m.group("col")]

    m = re.search(r'key \((?P<cols>[^)]+)\)=', msg, flags=re.IGNORECASE)
    if m:
        return [c.strip().strip('"') for c in m.group("cols").split(",")]

    return None


def _extract_columns_sqlite(msg: str) -> list[str] | None:
    # SQLite: 'UNIQUE constraint failed: users.email' / 'NOT NULL constraint failed: users.email'
    m = re.search(r'(?:UNIQUE|NOT NULL) constraint failed: (?P<cols>[\w.,\s]+)', msg, flags=re.IGNORECASE)
    if m:
        return [c.split('.')[-1].strip() for c in re.split(r',\s*', m.group("cols").strip())]
    return None


def extract_columns_from_integrity(exc: IntegrityError) -> list[str] | None:
    """
    Best-effort extraction of column names from the DB message (Postgres, SQLite).
    """
    orig = exc.orig
    msg = str(orig) if orig is not None else str(exc)
    return _extract_columns_postgres(msg) or _extract_columns_sqlite(msg)


def _attribute_field(
    candidates: Sequence[str],
    columns: list[str] | None,
    constraint_name: str | None,
) -> str | None:
    """
    Pick the column responsible for a constraint violation.

    Order: a parsed column that is one of ``candidates``, a candidate named inside the
    constraint name, the only candidate, the first parsed column.
    """
    if columns:
        for col in columns:
            if col in candidates:
                return col
    if constraint_name:
        for col in candidates:
            if col in constraint_name:
                return col
    if len(candidates) == 1:
        return candidates[0]
    if columns:
        return columns[0]
    return None


# -----------------------
# Mappers
# -----------------------

def map_integrity_error(
    exc: IntegrityError,
    model_name: str | None = None,
    unique_fields: Sequence[str] = (),
    foreign_key_fields: Sequence[str] = (),
) -> RepositoryError:
    """
    Map a SQLAlchemy IntegrityError to an app-level exception.

    Field names are reported in their public (camelCase) spelling, e.g. ``user_id`` -> ``userId``.
    """
    exc_cls, constraint_name = classify_integrity_error(exc)
    columns = extract_columns_from_integrity(exc)
    model_part = model_name or "Record"

    if exc_cls is UniqueConstraintError:
        column = _attribute_field(unique_fields, columns, constraint_name)
        logger.info(
            "mapper.duplicate_detected",
            extra={"model": model_part, "field": column, "constraint": constraint_name},
        )
        if column:
            return DuplicateError(
                f"{model_part} with this {column} already exists",
                fields=[to_camel(column)], constraint=constraint_name, cause=exc,
            )
        return DuplicateError(f"{model_part} already exists", constraint=constraint_name, cause=exc)

    if exc_cls is ForeignKeyConstraintError:
        column = _attribute_field(foreign_key_fields, columns, constraint_name)
        logger.info(
            "mapper.foreign_key_violation",
            extra={"model": model_part, "field": column, "constraint": constraint_name},
        )
        public = to_camel(column) if column else None
        return InvalidFieldError(
            f"{model_part} references a record that does not exist" + (f" ({public})" if public else ""),
            fields=[public] if public else None,
            cause=exc,
        )

    if exc_cls is NotNullConstraintError:
        logger.info(
            "mapper.not_null_violation",
            extra={"model": model_part, "fields": columns, "constraint": constraint_name},
        )
        public = [to_camel(c) for c in columns] if columns else None
        message = f"Missing required field(s): {', '.join(public)}" if public else "Missing required field"
        return InvalidFieldError(message, fields=public, cause=exc)

    if exc_cls is CheckConstraintError:
        logger.debug(
            "mapper.check_constraint_failure",
            extra={"model": model_part, "constraint": constraint_name},
        )
        return InvalidFieldError(f"{model_part} business rule violated", cause=exc)

    logger.warning(
        "mapper.unknown_integrity_error",
        extra={"model": model_part, "constraint": constraint_name, "sqlstate": get_sqlstate(exc.orig)},
    )
    return QueryError(f"{model_part} database integrity error", sqlstate=get_sqlstate(exc.orig), cause=exc)


def map_db_error(
    exc: BaseException,
    model_name: str | None = None,
    unique_fields: Sequence[str] = (),
    foreign_key_fields: Sequence[str] = (),
) -> RepositoryError:
    """
    Translate any exception raised during a database round trip into a ``RepositoryError``.

    Repository errors pass through untouched so callers can raise them from inside
    ``db_error_handler`` blocks.
    """
    if isinstance(exc, RepositoryError):
        return exc

    model_part = model_name or "database"

    if isinstance(exc, IntegrityError):
        return map_integrity_error(exc, model_name, unique_fields, foreign_key_fields)

    if isinstance(exc, DBAPIError):
        sqlstate = get_sqlstate(exc.orig)
        if exc.connection_invalidated or (sqlstate and sqlstate.startswith("08")):
            logger.warning("mapper.connection_error", extra={"model": model_part, "sqlstate": sqlstate})
            return DatabaseConnectionError(sqlstate=sqlstate, cause=exc)
        if sqlstate in _TRANSACTION_SQLSTATES:
            logger.warning("mapper.transaction_conflict", extra={"model": model_part, "sqlstate": sqlstate})
            return TransactionError(sqlstate=sqlstate, cause=exc)
        logger.error(
            "mapper.query_error",
            extra={"model": model_part, "sqlstate": sqlstate, "error_type": type(exc.orig).__name__},
        )
        return QueryError(f"Failed to operate on {model_part}", sqlstate=sqlstate, cause=exc)

    if isinstance(exc, (OSError, asyncio.TimeoutError, PoolTimeoutError)):
        logger.warning("mapper.connection_error", extra={"model": model_part, "error_type": type(exc).__name__})
        return DatabaseConnectionError(cause=exc)

    logger.error("mapper.unexpected_error", extra={"model": model_part, "error_type": type(exc).__name__})
    return QueryError(f"Failed to operate on {model_part}", cause=exc)


# -----------------------
# Async context manager to DRY error handling in repositories
# -----------------------
@asynccontextmanager
async def db_error_handler(
    db: AsyncSession,
    model_name: str | None = None,
    unique_fields: Sequence[str] = (),
    foreign_key_fields: Sequence[str] = (),
):
    """
    Usage:
        async with db_error_handler(self.db, "User", unique_fields=("email",)):
            ... DB ops ...

    Rolls the session back on any error and raises the mapped app-level exception.
    """
    try:
        yield
    except Exception as exc:
        try:
            await db.rollback()
        except Exception:
            logger.exception("Failed to rollback session after error", extra={"model": model_name})
        mapped = map_db_error(exc, model_name, unique_fields, foreign_key_fields)
        if mapped is exc:
            raise
        raise mapped from exc
