"""
Base repository class providing common database operations.

This class serves as a reusable foundation for repositories that interact with
the database using SQLAlchemy's async sessions.

Every operation follows the same pipeline::

    validate (pydantic) -> retry (outer) -> db_error_handler -> query logger (inner) -> commit

Validation happens before the retry boundary, so malformed input fails once with
``InvalidFieldError`` and is never retried. Soft-deleted rows (``deleted_at`` set) are
invisible to every read path and cannot be updated or deleted again.

Model-specific repositories set the class attributes (``resource_name``, schemas,
unique/foreign-key columns) and add their own queries on top.
"""
from docsite.exceptions.base import (
    RepositoryError,
    NotFoundError,
    InvalidFieldError,
)
from docsite.exceptions.mapper import db_error_handler
from docsite.database.base import Base, utcnow
from docsite.database.retry import RetryExecutor
from docsite.database.query_logger import QueryLogger
from docsite.schemas.common import public_field_name

import time
from typing import Any, Awaitable, Callable, ClassVar, Generic, Type, TypeVar
from uuid import UUID
from pydantic import BaseModel, ValidationError
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
import logging

# Type variable for the model class
ModelType = TypeVar("ModelType", bound=Base)
T = TypeVar("T")

# Setup logging
logger = logging.getLogger(__name__)


def coerce_uuid(value: Any) -> UUID | None:
    """
    Return ``value`` as a UUID, or None when it cannot be one.

    Ids arrive as path strings; a malformed id can never match a row, so callers treat
    None as "absent" instead of sending it to the database.
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def check_window(limit: int | None, offset: int | None) -> None:
    if limit is not None and limit < 0:
        raise InvalidFieldError("limit must be >= 0", fields=["limit"])
    if offset is not None and offset < 0:
        raise InvalidFieldError("offset must be >= 0", fields=["offset"])


class BaseRepository(Generic[ModelType]):
    """
    Generic base repository providing CRUD with soft-delete semantics.

    Type Parameters:
        ModelType: The SQLAlchemy model class this repository manages. It must have
        ``id``, ``created_at``, ``updated_at`` and ``deleted_at`` columns.
    """

    resource_name: ClassVar[str] = "Record"
    create_schema: ClassVar[Type[BaseModel] | None] = None
    update_schema: ClassVar[Type[BaseModel] | None] = None
    unique_fields: ClassVar[tuple[str, ...]] = ()
    foreign_key_fields: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        model: Type[ModelType],
        db: AsyncSession,
        retry_executor: RetryExecutor | None = None,
        query_logger: QueryLogger | None = None,
    ):
        """
        Initialize the repository.

        Args:
            model: The SQLAlchemy model class (not an instance), e.g. ``User``.
            db: The async database session, usually one per request.
            retry_executor: Backoff policy for transient failures. Defaults to 3 attempts.
            query_logger: Timing/logging wrapper. Defaults to a disabled logger.
        """
        self.model = model
        self.db = db
        self.retry_executor = retry_executor or RetryExecutor()
        self.query_logger = query_logger or QueryLogger()

    # =================================================================================================================
    # Pipeline helpers
    # =================================================================================================================

    def _validate(self, schema: Type[BaseModel] | None, data: Any, operation: str) -> dict[str, Any]:
        """
        Validate ``data`` against ``schema`` and return only the supplied fields, keyed by column name.

        Raises:
            InvalidFieldError: naming the first offending field (in its wire spelling).
        """
        if schema is None:
            raise RepositoryError(f"{type(self).__name__} has no schema for {operation}")
        if isinstance(data, BaseModel):
            data = data.model_dump(exclude_unset=True, by_alias=True)
        if not isinstance(data, dict):
            raise InvalidFieldError(f"{self.resource_name} payload must be an object")

        try:
            validated = schema.model_validate(data)
        except ValidationError as exc:
            first = exc.errors()[0]
            loc = first.get("loc") or ()
            field = public_field_name(schema, loc[0]) if loc else None
            message = f"Invalid {field}: {first.get('msg')}" if field else str(first.get("msg"))
            logger.info(
                f"repo.{operation}.invalid_input",
                extra={
                    "model": self.resource_name,
                    "operation": operation,
                    "field": field,
                    "error_count": exc.error_count(),
                    # keys only, never values
                    "provided_keys": sorted(str(k) for k in data.keys()),
                },
            )
            raise InvalidFieldError(message, fields=[field] if field else None, cause=exc) from exc

        return validated.model_dump(exclude_unset=True)

    def _live(self):
        return self.model.deleted_at.is_(None)

    async def _execute_write(self, description: str, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run a mutating ``operation`` inside retry + error mapping + query logging, then commit.
        """
        async def attempt() -> T:
            start = time.perf_counter()
            try:
                async with db_error_handler(
                    self.db, self.resource_name, self.unique_fields, self.foreign_key_fields
                ):
                    result = await self.query_logger.run(operation, description)
                    await self.db.commit()
            except RepositoryError as exc:
                self.query_logger.log_transaction(
                    description, (time.perf_counter() - start) * 1000, success=False, error=exc
                )
                raise
            self.query_logger.log_transaction(description, (time.perf_counter() - start) * 1000, success=True)
            return result

        return await self.retry_executor.run(attempt, description=description)

    async def _execute_read(self, description: str, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run a read-only ``operation`` with query logging and error mapping (no retry, no commit).
        """
        async with db_error_handler(self.db, self.resource_name):
            return await self.query_logger.run(operation, description)

    # =================================================================================================================
    # Create
    # =================================================================================================================

    async def create(self, data: Any) -> ModelType:
        """
        Validate ``data`` and insert a new row.

        ``created_at`` and ``updated_at`` come from the same clock reading, so they are equal
        on a fresh row; ``deleted_at`` starts out NULL.

        Raises:
            InvalidFieldError: the payload failed validation (or referenced a missing parent row).
            DuplicateError: a unique column (email/slug) is already taken.
        """
        values = self._validate(self.create_schema, data, "create")
        logger.debug(
            "repo.create.start",
            extra={"model": self.resource_name, "operation": "create", "provided_keys": sorted(values.keys())},
        )

        now = utcnow()
        start = time.perf_counter()

        async def insert() -> ModelType:
            entity = self.model(**values, created_at=now, updated_at=now)
            self.db.add(entity)
            await self.db.flush()
            return entity

        entity = await self._execute_write(f"INSERT {self.model.__tablename__}", insert)
        logger.info(
            "repo.create.success",
            extra={
                "model": self.resource_name,
                "operation": "create",
                "id": str(entity.id),
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return entity

    # =================================================================================================================
    # Read
    # =================================================================================================================

    async def find_by_id(self, id: Any) -> ModelType | None:
        """Return the live row with this id, or None. Absence is not an error."""
        entity_id = coerce_uuid(id)
        if entity_id is None:
            return None

        async def query() -> ModelType | None:
            result = await self.db.execute(
                select(self.model).where(self.model.id == entity_id, self._live()).limit(1)
            )
            return result.scalars().first()

        return await self._execute_read(f"SELECT {self.model.__tablename__} WHERE id = ?", query)

    async def find_by_id_or_raise(self, id: Any) -> ModelType:
        entity = await self.find_by_id(id)
        if entity is None:
            logger.info("repo.find.not_found", extra={"model": self.resource_name, "id": str(id)})
            raise NotFoundError(self.resource_name, id)
        return entity

    async def find_all(self, limit: int | None = None, offset: int | None = None) -> list[ModelType]:
        """
        Live rows, oldest first (``created_at``, then ``id`` to keep pages stable).

        ``limit``/``offset`` of None mean "no bound".
        """
        check_window(limit, offset)

        async def query() -> list[ModelType]:
            stmt = (
                select(self.model)
                .where(self._live())
                .order_by(self.model.created_at.asc(), self.model.id.asc())
                .limit(limit)
                .offset(offset)
            )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_read(f"SELECT {self.model.__tablename__} (limit={limit}, offset={offset})", query)

    async def count(self) -> int:
        """Number of live rows."""
        async def query() -> int:
            result = await self.db.execute(select(func.count()).select_from(self.model).where(self._live()))
            return int(result.scalar_one())

        return await self._execute_read(f"SELECT COUNT(*) FROM {self.model.__tablename__}", query)

    async def exists(self, id: Any) -> bool:
        """
        True when a live row with this id exists.

        Infrastructure failures propagate as ``RepositoryError`` subclasses; they are not
        reported as "does not exist".
        """
        return await self.find_by_id(id) is not None

    # =================================================================================================================
    # Update / soft delete
    # =================================================================================================================

    async def _update_live_row(self, entity_id: UUID, description: str, values: dict[str, Any]) -> ModelType | None:
        """
        UPDATE ... WHERE id = :id AND deleted_at IS NULL RETURNING id; None when nothing matched.

        The matched row is then reloaded with ``populate_existing`` so an instance already in
        the session's identity map reflects the new column values.
        """
        stmt = (
            update(self.model)
            .where(self.model.id == entity_id, self._live())
            .values(**values)
            .returning(self.model.id)
            .execution_options(synchronize_session=False)
        )

        async def run() -> ModelType | None:
            result = await self.db.execute(stmt)
            matched_id = result.scalar_one_or_none()
            if matched_id is None:
                return None
            return await self.db.get(self.model, matched_id, populate_existing=True)

        return await self._execute_write(description, run)

    async def update(self, id: Any, data: Any) -> ModelType:
        """
        Apply a validated partial update to the live row and refresh ``updated_at``.

        Raises:
            InvalidFieldError: the payload failed validation.
            NotFoundError: no live row has this id (never existed, or soft-deleted).
            DuplicateError: the new value of a unique column is taken.
        """
        values = self._validate(self.update_schema, data, "update")
        entity_id = coerce_uuid(id)
        if entity_id is None:
            raise NotFoundError(self.resource_name, id)

        values["updated_at"] = utcnow()
        entity = await self._update_live_row(
            entity_id, f"UPDATE {self.model.__tablename__} WHERE id = ?", values
        )
        if entity is None:
            logger.info("repo.update.not_found", extra={"model": self.resource_name, "id": str(entity_id)})
            raise NotFoundError(self.resource_name, id)

        logger.info(
            "repo.update.success",
            extra={"model": self.resource_name, "id": str(entity_id), "updated_fields": sorted(values.keys())},
        )
        return entity

    async def delete(self, id: Any) -> ModelType:
        """
        Soft delete: stamp ``deleted_at`` on the live row and return it.

        A second delete of the same id raises ``NotFoundError``, because the row no longer
        matches the live predicate.
        """
        entity_id = coerce_uuid(id)
        if entity_id is None:
            raise NotFoundError(self.resource_name, id)

        entity = await self._update_live_row(
            entity_id,
            f"UPDATE {self.model.__tablename__} SET deleted_at WHERE id = ?",
            {"deleted_at": utcnow()},
        )
        if entity is None:
            logger.info("repo.delete.not_found", extra={"model": self.resource_name, "id": str(entity_id)})
            raise NotFoundError(self.resource_name, id)

        logger.info("repo.delete.success", extra={"model": self.resource_name, "id": str(entity_id)})
        return entity
