"""
User repository for handling user-specific database operations.

Adds lookups by email on top of the generic soft-delete CRUD in ``BaseRepository``.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from docsite.database.retry import RetryExecutor
from docsite.database.query_logger import QueryLogger
from docsite.exceptions.base import NotFoundError
from docsite.models.user import User
from docsite.schemas.user import UserCreate, UserUpdate
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    """
    Repository for User entity operations.

    Emails are stored stripped and lower-cased (the schemas do it), so lookups normalize
    their argument the same way.
    """

    resource_name = "User"
    create_schema = UserCreate
    update_schema = UserUpdate
    unique_fields = ("email",)

    def __init__(
        self,
        db: AsyncSession,
        retry_executor: RetryExecutor | None = None,
        query_logger: QueryLogger | None = None,
    ):
        super().__init__(User, db, retry_executor, query_logger)

    # =================================================================================================================
    # Lookup by email
    # =================================================================================================================

    async def find_by_email(self, email: str) -> User | None:
        """
        Return the live user with this email, or None.

        Args:
            email: compared case-insensitively (normalized before the query).
        """
        normalized = (email or "").strip().lower()
        if not normalized:
            return None

        async def query() -> User | None:
            result = await self.db.execute(
                select(User).where(User.email == normalized, self._live()).limit(1)
            )
            return result.scalars().first()

        return await self._execute_read("SELECT users WHERE email = ?", query)

    async def find_by_email_or_raise(self, email: str) -> User:
        user = await self.find_by_email(email)
        if user is None:
            raise NotFoundError(self.resource_name, email)
        return user
