"""
Post repository: soft-delete CRUD plus author joins, per-user listings and publishing.
"""

from typing import Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
import logging

from docsite.database.base import utcnow
from docsite.database.retry import RetryExecutor
from docsite.database.query_logger import QueryLogger
from docsite.exceptions.base import NotFoundError
from docsite.models.post import Post
from docsite.models.user import User
from docsite.schemas.post import AuthorSummary, PostCreate, PostUpdate
from .base_repository import BaseRepository, check_window, coerce_uuid

logger = logging.getLogger(__name__)

PostWithAuthor = tuple[Post, AuthorSummary]


class PostRepository(BaseRepository[Post]):
    """
    Repository for Post entity operations.

    Joined reads only return posts whose author is live as well; a post by a soft-deleted
    user drops out of ``find_published`` and ``find_by_id_with_author``.
    """

    resource_name = "Post"
    create_schema = PostCreate
    update_schema = PostUpdate
    unique_fields = ("slug",)
    foreign_key_fields = ("user_id",)

    def __init__(
        self,
        db: AsyncSession,
        retry_executor: RetryExecutor | None = None,
        query_logger: QueryLogger | None = None,
    ):
        super().__init__(Post, db, retry_executor, query_logger)

    # =================================================================================================================
    # Helpers
    # =================================================================================================================

    @staticmethod
    def _with_author():
        return (
            select(Post, User.id, User.name, User.email)
            .join(User, Post.user_id == User.id)
            .where(Post.deleted_at.is_(None), User.deleted_at.is_(None))
        )

    @staticmethod
    def _pair(row) -> PostWithAuthor:
        post, author_id, name, email = row
        return post, AuthorSummary(id=author_id, name=name, email=email)

    # =================================================================================================================
    # Lookups
    # =================================================================================================================

    async def find_by_slug(self, slug: str) -> Post | None:
        async def query() -> Post | None:
            result = await self.db.execute(select(Post).where(Post.slug == slug, self._live()).limit(1))
            return result.scalars().first()

        return await self._execute_read("SELECT posts WHERE slug = ?", query)

    async def find_by_user_id(
        self, user_id: Any, limit: int | None = None, offset: int | None = None
    ) -> list[Post]:
        """Live posts of one user, newest first."""
        check_window(limit, offset)
        owner_id = coerce_uuid(user_id)
        if owner_id is None:
            return []

        async def query() -> list[Post]:
            stmt = (
                select(Post)
                .where(Post.user_id == owner_id, self._live())
                .order_by(Post.created_at.desc(), Post.id.desc())
                .limit(limit)
                .offset(offset)
            )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_read("SELECT posts WHERE user_id = ?", query)

    async def count_by_user_id(self, user_id: Any) -> int:
        owner_id = coerce_uuid(user_id)
        if owner_id is None:
            return 0

        async def query() -> int:
            result = await self.db.execute(
                select(func.count()).select_from(Post).where(Post.user_id == owner_id, self._live())
            )
            return int(result.scalar_one())

        return await self._execute_read("SELECT COUNT(*) FROM posts WHERE user_id = ?", query)

    async def find_published(self, limit: int | None = None, offset: int | None = None) -> list[PostWithAuthor]:
        """
        Published posts of live authors, newest publication first.

        Returns:
            ``(post, author_summary)`` pairs.
        """
        check_window(limit, offset)

        async def query() -> list[PostWithAuthor]:
            stmt = (
                self._with_author()
                .where(Post.published_at.is_not(None))
                .order_by(Post.published_at.desc(), Post.created_at.desc(), Post.id.desc())
                .limit(limit)
                .offset(offset)
            )
            result = await self.db.execute(stmt)
            return [self._pair(row) for row in result.all()]

        return await self._execute_read("SELECT published posts WITH authors", query)

    async def count_published(self) -> int:
        async def query() -> int:
            stmt = (
                select(func.count())
                .select_from(Post)
                .join(User, Post.user_id == User.id)
                .where(Post.deleted_at.is_(None), User.deleted_at.is_(None), Post.published_at.is_not(None))
            )
            result = await self.db.execute(stmt)
            return int(result.scalar_one())

        return await self._execute_read("SELECT COUNT(*) published posts WITH authors", query)

    async def find_by_id_with_author(self, id: Any) -> PostWithAuthor | None:
        post_id = coerce_uuid(id)
        if post_id is None:
            return None

        async def query() -> PostWithAuthor | None:
            result = await self.db.execute(self._with_author().where(Post.id == post_id).limit(1))
            row = result.first()
            return self._pair(row) if row is not None else None

        return await self._execute_read("SELECT posts WITH author WHERE id = ?", query)

    # =================================================================================================================
    # Publishing
    # =================================================================================================================

    async def publish(self, id: Any) -> Post:
        """
        Mark a live post as published.

        The first publish stamps ``published_at``; publishing again keeps the original
        timestamp and only refreshes ``updated_at``.

        Raises:
            NotFoundError: no live post has this id.
        """
        post_id = coerce_uuid(id)
        if post_id is None:
            raise NotFoundError(self.resource_name, id)

        now = utcnow()
        post = await self._update_live_row(
            post_id,
            "UPDATE posts SET published_at WHERE id = ?",
            {"published_at": func.coalesce(Post.published_at, now), "updated_at": now},
        )
        if post is None:
            logger.info("repo.publish.not_found", extra={"model": self.resource_name, "id": str(post_id)})
            raise NotFoundError(self.resource_name, id)

        logger.info("repo.publish.success", extra={"model": self.resource_name, "id": str(post_id)})
        return post
