"""Fixtures for repository tests."""

import uuid

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from docsite.database.query_logger import QueryLogger
from docsite.database.retry import RetryExecutor
from docsite.models.post import Post
from docsite.models.user import User
from docsite.repositories.post_repository import PostRepository
from docsite.repositories.user_repository import UserRepository

# NOTE: All fixtures in this file depend on the `db_session` fixture defined in conftest.py


@pytest.fixture
async def user_repository(
    db_session: AsyncSession, retry_executor: RetryExecutor, query_logger: QueryLogger
) -> UserRepository:
    """
    UserRepository bound to the test session, with a retry executor whose sleep is recorded
    instead of awaited.
    """
    return UserRepository(db_session, retry_executor=retry_executor, query_logger=query_logger)


@pytest.fixture
async def post_repository(
    db_session: AsyncSession, retry_executor: RetryExecutor, query_logger: QueryLogger
) -> PostRepository:
    return PostRepository(db_session, retry_executor=retry_executor, query_logger=query_logger)


@pytest.fixture
def sample_user_data() -> dict[str, str]:
    """
    Deterministic user payload in wire format.
    """
    return {"email": "ada@example.com", "name": "Ada Lovelace"}


@pytest.fixture
def sample_post_data() -> dict[str, str]:
    """Post payload without `userId`; tests add the author they need."""
    return {
        "title": "Getting started",
        "content": "This page explains how to install the tool.",
        "slug": "getting-started",
    }


@pytest.fixture
async def create_user(user_repository: UserRepository):
    """
    Factory creating users with unique emails unless overridden.

    Usage:
        user = await create_user(name="Bob")
    """
    async def _create(**overrides) -> User:
        suffix = uuid.uuid4().hex[:8]
        data = {"email": f"user_{suffix}@example.com", "name": f"User {suffix}"}
        data.update(overrides)
        return await user_repository.create(data)

    return _create


@pytest.fixture
async def created_user(create_user) -> User:
    return await create_user()


@pytest.fixture
async def multiple_users(create_user) -> list[User]:
    """Three users, created in order."""
    return [await create_user(name=f"User {i}") for i in range(3)]


@pytest.fixture
async def create_post(post_repository: PostRepository):
    """
    Factory creating posts with unique slugs for a given author.

    Usage:
        post = await create_post(author, published=datetime(2024, 1, 1))
    """
    async def _create(author: User, **overrides) -> Post:
        suffix = uuid.uuid4().hex[:8]
        data = {
            "userId": str(author.id),
            "title": f"Post {suffix}",
            "content": "Body text long enough to pass validation.",
            "slug": f"post-{suffix}",
        }
        data.update(overrides)
        return await post_repository.create(data)

    return _create
