"""
FastAPI dependencies.

Shared, process-wide objects (engine, session maker, retry executor, query logger) are
created by ``create_app`` and live on ``app.state``. Repositories are built per request
around a fresh session; nothing here is a module-level singleton.
"""
from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from docsite.database.session import iter_session
from docsite.repositories.post_repository import PostRepository
from docsite.repositories.user_repository import UserRepository


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async for session in iter_session(request.app.state.session_maker):
        yield session


def get_user_repository(request: Request, db: AsyncSession = Depends(get_db_session)) -> UserRepository:
    state = request.app.state
    return UserRepository(db, retry_executor=state.retry_executor, query_logger=state.query_logger)


def get_post_repository(request: Request, db: AsyncSession = Depends(get_db_session)) -> PostRepository:
    state = request.app.state
    return PostRepository(db, retry_executor=state.retry_executor, query_logger=state.query_logger)
