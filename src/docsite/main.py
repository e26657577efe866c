"""
Application factory.

    uvicorn docsite.main:app

``create_app`` builds every shared object once (engine, session maker, retry executor,
query logger) and stores it on ``app.state``; request dependencies read from there.
Tests call ``create_app(settings=..., engine=...)`` with their own engine.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from docsite.api.v1.error_handlers import register_exception_handlers
from docsite.api.v1.routes import health, posts, users
from docsite.config.settings import Settings, get_settings
from docsite.core.logging.builder import setup_logging
from docsite.core.logging.middleware import RequestIDMiddleware
from docsite.database.health import verify_connection
from docsite.database.query_logger import QueryLogConfig, QueryLogger
from docsite.database.retry import RetryExecutor, RetryPolicy
from docsite.database.session import build_engine, build_session_maker
from docsite.exceptions.base import DatabaseConnectionError
from docsite.utils.logging import get_project_version

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    engine: AsyncEngine | None = None,
    configure_logging: bool = True,
) -> FastAPI:
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(settings)

    owns_engine = engine is None
    engine = engine or build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await verify_connection(engine)
        except DatabaseConnectionError:
            # keep serving: /health reports 503 until the database is back
            logger.warning("app.startup.db_unavailable", extra={"env": settings.ENV})
        else:
            logger.info("app.startup", extra={"env": settings.ENV})
        yield
        if owns_engine:
            await engine.dispose()
        logger.info("app.shutdown")

    app = FastAPI(title="docsite-api", version=get_project_version(), lifespan=lifespan)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_maker = build_session_maker(engine)
    app.state.retry_executor = RetryExecutor(RetryPolicy.from_settings(settings))
    app.state.query_logger = QueryLogger(QueryLogConfig.from_settings(settings))

    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(posts.router)

    return app


def __getattr__(name: str):
    # `uvicorn docsite.main:app` builds the app lazily so importing this module has no side effects.
    if name == "app":
        return create_app()
    raise AttributeError(name)
