from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
)

from docsite.config.settings import Settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ships with FK enforcement off; ON DELETE CASCADE and FK checks need it.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(settings: Settings, url: str | None = None) -> AsyncEngine:
    """
    Create the process-wide AsyncEngine.

    PostgreSQL gets a bounded pool (``DB_POOL_SIZE`` connections, ``DB_POOL_TIMEOUT`` seconds to
    connect or check out, idle connections recycled after ``DB_POOL_RECYCLE`` seconds). SQLite is
    only used for tests and keeps SQLAlchemy's default pool. Both hide bound parameters, so a
    ``StatementError`` never carries submitted values into a log record.
    """
    db_url = make_url(url or settings.DATABASE_URL)

    if db_url.get_backend_name() == "sqlite":
        engine = create_async_engine(db_url, echo=settings.SQLALCHEMY_ECHO, hide_parameters=True)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    connect_args = {}
    if db_url.get_driver_name() == "psycopg":
        # libpq takes whole seconds
        connect_args["connect_timeout"] = max(1, int(settings.DB_POOL_TIMEOUT))

    return create_async_engine(
        db_url,
        echo=settings.SQLALCHEMY_ECHO,
        hide_parameters=True,            # bound values stay out of error messages and echo output
        pool_pre_ping=True,              # Enables connection health checks
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=0,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        connect_args=connect_args,
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def iter_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield one session and make sure it is closed afterwards.

    The FastAPI dependency in ``docsite.core.dependencies`` delegates here.
    """
    async with session_maker() as session:
        yield session
