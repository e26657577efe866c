"""
Core pytest configuration for the entire test suite.

This module provides only the essential database setup and core utilities needed across
all test types (repositories, database utilities, API).

Domain-specific fixtures live in:
- tests/test_fixtures/repository_fixtures.py
- tests/test_fixtures/api_fixtures.py
"""

from __future__ import annotations

# -------------------------------
# Standard library imports
# -------------------------------
import os
import sys
import asyncio
import logging
from pathlib import Path
from urllib.parse import urlparse
from typing import AsyncGenerator

# -------------------------------
# Early logging tuning
# -------------------------------
# Keep this block above the docsite imports so collection stays quiet.
NOISY_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.engine.Engine",
    "aiosqlite",
    "asyncio",
    "httpx",
)
for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)

# -------------------------------
# Third-party / project imports
# -------------------------------
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from docsite.config.settings import Settings
from docsite.core.logging.builder import setup_logging
from docsite.database.base import Base
from docsite.database.query_logger import QueryLogConfig, QueryLogger
from docsite.database.retry import RetryExecutor, RetryPolicy
from docsite.database.session import build_engine, build_session_maker
from docsite.models import user, post  # noqa: F401 – import to register models with Base.metadata

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------------------------------------
# ENVIRONMENT / PLATFORM FIXES
# ------------------------------------------------------------------------------------------------

# On Windows, psycopg async needs the SelectorEventLoop (not the default ProactorEventLoop).
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


# ------------------------------------------------------------------------------------------------
# Determining the Test Database URL
# ------------------------------------------------------------------------------------------------

def safe_log_db_url(db_url: str) -> str:
    """
    Return the database URL without credentials, for logging.
    """
    parsed = urlparse(db_url)
    return f"{parsed.scheme}://{parsed.hostname or ''}:{parsed.port or ''}/{parsed.path.lstrip('/')}"


def get_test_database_url(tmp_dir: Path) -> str:
    """
    Determine the test database URL.

    1. `TEST_DATABASE_URL` environment variable (CI override, e.g. a PostgreSQL service)
    2. SQLite file under the test's tmp dir, so every test starts from an empty database
    """
    if test_url := os.getenv("TEST_DATABASE_URL"):
        return test_url
    return f"sqlite+aiosqlite:///{tmp_dir / 'test_database.db'}"


# ------------------------------------------------------------------------------------------------
# Settings & logging
# ------------------------------------------------------------------------------------------------

@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings for tests: built by hand so a developer's .env cannot leak in."""
    return Settings(
        _env_file=None,
        ENV="testing",
        DATABASE_URL_OVERRIDE=get_test_database_url(tmp_path),
        LOG_FORMAT="text",
        LOG_LEVEL="INFO",
        LOG_TO_STDOUT=True,
        QUERY_LOGGING_ENABLED=True,
        RETRY_INITIAL_DELAY_MS=1,
        RETRY_MAX_DELAY_MS=5,
    )


SESSION_LOG_SETTINGS = Settings(_env_file=None, ENV="testing", LOG_FORMAT="text", LOG_LEVEL="INFO", LOG_TO_STDOUT=True)


# The `autouse=True` part means pytest applies this fixture without it being requested.
@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """
    Install the application's dictConfig once for the session.

    pytest's caplog handler is attached per test phase, after this runs, so caplog keeps working.
    """
    setup_logging(SESSION_LOG_SETTINGS)
    yield


@pytest.fixture
def restore_logging():
    """For tests that call setup_logging themselves: reinstall the session config afterwards."""
    yield
    setup_logging(SESSION_LOG_SETTINGS)


# ------------------------------------------------------------------------------------------------
# DATABASE FIXTURES
# ------------------------------------------------------------------------------------------------

@pytest.fixture
async def async_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """
    Fresh schema per test: create_all before, drop_all after.

    Built through `build_engine` so SQLite gets the same FK pragma as the app.
    """
    engine = build_engine(test_settings)
    logger.debug("Using test DB: %s", safe_log_db_url(test_settings.DATABASE_URL))

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """
    One session per test. Repositories commit, so isolation comes from the per-test schema
    rather than from an outer rollback.
    """
    maker = build_session_maker(async_engine)
    async with maker() as session:
        yield session


# ------------------------------------------------------------------------------------------------
# RETRY / QUERY LOGGING FIXTURES
# ------------------------------------------------------------------------------------------------

class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays (seconds) and returns at once."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_executor(recording_sleep: RecordingSleep) -> RetryExecutor:
    return RetryExecutor(RetryPolicy(), sleep=recording_sleep)


@pytest.fixture
def query_logger() -> QueryLogger:
    return QueryLogger(QueryLogConfig(enabled=True))


# Repository / API fixtures
from .test_fixtures.repository_fixtures import (  # noqa: E402
    user_repository,
    post_repository,
    sample_user_data,
    sample_post_data,
    create_user,
    created_user,
    multiple_users,
    create_post,
)
from .test_fixtures.api_fixtures import app, client  # noqa: E402
