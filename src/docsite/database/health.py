import logging
import time

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from docsite.exceptions.base import DatabaseConnectionError

logger = logging.getLogger(__name__)


async def check_connection_health(engine: AsyncEngine) -> dict:
    """
    Run ``SELECT 1`` and report how long the round trip took.

    Returns:
        ``{"healthy": True, "latency_ms": float}`` or ``{"healthy": False, "error": str}``.
        Never raises for database failures.
    """
    start = time.perf_counter()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("db.health.failed", extra={"error_type": type(exc).__name__})
        return {"healthy": False, "error": str(exc) or type(exc).__name__}
    latency_ms = round((time.perf_counter() - start) * 1000, 2)
    logger.debug("db.health.ok", extra={"latency_ms": latency_ms})
    return {"healthy": True, "latency_ms": latency_ms}


async def verify_connection(engine: AsyncEngine) -> None:
    """Raise ``DatabaseConnectionError`` when the database does not answer."""
    health = await check_connection_health(engine)
    if not health["healthy"]:
        raise DatabaseConnectionError(f"Database connection check failed: {health.get('error', 'Unknown error')}")


def get_pool_stats(engine: AsyncEngine) -> dict:
    """
    Snapshot of the connection pool. Keys are present only when the pool class reports them.
    """
    pool = engine.sync_engine.pool
    stats: dict = {"pool_class": type(pool).__name__}
    for key, attr in (("size", "size"), ("checked_in", "checkedin"),
                      ("checked_out", "checkedout"), ("overflow", "overflow")):
        method = getattr(pool, attr, None)
        if callable(method):
            stats[key] = method()
    return stats
