"""
Timing wrapper that emits one structured log event per database operation.

Events (logger ``docsite.database.query_logger``):
    - ``query.error``  ERROR    the operation raised; the error is re-raised unchanged
    - ``query.slow``   WARNING  duration reached ``slow_threshold_ms``
    - ``query.ok``     INFO     everything else
    - ``transaction.commit`` / ``transaction.failed`` from ``log_transaction``

Descriptions are cut to 200 characters before they reach a log record. Failures are reported by
exception type, SQLSTATE and repository error code only: driver messages echo bound parameters
and constraint details, so their text never reaches a log record.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from docsite.config.settings import Settings
from docsite.exceptions.base import RepositoryError
from docsite.exceptions.integrity_classifier import get_sqlstate

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_DESCRIPTION_LENGTH = 200


@dataclass(frozen=True)
class QueryLogConfig:
    enabled: bool = False
    log_slow_queries: bool = True
    slow_threshold_ms: float = 100
    log_errors: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueryLogConfig":
        return cls(
            enabled=settings.query_logging_enabled,
            log_slow_queries=settings.QUERY_LOG_SLOW_QUERIES,
            slow_threshold_ms=settings.QUERY_SLOW_THRESHOLD_MS,
            log_errors=settings.QUERY_LOG_ERRORS,
        )


def truncate_description(description: str) -> str:
    return description[:MAX_DESCRIPTION_LENGTH]


def describe_error(error: BaseException | None) -> dict:
    if error is None:
        return {"error_type": None, "sqlstate": None}
    if isinstance(error, RepositoryError):
        return {"error_type": type(error).__name__, "sqlstate": error.sqlstate, "error_code": error.error_code}
    return {"error_type": type(error).__name__, "sqlstate": get_sqlstate(getattr(error, "orig", None) or error)}


class QueryLogger:
    """
    Wraps async database calls with timing and logging.

    The config object is passed in, never read from module state, so two loggers with
    different thresholds can coexist (tests rely on that).
    """

    def __init__(self, config: QueryLogConfig | None = None, *, clock: Callable[[], float] = time.perf_counter):
        self.config = config or QueryLogConfig()
        self._clock = clock

    async def run(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        start = self._clock()
        try:
            result = await operation()
        except Exception as exc:
            self.log_query(description, self._elapsed_ms(start), exc)
            raise
        self.log_query(description, self._elapsed_ms(start))
        return result

    def log_query(self, description: str, duration_ms: float, error: BaseException | None = None) -> None:
        config = self.config
        if not config.enabled:
            return

        context = {"query": truncate_description(description), "duration_ms": round(duration_ms, 2)}

        if error is not None:
            if config.log_errors:
                logger.error("query.error", extra={**context, **describe_error(error)})
            return

        if config.log_slow_queries and duration_ms >= config.slow_threshold_ms:
            logger.warning("query.slow", extra={**context, "threshold_ms": config.slow_threshold_ms})
            return

        logger.info("query.ok", extra=context)

    def log_transaction(
        self,
        operation: str,
        duration_ms: float,
        success: bool,
        error: BaseException | None = None,
    ) -> None:
        config = self.config
        if not config.enabled:
            return
        context = {"operation": truncate_description(operation), "duration_ms": round(duration_ms, 2)}
        if success:
            logger.info("transaction.commit", extra=context)
        elif config.log_errors:
            logger.error("transaction.failed", extra={**context, **describe_error(error)})

    def _elapsed_ms(self, start: float) -> float:
        return (self._clock() - start) * 1000
