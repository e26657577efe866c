"""
Bounded retry with exponential backoff for database operations.

Only errors that ``is_transient_error`` accepts are retried (dropped connections,
serialization failures, deadlocks). Everything else propagates on the first failure, so
validation, conflict and not-found errors are never repeated.

Delay before retry ``n`` (1-based) is::

    min(initial_delay_ms * backoff_multiplier ** (n - 1), max_delay_ms)

With the defaults (3 attempts, 100 ms, x2, cap 1000 ms) an always-failing operation runs
three times with 100 ms and 200 ms pauses in between.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from docsite.config.settings import Settings
from docsite.exceptions.base import is_transient_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

OnRetry = Callable[[int, BaseException], None]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay_ms: float = 100
    max_delay_ms: float = 1000
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must be >= 0")

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            initial_delay_ms=settings.RETRY_INITIAL_DELAY_MS,
            max_delay_ms=settings.RETRY_MAX_DELAY_MS,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
        )

    def delay_ms(self, attempt: int) -> float:
        """Backoff to wait after failed attempt number ``attempt`` (1-based)."""
        delay = self.initial_delay_ms * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_delay_ms)


class RetryExecutor:
    """
    Runs an async operation under a ``RetryPolicy``.

    Args:
        policy: backoff configuration. Defaults to ``RetryPolicy()``.
        sleep: awaitable taking seconds. Tests inject a recorder instead of ``asyncio.sleep``.
    """

    def __init__(self, policy: RetryPolicy | None = None, *, sleep: Sleep | None = None):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        on_retry: OnRetry | None = None,
        description: str | None = None,
    ) -> T:
        """
        Execute ``operation`` until it succeeds, fails permanently, or attempts run out.

        Args:
            operation: zero-argument coroutine factory; called once per attempt.
            on_retry: called as ``on_retry(attempt, error)`` before each backoff sleep.
            description: short label for the retry log events.

        Returns:
            Whatever ``operation`` returns.

        Raises:
            The first non-transient error, or the last transient error once attempts are exhausted.
        """
        policy = self.policy
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as exc:
                if not is_transient_error(exc):
                    raise
                if attempt >= policy.max_attempts:
                    logger.error(
                        "retry.exhausted",
                        extra={
                            "operation": description,
                            "attempts": attempt,
                            "error_type": type(exc).__name__,
                        },
                    )
                    raise

                delay_ms = policy.delay_ms(attempt)
                logger.warning(
                    "retry.attempt",
                    extra={
                        "operation": description,
                        "attempt": attempt,
                        "max_attempts": policy.max_attempts,
                        "delay_ms": delay_ms,
                        "error_type": type(exc).__name__,
                    },
                )
                if on_retry is not None:
                    on_retry(attempt, exc)
                await self._sleep(delay_ms / 1000)
                attempt += 1
