import logging

import pytest
from sqlalchemy.exc import IntegrityError

from docsite.database.query_logger import MAX_DESCRIPTION_LENGTH, QueryLogConfig, QueryLogger
from docsite.exceptions.base import DuplicateError

LOGGER_NAME = "docsite.database.query_logger"


class FakeClock:
    """Returns the queued readings (seconds) one per call."""

    def __init__(self, *readings: float):
        self.readings = list(readings)

    def __call__(self) -> float:
        return self.readings.pop(0)


def make_logger(duration_ms: float, **config) -> QueryLogger:
    return QueryLogger(QueryLogConfig(enabled=True, **config), clock=FakeClock(0.0, duration_ms / 1000))


def records(caplog):
    return [r for r in caplog.records if r.name == LOGGER_NAME]


@pytest.mark.asyncio
class TestQueryLoggerRun:

    async def test_fast_query_logs_ok(self, caplog):
        query_logger = make_logger(5)

        async def op():
            return 42

        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            assert await query_logger.run(op, "SELECT 1") == 42

        [record] = records(caplog)
        assert record.getMessage() == "query.ok"
        assert record.levelno == logging.INFO
        assert record.query == "SELECT 1"
        assert record.duration_ms == 5

    async def test_threshold_is_inclusive(self, caplog):
        """
        Behavior:
          - A query taking exactly slow_threshold_ms is reported as slow, at WARNING.
        """
        query_logger = make_logger(125, slow_threshold_ms=125)

        async def op():
            return None

        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            await query_logger.run(op, "SELECT * FROM posts")

        [record] = records(caplog)
        assert record.getMessage() == "query.slow"
        assert record.levelno == logging.WARNING
        assert record.threshold_ms == 125

    async def test_slow_logging_can_be_disabled(self, caplog):
        query_logger = make_logger(500, log_slow_queries=False)

        async def op():
            return None

        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            await query_logger.run(op, "SELECT 1")

        assert [r.getMessage() for r in records(caplog)] == ["query.ok"]

    async def test_error_is_logged_and_reraised_unchanged(self, caplog):
        query_logger = make_logger(3)
        error = RuntimeError("relation does not exist")

        async def op():
            raise error

        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            with pytest.raises(RuntimeError) as exc_info:
                await query_logger.run(op, "SELECT * FROM nowhere")

        assert exc_info.value is error
        [record] = records(caplog)
        assert record.getMessage() == "query.error"
        assert record.levelno == logging.ERROR
        assert record.error_type == "RuntimeError"
        assert record.sqlstate is None
        assert "relation does not exist" not in str(vars(record))

    async def test_driver_error_text_and_parameters_stay_out_of_the_record(self, caplog):
        """
        Behavior:
          - A failed statement is reported by type and SQLSTATE.
          - Neither the bound parameters nor the driver message show up on the record.

        Importance:
          - Driver messages repeat submitted values (emails, slugs) verbatim.
        """
        query_logger = make_logger(2)
        orig = Exception("duplicate key value violates unique constraint\nDETAIL:  Key (email)=(hidden@example.com)")
        orig.sqlstate = "23505"
        error = IntegrityError("INSERT INTO users (email) VALUES (%(email)s)", {"email": "hidden@example.com"}, orig)

        async def op():
            raise error

        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            with pytest.raises(IntegrityError):
                await query_logger.run(op, "INSERT users")

        [record] = records(caplog)
        assert record.error_type == "IntegrityError"
        assert record.sqlstate == "23505"
        assert "hidden@example.com" not in str(vars(record))
        assert "hidden@example.com" not in record.getMessage()

    async def test_disabled_logger_is_silent_but_still_runs(self, caplog):
        query_logger = QueryLogger(QueryLogConfig(enabled=False))

        async def op():
            return "value"

        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            assert await query_logger.run(op, "SELECT 1") == "value"

        assert records(caplog) == []

    async def test_long_descriptions_are_truncated(self, caplog):
        query_logger = make_logger(1)

        async def op():
            return None

        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            await query_logger.run(op, "x" * 500)

        [record] = records(caplog)
        assert len(record.query) == MAX_DESCRIPTION_LENGTH


def test_log_transaction_success_and_failure(caplog):
    query_logger = QueryLogger(QueryLogConfig(enabled=True))

    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        query_logger.log_transaction("INSERT users", 12.5, success=True)
        query_logger.log_transaction("INSERT users", 3.0, success=False, error=ValueError("bad"))

    first, second = records(caplog)
    assert first.getMessage() == "transaction.commit"
    assert first.operation == "INSERT users"
    assert second.getMessage() == "transaction.failed"
    assert second.levelno == logging.ERROR
    assert second.error_type == "ValueError"


def test_transaction_failure_reports_repository_error_code(caplog):
    query_logger = QueryLogger(QueryLogConfig(enabled=True))
    error = DuplicateError("User with this email already exists", fields=["email"], constraint="uq_users_email_live")

    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        query_logger.log_transaction("INSERT users", 4.0, success=False, error=error)

    [record] = records(caplog)
    assert record.error_type == "DuplicateError"
    assert record.error_code == "duplicate"
    assert record.sqlstate is None


def test_error_logging_can_be_disabled(caplog):
    query_logger = QueryLogger(QueryLogConfig(enabled=True, log_errors=False))

    with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
        query_logger.log_query("SELECT 1", 1.0, error=RuntimeError("x"))
        query_logger.log_transaction("UPDATE posts", 1.0, success=False, error=RuntimeError("x"))

    assert records(caplog) == []
