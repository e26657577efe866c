from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from pathlib import Path
from typing import Literal
from functools import lru_cache

from ..validators.config_validators import to_uppercase, to_lowercase, empty_to_none


class Settings(BaseSettings):
    """
    Application settings loaded from environment (and an optional ``.env`` file).

    Only the app factory calls ``get_settings()``. Everything below it receives either this
    object or a config object derived from it (``RetryPolicy``, ``QueryLogConfig``), so tests
    can build a ``Settings(...)`` by hand and pass it in.
    """

    # =================================================================================================================
    # Environment
    # =================================================================================================================
    ENV: Literal["development", "testing", "staging", "production"] = "development"

    # =================================================================================================================
    # Database
    # =================================================================================================================
    # A full SQLAlchemy URL wins over the POSTGRES_* parts (handy for sqlite in tests).
    DATABASE_URL_OVERRIDE: str | None = None

    POSTGRES_DRIVER: str = "psycopg"
    POSTGRES_USERNAME: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "docsite"
    TEST_POSTGRES_DB: str | None = None
    TESTING: bool = False

    DB_POOL_SIZE: int = 20
    DB_POOL_TIMEOUT: float = 10.0   # seconds to wait for a connection
    DB_POOL_RECYCLE: int = 30       # seconds a pooled connection may sit idle
    SQLALCHEMY_ECHO: bool = False

    # =================================================================================================================
    # Retry on transient database errors
    # =================================================================================================================
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_DELAY_MS: int = 100
    RETRY_MAX_DELAY_MS: int = 1000
    RETRY_BACKOFF_MULTIPLIER: float = 2.0

    # =================================================================================================================
    # Query logging
    # =================================================================================================================
    # None means "on in development, off elsewhere".
    QUERY_LOGGING_ENABLED: bool | None = None
    QUERY_LOG_SLOW_QUERIES: bool = True
    QUERY_SLOW_THRESHOLD_MS: int = 100
    QUERY_LOG_ERRORS: bool = True

    # =================================================================================================================
    # Logging
    # =================================================================================================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"
    LOG_TO_STDOUT: bool = True
    LOG_DIR: Path = Path("/var/log/docsite")
    LOG_MAX_BYTES: int = 10_000_000  # 10 MB
    LOG_BACKUP_COUNT: int = 5
    ENABLE_SQL_LOGGING: bool = False

    @property
    def DATABASE_URL(self) -> str:
        """
        Return the database URL for the current environment.

        Resolution order:
        - ``DATABASE_URL_OVERRIDE`` when set.
        - ``TEST_POSTGRES_DB`` when ``TESTING=True`` so tests never touch the main database.
        - ``POSTGRES_DB`` otherwise.
        """
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE

        db_name = self.TEST_POSTGRES_DB if (self.TESTING and self.TEST_POSTGRES_DB) else self.POSTGRES_DB
        return (
            f"postgresql+{self.POSTGRES_DRIVER}://"
            f"{self.POSTGRES_USERNAME}:{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/"
            f"{db_name}"
        )

    @property
    def query_logging_enabled(self) -> bool:
        if self.QUERY_LOGGING_ENABLED is None:
            return self.ENV == "development"
        return self.QUERY_LOGGING_ENABLED

    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v: str | None) -> str | None:
        """
        Normalize LOG_LEVEL to uppercase before Literal validation ("debug" -> "DEBUG").
        """
        return to_uppercase(v)

    @field_validator("LOG_FORMAT", mode="before")
    def normalize_log_format(cls, v: str | None) -> str | None:
        return to_lowercase(v)

    @field_validator("DATABASE_URL_OVERRIDE", "TEST_POSTGRES_DB", "QUERY_LOGGING_ENABLED", mode="before")
    def blank_is_unset(cls, v: str | None) -> str | None:
        return empty_to_none(v)

    @field_validator("RETRY_MAX_ATTEMPTS")
    def at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("RETRY_MAX_ATTEMPTS must be >= 1")
        return v

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).parent.parent / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
