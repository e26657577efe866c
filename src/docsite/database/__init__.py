from .base import Base, utcnow
from .retry import RetryExecutor, RetryPolicy
from .query_logger import QueryLogConfig, QueryLogger

__all__ = ["Base", "utcnow", "RetryExecutor", "RetryPolicy", "QueryLogConfig", "QueryLogger"]
