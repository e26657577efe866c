# docsite/
# │
# ├── exceptions/
# │   ├── __init__.py
# │   ├── base.py                    # App-level errors (RepositoryError, DuplicateError, ...) + is_transient_error
# │   ├── integrity_classifier.py    # SQL-level / driver-specific classification
# │   └── mapper.py                  # Map SQL-level / driver errors to app-level errors
from .base import (
    TRANSIENT_SQLSTATES,
    RepositoryError,
    DatabaseConnectionError,
    QueryError,
    TransactionError,
    NotFoundError,
    DuplicateError,
    InvalidFieldError,
    is_transient_error,
)

__all__ = [
    "TRANSIENT_SQLSTATES",
    "RepositoryError",
    "DatabaseConnectionError",
    "QueryError",
    "TransactionError",
    "NotFoundError",
    "DuplicateError",
    "InvalidFieldError",
    "is_transient_error",
]
