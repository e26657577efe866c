from dataclasses import dataclass

from fastapi import Query

from docsite.exceptions.base import InvalidFieldError

MAX_PAGE_SIZE = 100
# LIMIT/OFFSET are bound as signed 64-bit integers by PostgreSQL and SQLite
MAX_OFFSET = 2**63 - 1

PAGINATION_ERROR = "Invalid pagination parameters"
PAGINATION_PARAMS = frozenset({"page", "pageSize"})


@dataclass(frozen=True)
class PageParams:
    page: int
    page_size: int

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def pagination_params(
    page: int = Query(1),
    page_size: int = Query(10, alias="pageSize"),
) -> PageParams:
    """Shared ``?page=&pageSize=`` parsing for list endpoints: page >= 1, 1 <= pageSize <= 100."""
    if page < 1:
        raise InvalidFieldError(PAGINATION_ERROR, fields=["page"])
    if not 1 <= page_size <= MAX_PAGE_SIZE:
        raise InvalidFieldError(PAGINATION_ERROR, fields=["pageSize"])
    params = PageParams(page=page, page_size=page_size)
    if params.offset > MAX_OFFSET:
        raise InvalidFieldError(PAGINATION_ERROR, fields=["page"])
    return params
