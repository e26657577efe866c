"""
Shared pieces for the request/response schemas.
"""
from datetime import datetime, timezone
from math import ceil

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReadModel(BaseModel):
    """Base for response models: built from ORM rows, serialized with camelCase keys."""

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert aware datetimes to naive UTC; naive values are assumed to already be UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def public_field_name(schema: type[BaseModel], loc: object) -> str:
    """Map a validation error location back to the field name clients send (the alias)."""
    for name, info in schema.model_fields.items():
        if loc in (name, info.alias):
            return info.alias or name
    return str(loc)


class Pagination(ReadModel):
    page: int
    page_size: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, page_size: int, total: int) -> "Pagination":
        return cls(page=page, page_size=page_size, total=total, total_pages=ceil(total / page_size))


class ErrorResponse(BaseModel):
    error: str
    code: str | None = None
    field: str | None = Field(default=None)


# Documented on every router; bodies are built by docsite.api.v1.error_handlers.
ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse, "description": "Invalid input or pagination parameters"},
    404: {"model": ErrorResponse, "description": "No live record with this identifier"},
    409: {"model": ErrorResponse, "description": "A unique field (email, slug) is already taken"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}
