import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .common import Pagination, ReadModel


class _EmailRules(BaseModel):
    """Email normalization and length rules shared by create and update payloads."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    @field_validator("email", mode="before", check_fields=False)
    @classmethod
    def normalize_email(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("email", check_fields=False)
    @classmethod
    def check_email_length(cls, value: str) -> str:
        if not 5 <= len(value) <= 255:
            raise ValueError("email must be between 5 and 255 characters")
        return value


class UserCreate(_EmailRules):
    """Payload accepted by ``UserRepository.create``."""

    email: EmailStr
    name: str = Field(min_length=1, max_length=255)


class UserUpdate(_EmailRules):
    """
    Partial update. Omitted fields stay untouched; an explicit ``null`` is rejected
    because neither column is nullable (the ``str`` annotation refuses None).
    """

    email: EmailStr = Field(default=None)
    name: str = Field(default=None, min_length=1, max_length=255)


class UserRead(ReadModel):
    id: uuid.UUID
    email: str
    name: str
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None


class UserListResponse(BaseModel):
    users: list[UserRead]
    pagination: Pagination
