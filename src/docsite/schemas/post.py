import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import Pagination, ReadModel, to_naive_utc

SLUG_PATTERN = r"^[a-z0-9-]+$"


class _PostRules(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    @field_validator("published_at", check_fields=False)
    @classmethod
    def normalize_published(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value)


class PostCreate(_PostRules):
    """
    Payload accepted by ``PostRepository.create``.

    ``userId`` and ``published`` are the wire names; the snake_case names work too.
    """

    user_id: uuid.UUID = Field(alias="userId")
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=10)
    slug: str = Field(min_length=1, max_length=255, pattern=SLUG_PATTERN)
    published_at: datetime | None = Field(default=None, alias="published")


class PostUpdate(_PostRules):
    """
    Partial update. The author cannot change, so ``userId`` is not accepted here.
    ``published`` may be set to null to turn a post back into a draft.
    """

    title: str = Field(default=None, min_length=1, max_length=255)
    content: str = Field(default=None, min_length=10)
    slug: str = Field(default=None, min_length=1, max_length=255, pattern=SLUG_PATTERN)
    published_at: datetime | None = Field(default=None, alias="published")


class AuthorSummary(ReadModel):
    id: uuid.UUID
    name: str
    email: str


class PostRead(ReadModel):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    content: str
    slug: str
    published_at: datetime | None = Field(default=None, alias="published")
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None


class PostWithAuthorRead(PostRead):
    author: AuthorSummary

    @classmethod
    def from_pair(cls, post, author) -> "PostWithAuthorRead":
        data = PostRead.model_validate(post).model_dump()
        return cls.model_validate({**data, "author": AuthorSummary.model_validate(author)})


class PostListResponse(BaseModel):
    posts: list[PostRead]
    pagination: Pagination


class PublishedPostListResponse(BaseModel):
    posts: list[PostWithAuthorRead]
    pagination: Pagination
