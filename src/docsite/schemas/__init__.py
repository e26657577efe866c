from .common import Pagination, ErrorResponse, ERROR_RESPONSES
from .user import UserCreate, UserUpdate, UserRead, UserListResponse
from .post import (
    PostCreate,
    PostUpdate,
    PostRead,
    AuthorSummary,
    PostWithAuthorRead,
    PostListResponse,
    PublishedPostListResponse,
)

__all__ = [
    "Pagination",
    "ErrorResponse",
    "ERROR_RESPONSES",
    "UserCreate",
    "UserUpdate",
    "UserRead",
    "UserListResponse",
    "PostCreate",
    "PostUpdate",
    "PostRead",
    "AuthorSummary",
    "PostWithAuthorRead",
    "PostListResponse",
    "PublishedPostListResponse",
]
