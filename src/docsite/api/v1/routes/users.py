from typing import Any

from fastapi import APIRouter, Body, Depends, status

from docsite.api.v1.pagination import PageParams, pagination_params
from docsite.core.dependencies import get_post_repository, get_user_repository
from docsite.repositories.post_repository import PostRepository
from docsite.repositories.user_repository import UserRepository
from docsite.schemas.common import ERROR_RESPONSES, Pagination
from docsite.schemas.post import PostListResponse, PostRead
from docsite.schemas.user import UserListResponse, UserRead

router = APIRouter(prefix="/users", tags=["users"], responses=ERROR_RESPONSES)


@router.get("", response_model=UserListResponse)
async def list_users(
    params: PageParams = Depends(pagination_params),
    users: UserRepository = Depends(get_user_repository),
) -> UserListResponse:
    rows = await users.find_all(limit=params.limit, offset=params.offset)
    total = await users.count()
    return UserListResponse(
        users=[UserRead.model_validate(u) for u in rows],
        pagination=Pagination.build(params.page, params.page_size, total),
    )


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: dict[str, Any] = Body(...),
    users: UserRepository = Depends(get_user_repository),
) -> UserRead:
    # Shape/format rules are enforced by the repository so every caller gets them.
    user = await users.create(payload)
    return UserRead.model_validate(user)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(user_id: str, users: UserRepository = Depends(get_user_repository)) -> UserRead:
    return UserRead.model_validate(await users.find_by_id_or_raise(user_id))


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: str,
    payload: dict[str, Any] = Body(...),
    users: UserRepository = Depends(get_user_repository),
) -> UserRead:
    return UserRead.model_validate(await users.update(user_id, payload))


@router.delete("/{user_id}", response_model=UserRead)
async def delete_user(user_id: str, users: UserRepository = Depends(get_user_repository)) -> UserRead:
    return UserRead.model_validate(await users.delete(user_id))


@router.get("/{user_id}/posts", response_model=PostListResponse)
async def list_user_posts(
    user_id: str,
    params: PageParams = Depends(pagination_params),
    users: UserRepository = Depends(get_user_repository),
    posts: PostRepository = Depends(get_post_repository),
) -> PostListResponse:
    user = await users.find_by_id_or_raise(user_id)
    rows = await posts.find_by_user_id(user.id, limit=params.limit, offset=params.offset)
    total = await posts.count_by_user_id(user.id)
    return PostListResponse(
        posts=[PostRead.model_validate(p) for p in rows],
        pagination=Pagination.build(params.page, params.page_size, total),
    )
