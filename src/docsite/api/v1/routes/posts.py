from typing import Any

from fastapi import APIRouter, Body, Depends, status

from docsite.api.v1.pagination import PageParams, pagination_params
from docsite.core.dependencies import get_post_repository
from docsite.exceptions.base import NotFoundError
from docsite.repositories.post_repository import PostRepository
from docsite.schemas.common import ERROR_RESPONSES, Pagination
from docsite.schemas.post import PostRead, PostWithAuthorRead, PublishedPostListResponse

router = APIRouter(prefix="/posts", tags=["posts"], responses=ERROR_RESPONSES)


@router.get("", response_model=PublishedPostListResponse)
async def list_published_posts(
    params: PageParams = Depends(pagination_params),
    posts: PostRepository = Depends(get_post_repository),
) -> PublishedPostListResponse:
    pairs = await posts.find_published(limit=params.limit, offset=params.offset)
    total = await posts.count_published()
    return PublishedPostListResponse(
        posts=[PostWithAuthorRead.from_pair(post, author) for post, author in pairs],
        pagination=Pagination.build(params.page, params.page_size, total),
    )


@router.post("", response_model=PostRead, status_code=status.HTTP_201_CREATED)
async def create_post(
    payload: dict[str, Any] = Body(...),
    posts: PostRepository = Depends(get_post_repository),
) -> PostRead:
    return PostRead.model_validate(await posts.create(payload))


@router.get("/{post_id}", response_model=PostWithAuthorRead)
async def get_post(post_id: str, posts: PostRepository = Depends(get_post_repository)) -> PostWithAuthorRead:
    pair = await posts.find_by_id_with_author(post_id)
    if pair is None:
        raise NotFoundError("Post", post_id)
    return PostWithAuthorRead.from_pair(*pair)


@router.patch("/{post_id}", response_model=PostRead)
async def update_post(
    post_id: str,
    payload: dict[str, Any] = Body(...),
    posts: PostRepository = Depends(get_post_repository),
) -> PostRead:
    return PostRead.model_validate(await posts.update(post_id, payload))


@router.delete("/{post_id}", response_model=PostRead)
async def delete_post(post_id: str, posts: PostRepository = Depends(get_post_repository)) -> PostRead:
    return PostRead.model_validate(await posts.delete(post_id))


@router.post("/{post_id}/publish", response_model=PostRead)
async def publish_post(post_id: str, posts: PostRepository = Depends(get_post_repository)) -> PostRead:
    return PostRead.model_validate(await posts.publish(post_id))
