# app/routes/posts.py

"""
Post Routes.

CRUD endpoints for posts, comments and tags.

Summary
-------
Endpoints include:
  - List posts (paginated, optional tag filter)
  - Get post by id (with comments)
  - Create, update and delete posts
  - Add and delete comments
  - List tags with post counts

Caching
-------
Reads go through the shared cache. The `X-Cache` response header reports
`HIT`, `MISS`, or `BYPASS` when the cache could not be used, and the envelope's
`source` field tells whether the data came from the cache or the database.

Rate Limiting
-------------
Every request is counted by the global admission limiter. Write endpoints
carry an additional per-route limit of 20 requests per minute.
"""

from logging import getLogger
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse
from starlette.responses import Response
from starlette.status import HTTP_201_CREATED, HTTP_204_NO_CONTENT

from app.configs import file_logger
from app.dependencies import PostListQueryDep, PostServiceDep, UserDBDep
from app.managers.cache_types import CacheSource, ReadThroughResult
from app.managers.rate_limiter import limiter
from app.schemas import (
    ApiResponse,
    CommentCreate,
    CommentResponse,
    PostCreate,
    PostListData,
    PostResponse,
    PostSummary,
    PostUpdate,
    TagResponse,
)

router = APIRouter(prefix="/api", tags=["📝 Posts"])

logger = file_logger(getLogger(__name__))

WRITE_LIMIT = "20/minute"

RESPONSES_429: dict[int | str, dict[str, Any]] = {
    429: {
        "description": "Rate limit exceeded",
        "content": {
            "application/json": {
                "example": {
                    "status": "error",
                    "message": "Too many requests from this IP, please try again later.",
                },
            },
        },
    },
}


def envelope(
    data: Any,  # noqa: ANN401
    status_code: int = 200,
    source: CacheSource | None = None,
) -> ORJSONResponse:
    body = ApiResponse[Any](data=data, source=source).model_dump()
    if source is None:
        del body["source"]
    return ORJSONResponse(content=body, status_code=status_code)


def cached_envelope(result: ReadThroughResult[Any]) -> ORJSONResponse:
    """Wrap a read-through result, reporting its origin in `X-Cache`."""
    response = envelope(result.value, source=result.source)
    response.headers["X-Cache"] = result.cache_header
    return response


@router.get(
    "/posts",
    response_class=ORJSONResponse,
    response_model=ApiResponse[PostListData],
    summary="List posts",
    description="List posts newest first, optionally filtered by tag.",
    responses=RESPONSES_429,
    operation_id="posts_list",
)
async def list_posts(query: PostListQueryDep, service: PostServiceDep) -> ORJSONResponse:
    """
    Get a page of posts.

    Parameters
    ----------
    query : PostListQuery
        Page, page size and optional tag.
    service : PostService
        Post service dependency.

    Returns
    -------
    ORJSONResponse
        Posts and pagination metadata.
    """
    result = await service.list_posts(query.page, query.limit, query.tag)
    return cached_envelope(result)


@router.get(
    "/posts/{post_id}",
    response_class=ORJSONResponse,
    response_model=ApiResponse[PostResponse],
    summary="Get post by ID",
    responses={
        404: {
            "description": "Not found",
            "content": {
                "application/json": {"example": {"status": "error", "message": "Post not found"}},
            },
        },
        **RESPONSES_429,
    },
    operation_id="posts_get",
)
async def get_post(post_id: UUID, service: PostServiceDep) -> ORJSONResponse:
    """
    Get a post with its author, tags and comments.

    Raises
    ------
    RecordNotFoundError
        If the post does not exist.
    """
    result = await service.get_post(post_id)
    return cached_envelope(result)


@router.post(
    "/posts",
    response_class=ORJSONResponse,
    response_model=ApiResponse[PostSummary],
    status_code=HTTP_201_CREATED,
    summary="Create a new post",
    responses=RESPONSES_429,
    operation_id="posts_create",
)
@limiter.limit(WRITE_LIMIT)
async def create_post(
    request: Request,
    post: PostCreate,
    current_user: UserDBDep,
    service: PostServiceDep,
) -> ORJSONResponse:
    """
    Create a new post.

    Parameters
    ----------
    request : Request
        Current request context.
    post : PostCreate
        Post input payload.
    current_user : UserDB
        Authenticated author.
    service : PostService
        Post service dependency.

    Returns
    -------
    ORJSONResponse
        Created post.
    """
    data = await service.create_post(current_user, post)
    return envelope(data, status_code=HTTP_201_CREATED)


@router.put(
    "/posts/{post_id}",
    response_class=ORJSONResponse,
    response_model=ApiResponse[PostSummary],
    summary="Update post",
    description="Replace the fields and tag set of a post you authored.",
    responses={
        403: {
            "description": "Forbidden",
            "content": {
                "application/json": {
                    "example": {"status": "error", "message": "Not authorized to update this post"},
                },
            },
        },
        **RESPONSES_429,
    },
    operation_id="posts_update",
)
@limiter.limit(WRITE_LIMIT)
async def update_post(
    request: Request,
    post_id: UUID,
    post: PostUpdate,
    current_user: UserDBDep,
    service: PostServiceDep,
) -> ORJSONResponse:
    data = await service.update_post(post_id, current_user, post)
    return envelope(data)


@router.delete(
    "/posts/{post_id}",
    status_code=HTTP_204_NO_CONTENT,
    summary="Delete post",
    responses={204: {"description": "No Content"}, **RESPONSES_429},
    operation_id="posts_delete",
)
@limiter.limit(WRITE_LIMIT)
async def delete_post(
    request: Request,
    post_id: UUID,
    current_user: UserDBDep,
    service: PostServiceDep,
) -> Response:
    await service.delete_post(post_id, current_user)
    return Response(status_code=HTTP_204_NO_CONTENT)


@router.post(
    "/posts/{post_id}/comments",
    response_class=ORJSONResponse,
    response_model=ApiResponse[CommentResponse],
    status_code=HTTP_201_CREATED,
    summary="Comment on a post",
    description="Add a comment. Subscribers of the post and its author are notified.",
    responses=RESPONSES_429,
    operation_id="comments_create",
)
@limiter.limit(WRITE_LIMIT)
async def add_comment(
    request: Request,
    post_id: UUID,
    comment: CommentCreate,
    current_user: UserDBDep,
    service: PostServiceDep,
) -> ORJSONResponse:
    """
    Add a comment to a post.

    Parameters
    ----------
    request : Request
        Current request context.
    post_id : UUID
        Post identifier.
    comment : CommentCreate
        Comment body.
    current_user : UserDB
        Authenticated commenter.
    service : PostService
        Post service dependency.

    Returns
    -------
    ORJSONResponse
        Created comment.
    """
    data = await service.add_comment(post_id, current_user, comment)
    return envelope(data, status_code=HTTP_201_CREATED)


@router.delete(
    "/posts/{post_id}/comments/{comment_id}",
    status_code=HTTP_204_NO_CONTENT,
    summary="Delete comment",
    responses={204: {"description": "No Content"}, **RESPONSES_429},
    operation_id="comments_delete",
)
@limiter.limit(WRITE_LIMIT)
async def delete_comment(
    request: Request,
    post_id: UUID,
    comment_id: UUID,
    current_user: UserDBDep,
    service: PostServiceDep,
) -> Response:
    await service.delete_comment(post_id, comment_id, current_user)
    return Response(status_code=HTTP_204_NO_CONTENT)


@router.get(
    "/tags",
    response_class=ORJSONResponse,
    response_model=ApiResponse[list[TagResponse]],
    summary="List tags",
    operation_id="tags_list",
)
async def list_tags(service: PostServiceDep) -> ORJSONResponse:
    """Get every tag with the number of posts carrying it."""
    return envelope(await service.list_tags())
