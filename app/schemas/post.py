"""
Post, comment and tag schemas.

Responses use camelCase aliases on the wire; services dump them with
``by_alias=True`` before caching so cached and fresh payloads are identical.
"""

from datetime import datetime
from typing import Generic, Literal, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _normalize_tags(tags: list[str] | None) -> list[str] | None:
    if tags is None:
        return None
    normalized: list[str] = []
    for tag in tags:
        name = tag.strip().lower()
        if not name:
            mssg = "Tag names cannot be blank"
            raise ValueError(mssg)
        if name not in normalized:
            normalized.append(name)
    return normalized


class AuthorSummary(BaseModel):
    """Author information embedded in post and comment responses."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    username: str
    display_name: str | None = Field(default=None, alias="displayName")


class PostCreate(BaseModel):
    """Post creation body."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255, examples=["Caching reads"])
    content: str = Field(..., min_length=1, examples=["Every write invalidates the exact key."])
    published: bool = Field(default=False)
    tags: list[str] = Field(
        default=[],
        max_length=10,
        description="Tag names; unknown tags are created",
        examples=[["redis", "fastapi"]],
    )

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, tags: list[str]) -> list[str]:
        return _normalize_tags(tags) or []


class PostUpdate(BaseModel):
    """Post update body; omitted fields keep their value, ``tags`` replaces the set."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = Field(default=None, min_length=1, max_length=255)
    content: str | None = Field(default=None, min_length=1)
    published: bool | None = None
    tags: list[str] | None = Field(default=None, max_length=10)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, tags: list[str] | None) -> list[str] | None:
        return _normalize_tags(tags)


class CommentCreate(BaseModel):
    """Comment creation body."""

    content: str = Field(..., min_length=1, max_length=5000, examples=["Great write-up!"])


class CommentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    post_id: UUID = Field(alias="postId")
    content: str
    author: AuthorSummary
    created_at: datetime = Field(alias="createdAt")


class PostSummary(BaseModel):
    """Post as shown in listings."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    title: str
    content: str
    published: bool
    author_id: UUID = Field(alias="authorId")
    author: AuthorSummary
    tags: list[str] = []
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class PostResponse(PostSummary):
    """Post detail including its comments, oldest first."""

    comments: list[CommentResponse] = []


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PostListData(BaseModel):
    posts: list[PostSummary]
    pagination: Pagination


class TagResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    post_count: int = Field(alias="postCount")


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by every JSON endpoint."""

    status: Literal["success"] = "success"
    data: T
    source: Literal["cache", "database"] | None = None
