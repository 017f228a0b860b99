"""Post and tag database models using SQLModel."""

from datetime import UTC, datetime
from typing import cast
from uuid import UUID, uuid4

from pydantic import ConfigDict
from sqlalchemy import Boolean, DateTime, Index, Text
from sqlalchemy.orm import declared_attr
from sqlmodel import Column, Field, ForeignKey, SQLModel, String


class PostDB(SQLModel, table=True):
    """Blog post owned by one author."""

    __tablename__ = cast("declared_attr[str]", "posts")

    __table_args__ = (
        Index("ix_posts_published_created", "published", "created_at"),
        Index("ix_posts_author_created", "author_id", "created_at"),
    )

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        nullable=False,
        description="Post ID",
    )
    author_id: UUID = Field(
        sa_column=Column(
            "author_id",
            ForeignKey("users.uuid", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        description="Author ID (foreign key to users.uuid)",
    )
    title: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Post title",
    )
    content: str = Field(
        sa_column=Column(Text, nullable=False),
        description="Post body",
    )
    published: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
        description="Whether the post is publicly visible",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=UTC),
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
        description="Creation timestamp",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=UTC),
        sa_column=Column(DateTime(timezone=True), nullable=False),
        description="Last update timestamp",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "author_id": "123e4567-e89b-12d3-a456-426614174000",
                "title": "Caching reads without going stale",
                "content": "Every write invalidates the exact key first...",
                "published": True,
            },
        },
    )


class TagDB(SQLModel, table=True):
    """Tag shared between posts, created on first use."""

    __tablename__ = cast("declared_attr[str]", "tags")

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(
        sa_column=Column(String(50), unique=True, nullable=False, index=True),
        description="Tag name (unique, lower case)",
    )


class PostTagLink(SQLModel, table=True):
    """Association between posts and tags."""

    __tablename__ = cast("declared_attr[str]", "post_tags")

    post_id: UUID = Field(
        sa_column=Column(
            "post_id",
            ForeignKey("posts.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    tag_id: int = Field(
        sa_column=Column(
            "tag_id",
            ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
