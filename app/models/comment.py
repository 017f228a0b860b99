"""Comment database model using SQLModel."""

from datetime import UTC, datetime
from typing import cast
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import declared_attr
from sqlmodel import Column, Field, ForeignKey, SQLModel


class CommentDB(SQLModel, table=True):
    """Comment left on a post."""

    __tablename__ = cast("declared_attr[str]", "comments")

    id: UUID = Field(default_factory=uuid4, primary_key=True, nullable=False)
    post_id: UUID = Field(
        sa_column=Column(
            "post_id",
            ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    author_id: UUID = Field(
        sa_column=Column(
            "author_id",
            ForeignKey("users.uuid", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    content: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=UTC),
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
