"""Database models for the application."""

from app.models.comment import CommentDB
from app.models.post import PostDB, PostTagLink, TagDB
from app.models.user import UserDB

__all__ = ["CommentDB", "PostDB", "PostTagLink", "TagDB", "UserDB"]
