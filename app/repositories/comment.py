"""Comment repository for database operations."""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select

from app.models import CommentDB
from app.repositories.base import BaseRepository


class CommentRepository(BaseRepository[CommentDB]):
    model = CommentDB

    async def create(self, post_id: UUID, author_id: UUID, content: str) -> CommentDB:
        comment = CommentDB(
            post_id=post_id,
            author_id=author_id,
            content=content,
            created_at=datetime.now(tz=UTC),
        )
        return await self._add_and_refresh(comment)

    async def list_for_post(self, post_id: UUID) -> list[CommentDB]:
        """Comments of a post, oldest first."""
        statement = (
            select(CommentDB)
            .where(CommentDB.post_id == post_id)
            .order_by(CommentDB.created_at, CommentDB.id)
        )
        return list((await self.session.execute(statement)).scalars().all())
