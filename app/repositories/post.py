"""Post and tag repository for database operations."""

from collections import defaultdict
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, func, select

from app.models import CommentDB, PostDB, PostTagLink, TagDB
from app.repositories.base import BaseRepository
from app.schemas.post import PostCreate, PostUpdate


class PostRepository(BaseRepository[PostDB]):
    """
    Repository for Post entities and their tag links.

    Tags are connect-or-create: a name that does not exist yet is inserted
    the first time a post uses it.
    """

    model = PostDB

    async def create(self, author_id: UUID, data: PostCreate) -> PostDB:
        """
        Create a post and link its tags.

        Args:
            author_id: UUID of the post author
            data: Validated creation body

        Returns:
            PostDB: Created post
        """
        now = datetime.now(tz=UTC)
        post = PostDB(
            author_id=author_id,
            title=data.title,
            content=data.content,
            published=data.published,
            created_at=now,
            updated_at=now,
        )
        post = await self._add_and_refresh(post)
        await self._replace_tags(post.id, data.tags)
        return post

    async def update(self, post: PostDB, data: PostUpdate) -> PostDB:
        """Apply the provided fields; a provided ``tags`` list replaces the whole set."""
        changes = data.model_dump(exclude_unset=True, exclude={"tags"})
        for key, value in changes.items():
            if value is not None:
                setattr(post, key, value)
        post.updated_at = datetime.now(tz=UTC)
        post = await self._add_and_refresh(post)
        if data.tags is not None:
            await self._replace_tags(post.id, data.tags)
        return post

    async def delete(self, record: PostDB) -> None:
        """Delete a post together with its comments and tag links."""
        await self.session.execute(delete(CommentDB).where(CommentDB.post_id == record.id))
        await self.session.execute(delete(PostTagLink).where(PostTagLink.post_id == record.id))
        await super().delete(record)

    async def list_page(
        self,
        page: int,
        limit: int,
        tag: str | None = None,
    ) -> tuple[list[PostDB], int]:
        """
        Get one page of posts, newest first.

        Returns:
            tuple: Posts on the page and the total number of matching posts
        """
        statement = select(PostDB)
        count_statement = select(func.count()).select_from(PostDB)
        if tag:
            tagged = (
                select(PostTagLink.post_id)
                .join(TagDB, TagDB.id == PostTagLink.tag_id)
                .where(TagDB.name == tag.lower())
            )
            statement = statement.where(PostDB.id.in_(tagged))
            count_statement = count_statement.where(PostDB.id.in_(tagged))

        statement = (
            statement.order_by(PostDB.created_at.desc(), PostDB.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        posts = list((await self.session.execute(statement)).scalars().all())
        total = (await self.session.execute(count_statement)).scalar() or 0
        return posts, total

    async def tags_for(self, post_ids: list[UUID]) -> dict[UUID, list[str]]:
        """Tag names per post, sorted alphabetically."""
        if not post_ids:
            return {}
        statement = (
            select(PostTagLink.post_id, TagDB.name)
            .join(TagDB, TagDB.id == PostTagLink.tag_id)
            .where(PostTagLink.post_id.in_(post_ids))
            .order_by(TagDB.name)
        )
        tags: defaultdict[UUID, list[str]] = defaultdict(list)
        for post_id, name in (await self.session.execute(statement)).all():
            tags[post_id].append(name)
        return dict(tags)

    async def tag_counts(self) -> list[tuple[str, int]]:
        """Every tag name with the number of posts using it."""
        statement = (
            select(TagDB.name, func.count(PostTagLink.post_id))
            .join(PostTagLink, PostTagLink.tag_id == TagDB.id, isouter=True)
            .group_by(TagDB.name)
            .order_by(TagDB.name)
        )
        return [(name, count) for name, count in (await self.session.execute(statement)).all()]

    async def _replace_tags(self, post_id: UUID, names: list[str]) -> None:
        await self.session.execute(delete(PostTagLink).where(PostTagLink.post_id == post_id))
        if not names:
            await self.session.flush()
            return

        existing = await self.session.execute(select(TagDB).where(TagDB.name.in_(names)))
        tags = {tag.name: tag for tag in existing.scalars().all()}
        for name in names:
            if name not in tags:
                tags[name] = await self._add_and_refresh(TagDB(name=name))

        for name in names:
            self.session.add(PostTagLink(post_id=post_id, tag_id=tags[name].id))
        await self.session.flush()
