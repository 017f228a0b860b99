"""Post service: CRUD with read-through caching, invalidation and notifications."""

from logging import getLogger
from typing import Any, TypeAlias
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.configs import file_logger
from app.errors import PostPermissionError, RecordNotFoundError
from app.managers.cache_manager import CacheManager
from app.managers.cache_types import ReadThroughResult
from app.managers.notification_hub import NotificationHub, post_room, user_room
from app.models import CommentDB, PostDB, UserDB
from app.repositories import CommentRepository, PostRepository, UserRepository
from app.schemas.post import (
    AuthorSummary,
    CommentCreate,
    CommentResponse,
    Pagination,
    PostCreate,
    PostListData,
    PostResponse,
    PostSummary,
    PostUpdate,
    TagResponse,
)
from app.utils import POST_LISTINGS_PATTERN, post_key, post_list_key, total_pages

logger = file_logger(getLogger(__name__))

Payload: TypeAlias = dict[str, Any]


def author_summary(user: UserDB) -> AuthorSummary:
    return AuthorSummary(id=user.uuid, username=user.username, display_name=user.display_name)


def post_summary(post: PostDB, author: UserDB, tags: list[str]) -> PostSummary:
    return PostSummary(
        id=post.id,
        title=post.title,
        content=post.content,
        published=post.published,
        author_id=post.author_id,
        author=author_summary(author),
        tags=tags,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


def comment_response(comment: CommentDB, author: UserDB) -> CommentResponse:
    return CommentResponse(
        id=comment.id,
        post_id=comment.post_id,
        content=comment.content,
        author=author_summary(author),
        created_at=comment.created_at,
    )


def dump(model: PostSummary | PostListData | CommentResponse) -> Payload:
    """Serialize a response model exactly as it is cached and sent."""
    return model.model_dump(mode="json", by_alias=True)


class PostService:
    """
    Post workflows shared by the HTTP routes.

    Reads go through the cache with the configured default TTL. Every
    mutation commits first, then deletes the post's exact key and
    invalidates all listing pages, then notifies subscribers. Cache and
    notification problems are logged and never fail the request.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: CacheManager,
        hub: NotificationHub,
    ) -> None:
        """
        Initialize the post service.

        Args:
            session: Database session for the current request
            cache: Shared cache manager
            hub: Real-time notification hub
        """
        self.session = session
        self.cache = cache
        self.hub = hub
        self.posts = PostRepository(session)
        self.comments = CommentRepository(session)
        self.users = UserRepository(session)

    @property
    def ttl(self) -> int:
        return self.cache.cache_config.default_ttl

    async def list_posts(
        self,
        page: int,
        limit: int,
        tag: str | None = None,
    ) -> ReadThroughResult[Payload]:
        """Get one page of posts, served from cache when possible."""

        async def load() -> Payload:
            posts, total = await self.posts.list_page(page, limit, tag)
            authors = await self.users.get_many({post.author_id for post in posts})
            tags = await self.posts.tags_for([post.id for post in posts])
            data = PostListData(
                posts=[post_summary(p, authors[p.author_id], tags.get(p.id, [])) for p in posts],
                pagination=Pagination(
                    page=page,
                    limit=limit,
                    total=total,
                    pages=total_pages(total, limit),
                ),
            )
            return dump(data)

        return await self.cache.get_or_set(post_list_key(page, limit, tag), load, self.ttl)

    async def get_post(self, post_id: UUID) -> ReadThroughResult[Payload]:
        """
        Get a post with its comments, served from cache when possible.

        Raises:
            RecordNotFoundError: If the post does not exist. Nothing is cached.
        """
        return await self.cache.get_or_set(
            post_key(post_id),
            lambda: self._load_post(post_id),
            self.ttl,
        )

    async def _load_post(self, post_id: UUID) -> Payload:
        post = await self._get_post_or_404(post_id)
        comments = await self.comments.list_for_post(post.id)
        users = await self.users.get_many({post.author_id} | {c.author_id for c in comments})
        tags = await self.posts.tags_for([post.id])
        summary = post_summary(post, users[post.author_id], tags.get(post.id, []))
        detail = PostResponse(
            **summary.model_dump(),
            comments=[comment_response(c, users[c.author_id]) for c in comments],
        )
        return dump(detail)

    async def _get_post_or_404(self, post_id: UUID) -> PostDB:
        return await self.posts.get_or_raise(post_id)

    async def _invalidate(self, post_id: UUID) -> None:
        await self.cache.delete(post_key(post_id))
        await self.cache.invalidate_pattern(POST_LISTINGS_PATTERN)

    async def _emit(self, room: str, event: str, payload: Payload) -> None:
        try:
            result = await self.hub.notify(room, event, payload)
        except RuntimeError:
            logger.exception(f"Could not emit {event} to {room}")
            return
        if result.degraded:
            logger.warning(f"Emitted {event} to {room} locally only")

    async def create_post(self, author: UserDB, data: PostCreate) -> Payload:
        post = await self.posts.create(author.uuid, data)
        await self.session.commit()
        await self._invalidate(post.id)
        logger.info(f"Post {post.id} created by {author.uuid}")
        return dump(post_summary(post, author, sorted(data.tags)))

    async def update_post(self, post_id: UUID, user: UserDB, data: PostUpdate) -> Payload:
        """
        Update a post owned by ``user``.

        Raises:
            RecordNotFoundError: If the post does not exist.
            PostPermissionError: If ``user`` is not the author.
        """
        post = await self._get_post_or_404(post_id)
        if post.author_id != user.uuid:
            mssg = "Not authorized to update this post"
            raise PostPermissionError(mssg)

        post = await self.posts.update(post, data)
        tags = await self.posts.tags_for([post.id])
        await self.session.commit()
        await self._invalidate(post.id)

        payload = dump(post_summary(post, user, tags.get(post.id, [])))
        await self._emit(post_room(post.id), "update:post", payload)
        return payload

    async def delete_post(self, post_id: UUID, user: UserDB) -> None:
        post = await self._get_post_or_404(post_id)
        if post.author_id != user.uuid:
            mssg = "Not authorized to delete this post"
            raise PostPermissionError(mssg)

        await self.posts.delete(post)
        await self.session.commit()
        await self._invalidate(post_id)
        logger.info(f"Post {post_id} deleted by {user.uuid}")

    async def add_comment(self, post_id: UUID, author: UserDB, data: CommentCreate) -> Payload:
        """
        Comment on a post and notify its subscribers and its author.

        The post author gets a ``notification`` in their user room unless
        they wrote the comment themselves.
        """
        post = await self._get_post_or_404(post_id)
        comment = await self.comments.create(post.id, author.uuid, data.content)
        await self.session.commit()
        # Post detail embeds its comments
        await self.cache.delete(post_key(post.id))

        payload = dump(comment_response(comment, author))
        await self._emit(post_room(post.id), "new:comment", payload)
        if post.author_id != author.uuid:
            await self._emit(
                user_room(post.author_id),
                "notification",
                {
                    "type": "new-comment",
                    "postId": str(post.id),
                    "commentId": str(comment.id),
                    "message": f"{author.display_name or author.username} commented on your post",
                },
            )
        return payload

    async def delete_comment(self, post_id: UUID, comment_id: UUID, user: UserDB) -> None:
        comment = await self.comments.get_by_id(comment_id)
        if comment is None or comment.post_id != post_id:
            mssg = "Comment not found"
            raise RecordNotFoundError(mssg)
        if comment.author_id != user.uuid:
            mssg = "Not authorized to delete this comment"
            raise PostPermissionError(mssg)

        await self.comments.delete(comment)
        await self.session.commit()
        await self.cache.delete(post_key(post_id))

    async def list_tags(self) -> list[Payload]:
        counts = await self.posts.tag_counts()
        return [
            TagResponse(name=name, post_count=count).model_dump(by_alias=True)
            for name, count in counts
        ]
