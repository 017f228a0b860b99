"""
Cache key builders for the application.

This module contains functions to generate consistent cache keys for posts,
ensuring that read handlers and mutation handlers agree on the namespace used
for lookups and invalidation. The namespace is shared with other deployments
reading the same store, so the formats here must not change.
"""

from uuid import UUID

POST_LISTINGS_PATTERN = "posts:page:*"


def post_key(post_id: UUID | str) -> str:
    """Generate cache key for a single post."""
    return f"posts:{post_id}"


def post_list_key(page: int, limit: int, tag: str | None = None) -> str:
    """Generate cache key for one page of the post listing. Tags match case-insensitively."""
    key = f"posts:page:{page}:limit:{limit}"
    if tag:
        key = f"{key}:tag:{tag.lower()}"
    return key
