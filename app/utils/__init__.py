"""Utility helper functions."""

from app.utils.cache_keys import POST_LISTINGS_PATTERN, post_key, post_list_key
from app.utils.helpers import get_summary, host, today_str, total_pages

__all__ = [
    "POST_LISTINGS_PATTERN",
    "get_summary",
    "host",
    "post_key",
    "post_list_key",
    "today_str",
    "total_pages",
]
