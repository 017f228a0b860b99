"""Tests for cache key builders, cache serialization and small helpers."""

from fnmatch import fnmatchcase
from uuid import UUID

import pytest

from app.errors import CacheDecompressionError, CacheDeserializationError
from app.utils import POST_LISTINGS_PATTERN, post_key, post_list_key, total_pages
from app.utils.cache_serializer import (
    COMPRESSION_MARKER,
    compress,
    decompress,
    deserialize,
    do_compress,
    serialize,
)


class TestCacheKeys:
    def test_post_key(self) -> None:
        post_id = UUID("12345678-1234-5678-1234-567812345678")
        assert post_key(post_id) == "posts:12345678-1234-5678-1234-567812345678"

    def test_list_key(self) -> None:
        assert post_list_key(2, 10) == "posts:page:2:limit:10"
        assert post_list_key(1, 10, "redis") == "posts:page:1:limit:10:tag:redis"

    def test_list_key_folds_tag_case(self) -> None:
        assert post_list_key(1, 10, "Redis") == post_list_key(1, 10, "redis")

    def test_listing_pattern_spares_single_posts(self) -> None:
        assert fnmatchcase(post_list_key(3, 25, "redis"), POST_LISTINGS_PATTERN)
        assert not fnmatchcase(post_key("42"), POST_LISTINGS_PATTERN)


class TestSerializer:
    def test_serialize_uses_str_for_unknown_types(self) -> None:
        post_id = UUID("12345678-1234-5678-1234-567812345678")
        assert deserialize(serialize({"id": post_id})) == {"id": str(post_id)}

    def test_deserialize_rejects_garbage(self) -> None:
        with pytest.raises(CacheDeserializationError):
            deserialize("{not json")

    def test_compression_is_marked(self) -> None:
        data = "x" * 1000
        packed = compress(data)
        assert packed.startswith(COMPRESSION_MARKER)
        assert decompress(packed) == data

    def test_plain_values_pass_through(self) -> None:
        assert decompress('{"a": 1}') == '{"a": 1}'

    def test_corrupt_compressed_value(self) -> None:
        with pytest.raises(CacheDecompressionError):
            decompress(COMPRESSION_MARKER + "bm90IGd6aXA=")

    def test_threshold(self) -> None:
        assert do_compress("x" * 11, threshold=10)
        assert not do_compress("x" * 10, threshold=10)


@pytest.mark.parametrize(
    ("total", "limit", "expected"),
    [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (5, 0, 0)],
)
def test_total_pages(total: int, limit: int, expected: int) -> None:
    assert total_pages(total, limit) == expected
