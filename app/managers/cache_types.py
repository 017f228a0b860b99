"""Type definitions for caching module."""

from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, Literal, TypeVar

CacheKey = str
CacheLoader = Callable[[], Coroutine[Any, Any, Any]]
CacheSource = Literal["cache", "database"]

T = TypeVar("T")


class CacheOutcome(StrEnum):
    """What a cache operation actually did."""

    HIT = "hit"
    MISS = "miss"
    STORED = "stored"
    DELETED = "deleted"
    DEGRADED = "degraded"


@dataclass(frozen=True, slots=True)
class CacheResult(Generic[T]):
    """
    Result of a single cache operation.

    ``DEGRADED`` means the store failed or timed out and the operation
    behaved as a miss (reads) or a no-op (writes). The caller decides
    whether that matters.
    """

    outcome: CacheOutcome
    value: T | None = None
    error: str | None = None

    @property
    def hit(self) -> bool:
        return self.outcome is CacheOutcome.HIT

    @property
    def degraded(self) -> bool:
        return self.outcome is CacheOutcome.DEGRADED


@dataclass(frozen=True, slots=True)
class ReadThroughResult(Generic[T]):
    """Value served by ``CacheManager.get_or_set`` and where it came from."""

    value: T
    source: CacheSource
    degraded: bool = False

    @property
    def cache_header(self) -> str:
        """Value for the ``X-Cache`` response header."""
        if self.degraded:
            return "BYPASS"
        return "HIT" if self.source == "cache" else "MISS"
