# app/managers/cache_manager.py
"""Read-through cache over the shared key-value store."""

from asyncio import Lock as AsyncLock
from asyncio import timeout
from collections import OrderedDict
from collections.abc import Awaitable
from logging import DEBUG, getLogger
from threading import Lock as ThreadLock
from typing import Any, TypeVar

from redis.exceptions import RedisError

from app.clients.protocols import KeyValueStoreProtocol
from app.clients.redis_client import RedisClient
from app.configs import CacheConfig, file_logger
from app.data import CacheStatistics
from app.errors import BASE_EXCEPTION, CacheExceptionError
from app.managers.cache_types import CacheLoader, CacheOutcome, CacheResult, ReadThroughResult
from app.utils.cache_serializer import (
    compress,
    decompress,
    deserialize,
    do_compress,
    serialize,
)

logger = file_logger(getLogger(__name__))

STORE_ERRORS = (RedisError, CacheExceptionError, *BASE_EXCEPTION)

T = TypeVar("T")


class CacheManager:
    """
    Cache manager for the shared store with read-through support.

    Every store call is bounded by ``operation_timeout``. A failure or a
    timeout never reaches the caller: it comes back as a ``DEGRADED``
    result, is logged at WARNING and is counted in the statistics.

    Features:
        - Request coalescing (Thundering Herd protection)
        - LRU-based lock eviction to prevent memory leaks
        - Pattern invalidation with batched deletes
        - Compression for large values
        - Statistics tracking
    """

    # Maximum number of locks to keep in memory (LRU eviction)
    MAX_LOCKS: int = 10_000

    def __init__(
        self,
        store: KeyValueStoreProtocol,
        config: CacheConfig | None = None,
    ) -> None:
        """
        Initialize cache manager.

        Args:
            store: Connected key-value store shared with the other components.
            config: Cache settings; read from the environment when omitted.
        """
        self.store = store
        self.cache_config = config or CacheConfig()
        self.statistics = CacheStatistics()

        # Locks for request coalescing, kept in LRU order
        self._locks: OrderedDict[str, AsyncLock] = OrderedDict()
        self._locks_lock = ThreadLock()

    @property
    def backend(self) -> str:
        return "redis" if isinstance(self.store, RedisClient) else "in-memory"

    def _build_key(self, key: str) -> str:
        """Build full cache key with the optional prefix."""
        prefix = self.cache_config.key_prefix
        return f"{prefix}:{key}" if prefix else key

    async def _bounded(self, operation: Awaitable[T]) -> T:
        async with timeout(self.cache_config.operation_timeout):
            return await operation

    def _degraded(self, action: str, key: str, exc: BaseException) -> CacheResult[T]:
        detail = str(exc) or type(exc).__name__
        logger.warning(f"Cache {action} degraded for key {key}: {detail}")
        self.statistics.record_degraded()
        return CacheResult(CacheOutcome.DEGRADED, error=detail)

    async def get(self, key: str) -> CacheResult[Any]:
        """
        Get a value from cache.

        Returns ``HIT`` with the value, ``MISS`` when absent, or ``DEGRADED``
        when the store is unavailable or the stored payload is unreadable.
        """
        return await self._read(key)

    async def _read(self, key: str, *, count_miss: bool = True) -> CacheResult[Any]:
        full_key = self._build_key(key)
        if logger.isEnabledFor(DEBUG):
            logger.debug("Getting from cache: %s", full_key)
        try:
            cached_value = await self._bounded(self.store.get(full_key))
            if cached_value is None:
                if count_miss:
                    self.statistics.record_miss()
                return CacheResult(CacheOutcome.MISS)
            value = deserialize(decompress(cached_value))
        except STORE_ERRORS as e:
            return self._degraded("get", full_key, e)

        self.statistics.record_hit(len(cached_value.encode("utf-8")))
        return CacheResult(CacheOutcome.HIT, value)

    async def set(self, key: str, value: object, ttl: int | None = None) -> CacheResult[Any]:
        """
        Store a value.

        Args:
            key: Cache key.
            value: Any orjson-serializable value.
            ttl: Seconds until expiry, capped at ``max_ttl``. ``None`` stores
                the entry until it is deleted.
        """
        full_key = self._build_key(key)
        ex = min(ttl, self.cache_config.max_ttl) if ttl is not None else None
        if ex is not None and ex <= 0:
            mssg = f"TTL must be positive, got {ttl}"
            raise ValueError(mssg)

        try:
            serialized = serialize(value)
            if self.cache_config.compression_enabled and do_compress(
                serialized,
                self.cache_config.compression_threshold,
            ):
                serialized = compress(serialized)
            await self._bounded(self.store.set(full_key, serialized, ex=ex))
        except STORE_ERRORS as e:
            return self._degraded("set", full_key, e)

        self.statistics.record_set(len(serialized.encode("utf-8")))
        return CacheResult(CacheOutcome.STORED, value)

    async def delete(self, *keys: str) -> CacheResult[int]:
        """Delete keys from cache. Deleting an absent key is not an error."""
        full_keys = [self._build_key(key) for key in keys]
        if not full_keys:
            return CacheResult(CacheOutcome.DELETED, 0)
        try:
            deleted_count = await self._bounded(self.store.delete(*full_keys))
        except STORE_ERRORS as e:
            return self._degraded("delete", ", ".join(full_keys), e)

        if deleted_count:
            self.statistics.record_delete(deleted_count)
        return CacheResult(CacheOutcome.DELETED, deleted_count)

    async def invalidate_pattern(self, pattern: str) -> CacheResult[int]:
        """
        Delete every key matching a glob pattern.

        Keys are resolved with SCAN and deleted in batches. Keys written after
        the scan has passed them survive until their TTL expires.
        """
        full_pattern = self._build_key(pattern)
        batch_size = self.cache_config.scan_batch_size
        deleted_total = 0
        keys_batch: list[str] = []
        try:
            async with timeout(self.cache_config.operation_timeout):
                async for key in self.store.scan_iter(full_pattern, count=batch_size):
                    keys_batch.append(key)
                    if len(keys_batch) >= batch_size:
                        deleted_total += await self.store.delete(*keys_batch)
                        keys_batch = []

                if keys_batch:
                    deleted_total += await self.store.delete(*keys_batch)
        except STORE_ERRORS as e:
            return self._degraded("invalidate", full_pattern, e)

        self.statistics.record_invalidation(deleted_total)
        if deleted_total and logger.isEnabledFor(DEBUG):
            logger.debug("Invalidated %d keys for pattern '%s'.", deleted_total, full_pattern)
        return CacheResult(CacheOutcome.DELETED, deleted_total)

    def _get_or_create_lock(self, key: str) -> AsyncLock:
        """
        Get or create a coalescing lock for a key.

        Uses LRU eviction to prevent unbounded lock growth.
        """
        with self._locks_lock:
            if key in self._locks:
                self._locks.move_to_end(key)
                return self._locks[key]

            while len(self._locks) >= self.MAX_LOCKS:
                self._locks.popitem(last=False)

            lock = AsyncLock()
            self._locks[key] = lock
            return lock

    async def get_or_set(
        self,
        key: str,
        loader: CacheLoader,
        ttl: int | None = None,
    ) -> ReadThroughResult[Any]:
        """
        Serve from cache, or run ``loader`` and cache its result.

        Concurrent misses on the same key in this process run ``loader`` once;
        the others wait and read the freshly stored entry. Exceptions raised
        by ``loader`` propagate and nothing is cached. A ``None`` result is
        returned but never stored.
        """
        cached = await self.get(key)
        if cached.hit:
            return ReadThroughResult(cached.value, "cache")

        degraded = cached.degraded
        async with self._get_or_create_lock(self._build_key(key)):
            # Another request may have filled the entry while we waited
            if not degraded:
                cached = await self._read(key, count_miss=False)
                if cached.hit:
                    return ReadThroughResult(cached.value, "cache")
                degraded = cached.degraded

            value = await loader()
            if value is not None:
                stored = await self.set(key, value, ttl)
                degraded = degraded or stored.degraded

        return ReadThroughResult(value, "database", degraded=degraded)

    async def ping(self) -> bool:
        """Ping the cache server."""
        try:
            return await self._bounded(self.store.ping())
        except STORE_ERRORS:
            logger.warning("Cache ping failed")
            return False

    async def health_check(self) -> dict[str, Any]:
        """
        Perform a health check of the store.

        Returns:
            Dictionary with backend, status, statistics and store details.
        """
        result: dict[str, Any] = {
            "backend": self.backend,
            "statistics": self.get_statistics(),
        }

        try:
            if isinstance(self.store, RedisClient):
                result.update(await self._bounded(self.store.health_check()))
            else:
                result["status"] = "healthy" if await self.ping() else "unhealthy"
                result["info"] = await self._bounded(self.store.info())
        except STORE_ERRORS as e:
            result["status"] = "unhealthy"
            result["error"] = str(e) or type(e).__name__

        return result

    def get_statistics(self) -> dict[str, int | float | str]:
        """Get cache statistics."""
        return self.statistics.to_dict()

    def reset_statistics(self) -> None:
        """Reset cache statistics."""
        self.statistics.reset()
        logger.info("Cache statistics reset.")
