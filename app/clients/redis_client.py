# app/clients/redis_client.py
"""Redis client module for the shared key-value store."""

from collections.abc import AsyncGenerator, AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from logging import getLogger
from time import perf_counter
from typing import Any

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.client import PubSub
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.configs import file_logger, pool_kwargs

logger = file_logger(getLogger(__name__))

PUBSUB_POLL_TIMEOUT = 1.0  # seconds


class RedisClient:
    """Async Redis client wrapper with connection pooling."""

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        """Initialize Redis client."""
        self.config = config if config is not None else pool_kwargs
        self._pool: ConnectionPool | None = None
        self._redis: Redis | None = None

    async def connect(self) -> None:
        """Establish Redis connection pool."""
        try:
            self._pool = ConnectionPool(**self.config)
            self._redis = Redis(connection_pool=self._pool)
            # Test connection with ping
            ping_result = self._redis.ping()
            result = await ping_result if isinstance(ping_result, Awaitable) else ping_result
            if not result:
                mssg = "Redis ping returned False"
                raise RedisConnectionError(mssg)
            logger.info("Redis connection successful. Shared store is using Redis.")
        except (ConnectionError, RedisTimeoutError, RedisError) as e:
            logger.exception("Failed to connect to Redis")
            mssg = f"Cannot connect to Redis at {self.config.get('host')}:{self.config.get('port')}"
            raise RedisConnectionError(mssg) from e

    async def disconnect(self) -> None:
        """Close Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis connection closed.")
        if self._pool is not None:
            await self._pool.aclose()
            self._pool = None

    @property
    def client(self) -> Redis:
        """Get Redis client instance."""
        if self._redis is None:
            mssg = "Redis client not initialized. Call connect() first."
            raise RuntimeError(mssg)
        return self._redis

    async def get(self, key: str) -> str | None:
        """Get value from store."""
        try:
            return await self.client.get(key)
        except RedisError as e:
            logger.exception(f"Failed to get key {key}")
            mssg = f"Store get operation failed for key {key}: {e}"
            raise RedisConnectionError(mssg) from e

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        """Set value in store."""
        try:
            return bool(await self.client.set(key, value, ex=ex))
        except RedisError as e:
            logger.exception(f"Failed to set key {key}")
            mssg = f"Store set operation failed for key {key}: {e}"
            raise RedisConnectionError(mssg) from e

    async def delete(self, *keys: str) -> int:
        """Delete keys from store."""
        if not keys:
            return 0
        try:
            return await self.client.delete(*keys)
        except RedisError as e:
            logger.exception("Failed to delete keys")
            mssg = f"Store delete operation failed for keys {keys}: {e}"
            raise RedisConnectionError(mssg) from e

    async def exists(self, *keys: str) -> int:
        """Check if keys exist in store."""
        try:
            return await self.client.exists(*keys)
        except RedisError as e:
            logger.exception("Failed to check key existence")
            mssg = f"Store exists operation failed for keys {keys}: {e}"
            raise RedisConnectionError(mssg) from e

    async def expire(self, key: str, seconds: int) -> bool:
        """Set expiration on key."""
        try:
            return bool(await self.client.expire(key, seconds))
        except RedisError as e:
            logger.exception(f"Failed to set expiration on {key}")
            mssg = f"Store expire operation failed for key {key}: {e}"
            raise RedisConnectionError(mssg) from e

    async def ttl(self, key: str) -> int:
        """Get remaining time to live."""
        try:
            return await self.client.ttl(key)
        except RedisError as e:
            logger.exception(f"Failed to get TTL for {key}")
            mssg = f"Store ttl operation failed for key {key}: {e}"
            raise RedisConnectionError(mssg) from e

    async def incr_window(self, key: str, expire_at: int) -> int:
        """
        Increment a counter and pin its absolute expiry in one round trip.

        INCR and EXPIREAT are queued in a MULTI/EXEC transaction so concurrent
        callers can never observe the same post-increment value.
        """
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                count, _ = await pipe.incr(key).expireat(key, expire_at).execute()
            return int(count)
        except RedisError as e:
            logger.exception(f"Failed to increment counter {key}")
            mssg = f"Store incr_window operation failed for key {key}: {e}"
            raise RedisConnectionError(mssg) from e

    async def flush_all(self) -> bool:
        """Flush current database."""
        try:
            return bool(await self.client.flushdb())
        except RedisError as e:
            logger.exception("Failed to flush database")
            mssg = f"Store flush operation failed: {e}"
            raise RedisConnectionError(mssg) from e

    async def ping(self) -> bool:
        """Ping Redis server."""
        try:
            ping_result = self.client.ping()
            if isinstance(ping_result, Awaitable):
                return bool(await ping_result)
        except RedisError as e:
            logger.exception("Failed to ping Redis")
            mssg = f"Store ping operation failed: {e}"
            raise RedisConnectionError(mssg) from e
        return bool(ping_result)

    async def info(self) -> dict[str, Any]:
        """Get Redis server info."""
        try:
            info = await self.client.info()
            return info if isinstance(info, dict) else {}
        except RedisError as e:
            logger.exception("Failed to get server info")
            mssg = f"Store info operation failed: {e}"
            raise RedisConnectionError(mssg) from e

    async def health_check(self) -> dict[str, Any]:
        """Ping the server and report latency with a few server statistics."""
        start = perf_counter()
        healthy = await self.ping()
        latency_ms = (perf_counter() - start) * 1000
        info = await self.info()
        return {
            "status": "healthy" if healthy else "unhealthy",
            "latency_ms": round(latency_ms, 2),
            "connected_clients": info.get("connected_clients"),
            "used_memory_human": info.get("used_memory_human"),
            "redis_version": info.get("redis_version"),
        }

    async def scan_iter(self, pattern: str, count: int = 100) -> AsyncGenerator[str]:
        """
        Yield keys matching the pattern memory-efficiently.

        Uses the cursor-based SCAN command, never KEYS.
        """
        cursor = 0
        while True:
            try:
                cursor, keys = await self.client.scan(cursor, match=pattern, count=count)
            except RedisError as e:
                logger.exception(f"Failed to scan keys with pattern {pattern}")
                mssg = f"Store scan_iter operation failed for pattern {pattern}: {e}"
                raise RedisConnectionError(mssg) from e

            for key in keys:
                yield key.decode("utf-8") if isinstance(key, bytes) else key

            # If cursor is 0, iteration is complete
            if cursor == 0:
                break

    async def publish(self, channel: str, message: str) -> int:
        """Publish a message on a pub/sub channel."""
        try:
            return await self.client.publish(channel, message)
        except RedisError as e:
            logger.exception(f"Failed to publish to channel {channel}")
            mssg = f"Store publish operation failed for channel {channel}: {e}"
            raise RedisConnectionError(mssg) from e

    @asynccontextmanager
    async def subscribe(self, channel: str) -> AsyncGenerator[AsyncIterator[str]]:
        """
        Subscribe to a pub/sub channel.

        The subscription is active once the context is entered; iterate the
        yielded object to receive messages.
        """
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(channel)
        except RedisError as e:
            await pubsub.aclose()
            logger.exception(f"Failed to subscribe to channel {channel}")
            mssg = f"Store subscribe operation failed for channel {channel}: {e}"
            raise RedisConnectionError(mssg) from e

        try:
            yield self._listen(pubsub, channel)
        finally:
            try:
                await pubsub.unsubscribe(channel)
            except RedisError:
                logger.warning(f"Failed to unsubscribe from channel {channel}")
            await pubsub.aclose()

    async def _listen(self, pubsub: PubSub, channel: str) -> AsyncGenerator[str]:
        while True:
            try:
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=PUBSUB_POLL_TIMEOUT,
                )
            except RedisError as e:
                logger.exception(f"Failed to read from channel {channel}")
                mssg = f"Store subscription failed for channel {channel}: {e}"
                raise RedisConnectionError(mssg) from e

            if message is None or message.get("type") != "message":
                continue
            data = message["data"]
            yield data.decode("utf-8") if isinstance(data, bytes) else data
