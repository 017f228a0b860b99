"""Protocol definitions for shared key-value store implementations."""

from collections.abc import AsyncIterator, Awaitable
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStoreProtocol(Protocol):
    """
    Protocol for the shared TTL-capable key-value store.

    Both RedisClient and MemoryClient conform to this protocol. The cache
    manager, the rate limiter and the notification hub only ever talk to the
    store through these methods.

    Note: All methods return Awaitable to be compatible with both sync-wrapped
    and native async implementations.
    """

    def get(self, key: str) -> Awaitable[str | None]:
        """Get a value from the store."""
        ...

    def set(self, key: str, value: str, ex: int | None = None) -> Awaitable[bool]:
        """Set a value with optional TTL in seconds."""
        ...

    def delete(self, *keys: str) -> Awaitable[int]:
        """Delete one or more keys."""
        ...

    def exists(self, *keys: str) -> Awaitable[int]:
        """Check if keys exist."""
        ...

    def expire(self, key: str, seconds: int) -> Awaitable[bool]:
        """Set an expiration time on a key."""
        ...

    def ttl(self, key: str) -> Awaitable[int]:
        """Get the remaining TTL of a key."""
        ...

    def incr_window(self, key: str, expire_at: int) -> Awaitable[int]:
        """Atomically increment a counter and pin its absolute expiry."""
        ...

    def scan_iter(self, pattern: str, count: int = 100) -> AsyncIterator[str]:
        """Yield keys matching a glob pattern."""
        ...

    def publish(self, channel: str, message: str) -> Awaitable[int]:
        """Publish a message to every subscriber of a channel."""
        ...

    def subscribe(self, channel: str) -> AbstractAsyncContextManager[AsyncIterator[str]]:
        """Subscribe to a channel; iterate the entered value to receive messages."""
        ...

    def ping(self) -> Awaitable[bool]:
        """Check if the store is reachable."""
        ...

    def info(self) -> Awaitable[dict[str, Any]]:
        """Get information about the store."""
        ...

    def flush_all(self) -> Awaitable[bool]:
        """Clear all entries from the store."""
        ...
