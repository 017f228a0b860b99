"""Pytest configuration and fixtures for cache tests."""

from asyncio import sleep
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.clients import MemoryClient
from app.configs import CacheConfig
from app.managers.cache_manager import CacheManager


@pytest.fixture
def cache_config() -> CacheConfig:
    return CacheConfig(default_ttl=300, operation_timeout=0.2, scan_batch_size=2)


@pytest.fixture
async def cache_manager(
    memory_client: MemoryClient,
    cache_config: CacheConfig,
) -> AsyncGenerator[CacheManager]:
    """Cache manager over a fresh in-memory store."""
    yield CacheManager(memory_client, cache_config)


@pytest.fixture
def failing_store() -> MagicMock:
    """A store whose every operation fails like an unreachable Redis."""
    store = MagicMock()
    error = RedisConnectionError("Connection refused")
    for name in ("get", "set", "delete", "ping", "info"):
        setattr(store, name, AsyncMock(side_effect=error))

    async def scan_iter(pattern: str, count: int = 100) -> AsyncGenerator[str]:
        raise error
        yield  # pragma: no cover

    store.scan_iter = scan_iter
    return store


@pytest.fixture
def slow_store() -> MagicMock:
    """A store that never answers within the operation timeout."""

    async def stall(*args: object, **kwargs: object) -> None:
        await sleep(5)

    store = MagicMock()
    for name in ("get", "set", "delete"):
        setattr(store, name, AsyncMock(side_effect=stall))
    return store
