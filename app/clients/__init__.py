# app/clients/__init__.py

"""Shared key-value store clients."""

from app.clients.memory_client import MemoryClient
from app.clients.protocols import KeyValueStoreProtocol
from app.clients.redis_client import RedisClient

__all__ = ["KeyValueStoreProtocol", "MemoryClient", "RedisClient"]
