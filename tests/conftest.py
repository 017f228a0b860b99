# tests/conftest.py
"""Root pytest configuration and shared fixtures."""

import os

# Settings are read on first import of the app, so the environment must be set here
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_ENABLED"] = "false"
os.environ["LOG_TO_FILE"] = "false"
os.environ["ENVIRONMENT"] = "test"

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402
from datetime import timedelta  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402

from app.clients import MemoryClient  # noqa: E402
from app.db import async_session_maker  # noqa: E402
from app.managers.token_manager import create_access_token  # noqa: E402
from app.models import UserDB  # noqa: E402
from app.repositories import UserRepository  # noqa: E402


async def create_user(username: str, display_name: str | None = None) -> UserDB:
    """Persist a user in the test database."""
    async with async_session_maker() as session:
        user = await UserRepository(session).create(
            username=username,
            email=f"{username}@example.com",
            display_name=display_name,
        )
        await session.commit()
        return user


def bearer(user: UserDB) -> dict[str, str]:
    """Authorization header for a user."""
    token = create_access_token(
        user_id=user.uuid,
        username=user.username,
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


def unique_name(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:8]}"


@pytest.fixture
async def memory_client() -> AsyncGenerator[MemoryClient]:
    """
    Create an in-memory store for testing.

    Use this fixture for store operations without a Redis dependency.
    """
    client = MemoryClient()
    yield client
    await client.close()


@pytest.fixture
def make_user() -> Callable[..., Awaitable[UserDB]]:
    """Factory persisting users with unique names."""

    async def factory(prefix: str = "user", display_name: str | None = None) -> UserDB:
        return await create_user(unique_name(prefix), display_name)

    return factory


@pytest.fixture
def auth_for() -> Callable[[UserDB], dict[str, str]]:
    """Factory building bearer headers for a user."""
    return bearer
