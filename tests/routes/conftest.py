"""Pytest configuration and fixtures for HTTP route tests."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from app.main import app
from app.managers.rate_limiter import limiter
from app.models import UserDB


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient]:
    """
    Create async HTTP client for testing FastAPI endpoints.

    Runs the application lifespan so every test gets a fresh database and
    store, and disables the per-route slowapi limits.
    """
    limiter.enabled = False
    async with (
        LifespanManager(app),
        AsyncClient(base_url="http://test", transport=ASGITransport(app=app)) as ac,
    ):
        yield ac


@pytest.fixture
async def author(
    client: AsyncClient,
    make_user: Callable[..., Awaitable[UserDB]],
) -> UserDB:
    return await make_user("author", display_name="Ada Author")


@pytest.fixture
async def reader(
    client: AsyncClient,
    make_user: Callable[..., Awaitable[UserDB]],
) -> UserDB:
    return await make_user("reader")


@pytest.fixture
def create_post(
    client: AsyncClient,
    auth_for: Callable[[UserDB], dict[str, str]],
) -> Callable[..., Awaitable[dict[str, Any]]]:
    """Factory creating a post through the API and returning its data."""

    async def factory(user: UserDB, **overrides: Any) -> dict[str, Any]:  # noqa: ANN401
        payload = {
            "title": "Caching reads",
            "content": "Every write invalidates the exact key.",
            "published": True,
            "tags": ["redis", "fastapi"],
            **overrides,
        }
        response = await client.post("/api/posts", json=payload, headers=auth_for(user))
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return factory
