"""Tests for the global fixed-window admission middleware."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from app.configs import RATE_LIMIT_MESSAGE, RATE_LIMITER_UNAVAILABLE_MESSAGE, RateLimitConfig
from app.main import app
from app.managers.rate_limiter import RateLimiter


@pytest.fixture
def tight_limiter(client: AsyncClient) -> RateLimiter:
    """Two requests per window over the application's store."""
    rate_limiter = RateLimiter(app.state.store, RateLimitConfig(requests=2, window_seconds=60))
    app.state.rate_limiter = rate_limiter
    return rate_limiter


@pytest.fixture
def broken_store() -> MagicMock:
    store = MagicMock()
    store.incr_window = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
    return store


async def test_headers_on_admitted_requests(
    client: AsyncClient,
    tight_limiter: RateLimiter,
) -> None:
    response = await client.get("/api/tags")

    assert response.status_code == 200
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert response.headers["X-RateLimit-Remaining"] == "1"
    assert int(response.headers["X-RateLimit-Reset"]) % 60 == 0


async def test_over_limit_is_rejected(client: AsyncClient, tight_limiter: RateLimiter) -> None:
    for _ in range(2):
        assert (await client.get("/api/tags")).status_code == 200

    response = await client.get("/api/tags")

    assert response.status_code == 429
    assert response.json() == {"status": "error", "message": RATE_LIMIT_MESSAGE}
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert 1 <= int(response.headers["Retry-After"]) <= 60


async def test_identities_are_counted_separately(
    client: AsyncClient,
    tight_limiter: RateLimiter,
) -> None:
    for _ in range(3):
        await client.get("/api/tags", headers={"X-API-Key": "first"})

    response = await client.get("/api/tags", headers={"X-API-Key": "second"})
    assert response.status_code == 200


async def test_health_is_exempt(client: AsyncClient, tight_limiter: RateLimiter) -> None:
    for _ in range(5):
        response = await client.get("/health")
        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers


async def test_fail_closed_returns_503(client: AsyncClient, broken_store: MagicMock) -> None:
    app.state.rate_limiter = RateLimiter(broken_store, RateLimitConfig(fail_open=False))

    response = await client.get("/api/tags")

    assert response.status_code == 503
    assert response.json() == {"status": "error", "message": RATE_LIMITER_UNAVAILABLE_MESSAGE}
    assert response.headers["Retry-After"] == "30"


async def test_fail_open_admits(client: AsyncClient, broken_store: MagicMock) -> None:
    app.state.rate_limiter = RateLimiter(broken_store, RateLimitConfig(fail_open=True))

    response = await client.get("/api/tags")

    assert response.status_code == 200


async def test_disabled_limiter_skips_counting(client: AsyncClient) -> None:
    app.state.rate_limiter = RateLimiter(
        app.state.store,
        RateLimitConfig(enabled=False, requests=1),
    )

    for _ in range(3):
        response = await client.get("/api/tags")
        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers
