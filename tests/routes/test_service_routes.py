"""Tests for the health, cache, limiter and notification status endpoints."""

from collections.abc import Callable
from typing import TypeAlias
from unittest.mock import AsyncMock, MagicMock

from httpx import AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from app.configs import RATE_LIMITER_UNAVAILABLE_MESSAGE, RateLimitConfig
from app.main import app
from app.managers.rate_limiter import RateLimiter
from app.models import UserDB

AuthFactory: TypeAlias = Callable[[UserDB], dict[str, str]]


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["version"] == "1.0.0"
    assert body["cache"]["backend"] == "in-memory"
    assert body["cache"]["status"] == "healthy"
    assert body["rate_limiter"]["backend_healthy"] is True
    assert body["notifications"] == {"distributed": True, "connections": 0, "rooms": 0}


async def test_security_and_request_headers(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-ID": "trace-me"})

    assert response.headers["X-Request-ID"] == "trace-me"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestCacheRoutes:
    async def test_stats_track_reads(self, client: AsyncClient) -> None:
        await client.get("/api/posts")
        await client.get("/api/posts")

        response = await client.get("/cache/stats")

        assert response.status_code == 200
        stats = response.json()["data"]
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    async def test_ping(self, client: AsyncClient) -> None:
        response = await client.get("/cache/ping")

        assert response.status_code == 200
        assert response.json() == {
            "status": "success",
            "message": "Cache server is reachable",
            "backend": "in-memory",
        }

    async def test_reset_stats_requires_auth(self, client: AsyncClient) -> None:
        assert (await client.post("/cache/reset-stats")).status_code == 401

    async def test_reset_stats(
        self,
        client: AsyncClient,
        reader: UserDB,
        auth_for: AuthFactory,
    ) -> None:
        await client.get("/api/posts")

        response = await client.post("/cache/reset-stats", headers=auth_for(reader))

        assert response.status_code == 200
        assert (await client.get("/cache/stats")).json()["data"]["misses"] == 0


class TestLimiterRoutes:
    async def test_status(self, client: AsyncClient) -> None:
        response = await client.get("/limiter/status")

        assert response.status_code == 200
        assert response.json() == {
            "backend": "in-memory",
            "enabled": True,
            "backend_healthy": True,
            "limit": 100,
            "window_seconds": 900,
            "fail_open": True,
        }

    async def test_reset_other_identity(
        self,
        client: AsyncClient,
        reader: UserDB,
        auth_for: AuthFactory,
    ) -> None:
        app.state.rate_limiter = RateLimiter(
            app.state.store,
            RateLimitConfig(requests=2, window_seconds=60),
        )
        exhausted = {"X-API-Key": "noisy"}
        for _ in range(3):
            await client.get("/api/tags", headers=exhausted)
        assert (await client.get("/api/tags", headers=exhausted)).status_code == 429

        response = await client.post(
            "/limiter/reset",
            json={"identifier": "apikey:noisy"},
            headers=auth_for(reader),
        )

        assert response.status_code == 200
        assert response.json() == {
            "message": "Rate limit reset for 'apikey:noisy'",
            "identifier": "apikey:noisy",
            "cleared": True,
        }
        assert (await client.get("/api/tags", headers=exhausted)).status_code == 200

    async def test_reset_during_store_outage(
        self,
        client: AsyncClient,
        reader: UserDB,
        auth_for: AuthFactory,
    ) -> None:
        store = MagicMock()
        store.incr_window = AsyncMock(return_value=1)
        store.delete = AsyncMock(side_effect=RedisConnectionError("Connection refused"))
        app.state.rate_limiter = RateLimiter(store, RateLimitConfig())

        response = await client.post(
            "/limiter/reset",
            json={"identifier": "apikey:noisy"},
            headers=auth_for(reader),
        )

        assert response.status_code == 503
        assert response.json() == {"status": "error", "message": RATE_LIMITER_UNAVAILABLE_MESSAGE}
        assert response.headers["Retry-After"] == "30"

    async def test_reset_requires_auth(self, client: AsyncClient) -> None:
        response = await client.post("/limiter/reset", json={})
        assert response.status_code == 401


async def test_notification_status(client: AsyncClient) -> None:
    response = await client.get("/notifications/status")
    assert response.json() == {"distributed": True, "connections": 0, "rooms": 0}
