# app/middleware/middleware.py
"""
Middleware components for the blog API.

This module contains middleware for admission control, security headers,
request logging and CORS handling. It also contains the lifespan handler
that builds the shared store and the components that depend on it.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from logging import getLogger
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import ConnectionError as RedisConnectionError
from rich.traceback import install
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.clients import KeyValueStoreProtocol, MemoryClient, RedisClient
from app.configs import file_logger, settings
from app.db import close_db, init_db
from app.errors import (
    RateLimiterUnavailableError,
    RateLimitExceededError,
    rate_limit_exception_handler,
)
from app.managers.cache_manager import CacheManager
from app.managers.notification_hub import NotificationHub
from app.managers.rate_limiter import RateLimiter, get_identifier
from app.monitoring import bind_request_id, clear_context
from app.utils.helpers import get_summary, host

logger = file_logger(getLogger(__name__))

install()


async def open_store() -> KeyValueStoreProtocol:
    """
    Connect the shared key-value store.

    Falls back to the in-process store when Redis is disabled or unreachable;
    counters, cache entries and notifications are then local to this worker.
    """
    if settings.REDIS_ENABLED:
        redis_client = RedisClient()
        try:
            await redis_client.connect()
        except RedisConnectionError as e:
            logger.warning(f"Redis connection failed: {e}. Falling back to in-memory store.")
        else:
            return redis_client
    else:
        logger.info("Redis disabled. Using in-memory store.")

    memory_client = MemoryClient()
    await memory_client.start_lifecycle()
    return memory_client


async def close_store(store: KeyValueStoreProtocol) -> None:
    if isinstance(store, RedisClient):
        await store.disconnect()
    elif isinstance(store, MemoryClient):
        await store.close()


async def start_services(app: FastAPI) -> None:
    """Create the database schema, open the store and wire every component to it."""
    await init_db()

    store = await open_store()
    app.state.store = store
    app.state.cache_manager = CacheManager(store)
    app.state.rate_limiter = RateLimiter(store)

    hub = NotificationHub(store)
    await hub.start()
    app.state.notification_hub = hub
    logger.info("Services initialized successfully")


async def stop_services(app: FastAPI) -> None:
    """Stop the hub, close the store and dispose of database connections."""
    await app.state.notification_hub.stop()
    await close_store(app.state.store)
    await close_db()
    logger.info("Services cleaned up successfully")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Manage application startup and shutdown events with service initialization."""
    logger.info(f"Starting {app.title}...")

    try:
        await start_services(app)
        logger.info("Services:")
        logger.info("  - Backend API: http://localhost:8000")
        logger.info("  - API Documentation: http://localhost:8000/docs")
        logger.info("  - Health Check: http://localhost:8000/health")
        logger.info("  - Notifications: ws://localhost:8000/ws")
    except Exception:
        logger.exception("Failed to initialize services")
        raise

    yield

    logger.info(f"Shutting down {app.title}...")
    try:
        await stop_services(app)
    except Exception:
        logger.exception("Error during service cleanup")


def configure_cors(app: FastAPI) -> None:
    """Configure CORS middleware for the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Cache",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Count the request against its client's window before any handler runs."""
        limiter: RateLimiter | None = getattr(request.app.state, "rate_limiter", None)
        if (
            limiter is None
            or not limiter.config.enabled
            or request.url.path.startswith(tuple(limiter.config.exempt_paths))
        ):
            return await call_next(request)

        client_key = get_identifier(request)
        try:
            result = await limiter.hit(client_key)
            if not result.allowed:
                logger.warning(
                    f"Rate limit exceeded for {client_key} ({result.count}/{result.limit}) "
                    f"on {request.method} {request.url.path}",
                )
                raise RateLimitExceededError(
                    headers={
                        **result.headers(),
                        "Retry-After": str(result.retry_after(limiter.now())),
                    },
                )
        # Exception handlers registered on the app do not wrap middleware
        except (RateLimitExceededError, RateLimiterUnavailableError) as e:
            return await rate_limit_exception_handler(request, e)

        response = await call_next(request)
        response.headers.update(result.headers())
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Log request summary and timing information."""

        start_time = perf_counter()
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        bind_request_id(request_id)

        summary = get_summary(request)
        route_info = summary or f"{request.method} {request.url.path}"
        logger.info(f"Request: {route_info}, from ip: {host(request)}")

        try:
            response = await call_next(request)
        finally:
            clear_context()
        duration = perf_counter() - start_time

        logger.info(
            f"Response: {response.status_code} for {request.method} {request.url.path} "
            f"in {duration:.2f}s",
        )
        response.headers["X-Request-ID"] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Add security headers to all responses."""

        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response
