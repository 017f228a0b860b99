# app/managers/rate_limiter.py

"""Fixed-window admission control backed by the shared store, plus slowapi route limits."""

from asyncio import timeout
from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from time import time
from typing import Any, cast

from fastapi import Request
from fastapi.responses import ORJSONResponse
from redis.exceptions import RedisError
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.status import HTTP_429_TOO_MANY_REQUESTS

from app.clients.protocols import KeyValueStoreProtocol
from app.clients.redis_client import RedisClient
from app.configs import RATE_LIMIT_MESSAGE, LimiterConfig, RateLimitConfig, file_logger
from app.errors import BASE_EXCEPTION, RateLimiterUnavailableError, error_body
from app.utils.helpers import host

logger = file_logger(getLogger(__name__))

STORE_ERRORS = (RedisError, *BASE_EXCEPTION)


def get_identifier(request: Request) -> str:
    """
    Get unique identifier for rate limiting.

    Uses API key from header if available, otherwise falls back to IP address.

    Args:
        request: FastAPI request object.

    Returns:
        Unique identifier string.
    """
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return f"apikey:{api_key}"

    remote_address = get_remote_address(request)
    return f"ip:{remote_address}"


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    """Outcome of one admission check."""

    allowed: bool
    count: int
    limit: int
    remaining: int
    reset_at: int
    degraded: bool = False

    def retry_after(self, now: float) -> int:
        """Seconds until the current window closes, never less than one."""
        return max(1, int(self.reset_at - now))

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


class RateLimiter:
    """
    Fixed-window request counter per client identity.

    Windows are aligned to wall-clock multiples of ``window_seconds``. Each
    check is a single atomic increment on the store that also pins the key's
    expiry to the end of its window, so concurrent requests from one client
    in any number of processes can never both observe a pre-ceiling count.

    When the store is unreachable or slow the check either admits the request
    (``fail_open``, result marked ``degraded``) or raises
    ``RateLimiterUnavailableError``.
    """

    def __init__(
        self,
        store: KeyValueStoreProtocol,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time,
    ) -> None:
        self.store = store
        self.config = config or RateLimitConfig()
        self._clock = clock

    @property
    def limit(self) -> int:
        return self.config.requests

    @property
    def window(self) -> int:
        return self.config.window_seconds

    def now(self) -> float:
        return self._clock()

    def window_start(self, now: float) -> int:
        return int(now // self.window) * self.window

    def _key(self, client_key: str, window_start: int) -> str:
        return f"{self.config.key_prefix}:{client_key}:{window_start}"

    async def hit(self, client_key: str) -> RateLimitResult:
        """
        Count one request for ``client_key`` and decide whether to admit it.

        Raises:
            RateLimiterUnavailableError: If the store failed and the policy is fail-closed.
        """
        start = self.window_start(self.now())
        reset_at = start + self.window
        try:
            async with timeout(self.config.operation_timeout):
                count = await self.store.incr_window(self._key(client_key, start), reset_at)
        except STORE_ERRORS as e:
            detail = str(e) or type(e).__name__
            if not self.config.fail_open:
                logger.error(f"Rate limiter store unavailable, rejecting {client_key}: {detail}")
                raise RateLimiterUnavailableError from e
            logger.warning(f"Rate limiter store unavailable, admitting {client_key}: {detail}")
            return RateLimitResult(
                allowed=True,
                count=0,
                limit=self.limit,
                remaining=self.limit,
                reset_at=reset_at,
                degraded=True,
            )

        return RateLimitResult(
            allowed=count <= self.limit,
            count=count,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset_at=reset_at,
        )

    async def reset(self, client_key: str) -> bool:
        """
        Clear the current window's counter for one client.

        Raises:
            RateLimiterUnavailableError: If the store cannot be reached.
        """
        key = self._key(client_key, self.window_start(self.now()))
        try:
            async with timeout(self.config.operation_timeout):
                deleted = await self.store.delete(key)
        except STORE_ERRORS as e:
            logger.error(f"Rate limit reset for {client_key} failed: {str(e) or type(e).__name__}")
            raise RateLimiterUnavailableError from e
        logger.info(f"Rate limit window reset for {client_key}")
        return bool(deleted)

    async def status(self) -> dict[str, Any]:
        """Report the configured policy and whether the store answers."""
        try:
            async with timeout(self.config.operation_timeout):
                healthy = await self.store.ping()
        except STORE_ERRORS:
            healthy = False
        return {
            "backend": "redis" if isinstance(self.store, RedisClient) else "in-memory",
            "enabled": self.config.enabled,
            "backend_healthy": healthy,
            "limit": self.limit,
            "window_seconds": self.window,
            "fail_open": self.config.fail_open,
        }


limiter = Limiter(**LimiterConfig().model_dump(), key_func=get_identifier)


async def rate_limit_exceeded_handler(
    request: Request,
    exc: Exception,
) -> ORJSONResponse:
    """
    Handle per-route slowapi limit violations with the standard 429 body.

    Args:
        request: FastAPI request object.
        exc: RateLimitExceeded exception.

    Returns:
        JSON response with error details.
    """
    http_exc = cast(RateLimitExceeded, exc)
    response = _rate_limit_exceeded_handler(request, http_exc)
    logger.warning(
        f"Route limit {http_exc.detail} exceeded for ip: {host(request)} "
        f"for endpoint {request.url.path}",
    )
    retry_after = response.headers.get("retry-after")
    return ORJSONResponse(
        status_code=HTTP_429_TOO_MANY_REQUESTS,
        content=error_body(RATE_LIMIT_MESSAGE),
        headers={"Retry-After": retry_after} if retry_after else None,
    )
