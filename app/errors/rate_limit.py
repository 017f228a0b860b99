"""Rate limiting errors."""

from logging import getLogger

from starlette.status import HTTP_429_TOO_MANY_REQUESTS, HTTP_503_SERVICE_UNAVAILABLE

from app.configs import RATE_LIMIT_MESSAGE, RATE_LIMITER_UNAVAILABLE_MESSAGE, file_logger
from app.errors.base import BaseAppError, create_exception_handler

logger = file_logger(getLogger(__name__))


class RateLimitExceededError(BaseAppError):
    """Raised when a client exceeds its request ceiling for the current window."""

    def __init__(
        self,
        detail: str = RATE_LIMIT_MESSAGE,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(detail, HTTP_429_TOO_MANY_REQUESTS)
        self.headers = headers or {}


class RateLimiterUnavailableError(BaseAppError):
    """Raised when the limiter store is unreachable and the policy is fail-closed."""

    def __init__(self, detail: str = RATE_LIMITER_UNAVAILABLE_MESSAGE) -> None:
        super().__init__(detail, HTTP_503_SERVICE_UNAVAILABLE)
        self.headers = {"Retry-After": "30"}


rate_limit_exception_handler = create_exception_handler(logger)
