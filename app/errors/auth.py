"""Authentication errors."""

from logging import getLogger

from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from app.configs import file_logger
from app.errors.base import BaseAppError, create_exception_handler

logger = file_logger(getLogger(__name__))

# Application close code for WebSocket authentication failures (4000-4999 range).
WS_AUTH_FAILED = 4401


class UserAuthenticationError(BaseAppError):
    """Base class for authentication errors."""

    def __init__(
        self,
        detail: str = "Could not validate credentials",
        status_code: int = HTTP_401_UNAUTHORIZED,
    ) -> None:
        super().__init__(detail, status_code)
        self.headers = {"WWW-Authenticate": "Bearer"}


class ConnectionAuthError(UserAuthenticationError):
    """Raised when a real-time connection fails its handshake."""

    close_code = WS_AUTH_FAILED

    def __init__(self, detail: str = "Authentication error") -> None:
        super().__init__(detail)


class PostPermissionError(BaseAppError):
    """Raised when a user modifies a resource they do not own."""

    def __init__(self, detail: str = "Not authorized to modify this post") -> None:
        super().__init__(detail, HTTP_403_FORBIDDEN)


auth_exception_handler = create_exception_handler(logger)
