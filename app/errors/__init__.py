from app.errors.auth import (
    ConnectionAuthError,
    PostPermissionError,
    UserAuthenticationError,
    auth_exception_handler,
)
from app.errors.base import BASE_EXCEPTION, BaseAppError, create_exception_handler, error_body
from app.errors.cache import (
    CacheCompressionError,
    CacheDecompressionError,
    CacheDeserializationError,
    CacheExceptionError,
    CacheSerializationError,
    cache_exception_handler,
)
from app.errors.database import (
    DatabaseConnectionError,
    DatabaseError,
    DuplicateEntryError,
    RecordNotFoundError,
    database_exception_handler,
)
from app.errors.rate_limit import (
    RateLimiterUnavailableError,
    RateLimitExceededError,
    rate_limit_exception_handler,
)
from app.errors.validation import http_exception_handler, validation_exception_handler

__all__ = [
    "BASE_EXCEPTION",
    "BaseAppError",
    "CacheCompressionError",
    "CacheDecompressionError",
    "CacheDeserializationError",
    "CacheExceptionError",
    "CacheSerializationError",
    "ConnectionAuthError",
    "DatabaseConnectionError",
    "DatabaseError",
    "DuplicateEntryError",
    "PostPermissionError",
    "RateLimitExceededError",
    "RateLimiterUnavailableError",
    "RecordNotFoundError",
    "UserAuthenticationError",
    "auth_exception_handler",
    "cache_exception_handler",
    "create_exception_handler",
    "database_exception_handler",
    "error_body",
    "http_exception_handler",
    "rate_limit_exception_handler",
    "validation_exception_handler",
]
