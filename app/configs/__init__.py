from app.configs.logger import file_logger
from app.configs.settings import (
    RATE_LIMIT_MESSAGE,
    RATE_LIMITER_UNAVAILABLE_MESSAGE,
    CacheConfig,
    LimiterConfig,
    NotificationConfig,
    RateLimitConfig,
    RedisCacheConfig,
    pool_kwargs,
    settings,
)

__all__ = [
    "CacheConfig",
    "LimiterConfig",
    "NotificationConfig",
    "RateLimitConfig",
    "RedisCacheConfig",
    "RATE_LIMIT_MESSAGE",
    "RATE_LIMITER_UNAVAILABLE_MESSAGE",
    "file_logger",
    "pool_kwargs",
    "settings",
]
