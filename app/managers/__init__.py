from app.managers.cache_manager import CacheManager
from app.managers.notification_hub import NotificationHub, NotifyResult, post_room, user_room
from app.managers.rate_limiter import (
    RateLimiter,
    RateLimitResult,
    get_identifier,
    limiter,
    rate_limit_exceeded_handler,
)
from app.managers.token_manager import create_access_token, decode_access_token

__all__ = [
    "CacheManager",
    "NotificationHub",
    "NotifyResult",
    "RateLimitResult",
    "RateLimiter",
    "create_access_token",
    "decode_access_token",
    "get_identifier",
    "limiter",
    "post_room",
    "rate_limit_exceeded_handler",
    "user_room",
]
