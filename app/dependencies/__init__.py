from app.dependencies.dependencies import (
    CacheDep,
    HubDep,
    PostListQueryDep,
    PostServiceDep,
    RateLimiterDep,
    UserDBDep,
    get_cache_manager,
    get_current_user,
    get_notification_hub,
    get_post_service,
    get_rate_limiter,
)

__all__ = [
    "CacheDep",
    "HubDep",
    "PostListQueryDep",
    "PostServiceDep",
    "RateLimiterDep",
    "UserDBDep",
    "get_cache_manager",
    "get_current_user",
    "get_notification_hub",
    "get_post_service",
    "get_rate_limiter",
]
