from app.schemas.auth import TokenData
from app.schemas.cache import (
    CacheHealthResponse,
    CachePingResponse,
    CacheResetStatsResponse,
    CacheStatistics,
    CacheStatsResponse,
    HealthCheckResponse,
)
from app.schemas.limiter import LimiterResetRequest, LimiterResetResponse, LimiterStatusResponse
from app.schemas.notification import FanoutMessage, HubMessage, HubStatusResponse
from app.schemas.post import (
    ApiResponse,
    AuthorSummary,
    CommentCreate,
    CommentResponse,
    Pagination,
    PostCreate,
    PostListData,
    PostResponse,
    PostSummary,
    PostUpdate,
    TagResponse,
)

__all__ = [
    "ApiResponse",
    "AuthorSummary",
    "CacheHealthResponse",
    "CachePingResponse",
    "CacheResetStatsResponse",
    "CacheStatistics",
    "CacheStatsResponse",
    "CommentCreate",
    "CommentResponse",
    "FanoutMessage",
    "HealthCheckResponse",
    "HubMessage",
    "HubStatusResponse",
    "LimiterResetRequest",
    "LimiterResetResponse",
    "LimiterStatusResponse",
    "Pagination",
    "PostCreate",
    "PostListData",
    "PostResponse",
    "PostSummary",
    "PostUpdate",
    "TagResponse",
    "TokenData",
]
