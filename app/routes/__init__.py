from app.routes.cache import router as cache_router
from app.routes.limiter import router as limiter_router
from app.routes.notifications import router as notifications_router
from app.routes.posts import router as posts_router

__all__ = [
    "cache_router",
    "limiter_router",
    "notifications_router",
    "posts_router",
]
