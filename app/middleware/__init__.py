from app.middleware.middleware import (
    LoggingMiddleware,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
    close_store,
    configure_cors,
    lifespan,
    open_store,
    start_services,
    stop_services,
)

__all__ = [
    "LoggingMiddleware",
    "RateLimitMiddleware",
    "SecurityHeadersMiddleware",
    "close_store",
    "configure_cors",
    "lifespan",
    "open_store",
    "start_services",
    "stop_services",
]
