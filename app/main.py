# app/main.py

"""Blog API - CRUD with Redis read-through caching, rate limiting and live notifications."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app.configs import settings
from app.errors import (
    CacheExceptionError,
    DatabaseError,
    PostPermissionError,
    RateLimiterUnavailableError,
    RateLimitExceededError,
    UserAuthenticationError,
    auth_exception_handler,
    cache_exception_handler,
    database_exception_handler,
    http_exception_handler,
    rate_limit_exception_handler,
    validation_exception_handler,
)
from app.managers import limiter, rate_limit_exceeded_handler
from app.middleware import (
    LoggingMiddleware,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
    configure_cors,
    lifespan,
)
from app.monitoring import configure_logging
from app.routes import cache_router, limiter_router, notifications_router, posts_router
from app.schemas import CacheHealthResponse, HealthCheckResponse
from app.utils.helpers import today_str

configure_logging()

app = FastAPI(
    title=settings.APP_NAME,
    description="Blog API with cached reads, distributed rate limiting and real-time notifications",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.DEBUG,
    swagger_ui_parameters={
        "docExpansion": "none",
        "operationsSorter": "method",
    },
)

configure_cors(app)

app.add_middleware(RateLimitMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)
# Resolve client addresses from X-Forwarded-For when behind a proxy
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")


routes = [
    posts_router,
    notifications_router,
    cache_router,
    limiter_router,
]

_ = [app.include_router(router) for router in routes]

errors = [
    (UserAuthenticationError, auth_exception_handler),
    (PostPermissionError, auth_exception_handler),
    (CacheExceptionError, cache_exception_handler),
    (DatabaseError, database_exception_handler),
    (RateLimitExceededError, rate_limit_exception_handler),
    (RateLimiterUnavailableError, rate_limit_exception_handler),
    (RateLimitExceeded, rate_limit_exceeded_handler),
    (RequestValidationError, validation_exception_handler),
    (StarletteHTTPException, http_exception_handler),
]

_ = [app.add_exception_handler(exc_type, handler) for exc_type, handler in errors]

app.state.limiter = limiter
limiter: Limiter = app.state.limiter


@app.get(
    "/health",
    tags=["🩺 Health"],
    summary="Health check endpoint",
    response_model=HealthCheckResponse,
    response_class=ORJSONResponse,
    responses={
        200: {
            "content": {
                "application/json": {
                    "example": {
                        "version": "1.0.0",
                        "status": "ok",
                        "timestamp": "2025-01-01",
                        "cache": {"backend": "redis", "status": "healthy"},
                        "rate_limiter": {"backend": "redis", "backend_healthy": True},
                        "notifications": {"distributed": True, "connections": 2, "rooms": 3},
                    },
                },
            },
        },
    },
    operation_id="health_check",
)
@limiter.exempt
async def health_check(request: Request) -> ORJSONResponse:
    """
    Health check endpoint with comprehensive status.

    Parameters
    ----------
    request : Request
        Current request context.

    Returns
    -------
    ORJSONResponse
        Health of the cache, the admission limiter and the notification hub.
        `status` is `degraded` when the shared store does not answer.

    Examples
    --------
    Request
        GET /health
    Response
        200 OK
        {"version": "1.0.0", "status": "ok", "timestamp": "2025-01-01", "cache": { ... }, ...}
    """
    state = request.app.state
    cache_health_data = await state.cache_manager.health_check()
    limiter_status = await state.rate_limiter.status()

    healthy = cache_health_data.get("status") == "healthy" and limiter_status["backend_healthy"]
    response_data = HealthCheckResponse(
        version=app.version,
        status="ok" if healthy else "degraded",
        timestamp=today_str(),
        cache=CacheHealthResponse(**cache_health_data),
        rate_limiter=limiter_status,
        notifications=state.notification_hub.status(),
    )
    return ORJSONResponse(response_data.model_dump())


if __name__ == "__main__":
    from uvicorn import run

    run(
        app,
        host="127.0.0.1",
        port=8000,
        log_level="info",
        loop="uvloop",
        http="httptools",
    )
