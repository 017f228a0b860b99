# app/routes/cache.py
"""Cache inspection endpoints."""

from logging import getLogger

from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE

from app.configs import file_logger
from app.dependencies import CacheDep, UserDBDep
from app.managers.rate_limiter import limiter
from app.schemas import (
    CachePingResponse,
    CacheResetStatsResponse,
    CacheStatistics,
    CacheStatsResponse,
)

logger = file_logger(getLogger(__name__))

router = APIRouter(prefix="/cache", tags=["🗄️ Cache"])


@router.get(
    "/stats",
    response_model=CacheStatsResponse,
    summary="Get cache statistics",
    response_class=ORJSONResponse,
)
@limiter.limit("10/minute")
async def get_cache_stats(request: Request, manager: CacheDep) -> ORJSONResponse:
    """
    Get cache statistics.

    Returns:
        Cache statistics.
    """
    stats = CacheStatistics.model_validate(manager.get_statistics())
    response = CacheStatsResponse(status="success", data=stats)
    return ORJSONResponse(content=response.model_dump())


@router.get(
    "/ping",
    response_model=CachePingResponse,
    summary="Ping cache server",
    response_class=ORJSONResponse,
)
@limiter.limit("20/minute")
async def ping_cache(request: Request, manager: CacheDep) -> ORJSONResponse:
    """
    Ping cache server.

    Returns:
        Ping result, 503 when the store does not answer.
    """
    if await manager.ping():
        response = CachePingResponse(
            status="success",
            message="Cache server is reachable",
            backend=manager.backend,
        )
        return ORJSONResponse(content=response.model_dump())

    response = CachePingResponse(
        status="error",
        message="Cache server is not reachable",
        backend=manager.backend,
    )
    return ORJSONResponse(content=response.model_dump(), status_code=HTTP_503_SERVICE_UNAVAILABLE)


@router.post(
    "/reset-stats",
    response_model=CacheResetStatsResponse,
    summary="Reset cache statistics",
    response_class=ORJSONResponse,
)
@limiter.limit("5/hour")
async def reset_stats(
    request: Request,
    manager: CacheDep,
    current_user: UserDBDep,
) -> ORJSONResponse:
    """
    Reset cache statistics.

    Returns:
        Reset operation result.
    """
    manager.reset_statistics()
    logger.info(f"Cache statistics reset by {current_user.uuid}")
    response = CacheResetStatsResponse(status="success", message="Cache statistics reset")
    return ORJSONResponse(content=response.model_dump())
