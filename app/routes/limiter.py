"""
Limiter Routes.

Endpoints to inspect the admission limiter and reset a client's current window.
"""

from logging import getLogger

from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse

from app.configs import file_logger
from app.dependencies import RateLimiterDep, UserDBDep
from app.managers.rate_limiter import get_identifier
from app.schemas import LimiterResetRequest, LimiterResetResponse, LimiterStatusResponse

logger = file_logger(getLogger(__name__))

router = APIRouter(prefix="/limiter", tags=["🚦 Limiter"])


@router.get(
    "/status",
    summary="Get limiter status",
    response_class=ORJSONResponse,
    response_model=LimiterStatusResponse,
    responses={
        200: {
            "content": {
                "application/json": {
                    "example": {
                        "backend": "redis",
                        "enabled": True,
                        "backend_healthy": True,
                        "limit": 100,
                        "window_seconds": 900,
                        "fail_open": True,
                    },
                },
            },
        },
    },
    operation_id="limiter_status",
)
async def get_limiter_status(rate_limiter: RateLimiterDep) -> ORJSONResponse:
    """
    Get status of the rate limiter.

    Parameters
    ----------
    rate_limiter : RateLimiter
        Admission limiter from application state.

    Returns
    -------
    ORJSONResponse
        Configured policy and backend health.
    """
    status = LimiterStatusResponse.model_validate(await rate_limiter.status())
    return ORJSONResponse(status.model_dump())


@router.post(
    "/reset",
    summary="Reset rate limit window",
    response_class=ORJSONResponse,
    response_model=LimiterResetResponse,
    responses={
        200: {
            "content": {
                "application/json": {
                    "example": {
                        "message": "Rate limit reset for 'ip:127.0.0.1'",
                        "identifier": "ip:127.0.0.1",
                        "cleared": True,
                    },
                },
            },
        },
        401: {
            "description": "Unauthorized",
            "content": {
                "application/json": {
                    "example": {"status": "error", "message": "Could not validate credentials"},
                },
            },
        },
    },
    operation_id="limiter_reset",
)
async def reset_limiter(
    request: Request,
    body: LimiterResetRequest,
    rate_limiter: RateLimiterDep,
    current_user: UserDBDep,
) -> ORJSONResponse:
    """
    Clear the current window of one client identity.

    Parameters
    ----------
    request : Request
        Current request context.
    body : LimiterResetRequest
        Identity to reset; the caller's own identity when omitted.
    rate_limiter : RateLimiter
        Admission limiter from application state.
    current_user : UserDB
        Authenticated user.

    Returns
    -------
    ORJSONResponse
        Reset outcome.
    """
    identifier = body.identifier or get_identifier(request)
    cleared = await rate_limiter.reset(identifier)
    logger.info(f"User {current_user.uuid} reset rate limit for {identifier}")
    response = LimiterResetResponse(
        message=f"Rate limit reset for '{identifier}'",
        identifier=identifier,
        cleared=cleared,
    )
    return ORJSONResponse(response.model_dump())
