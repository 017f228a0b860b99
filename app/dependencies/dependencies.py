# app/dependencies/dependencies.py

"""Application dependencies."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Query, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_session
from app.errors import UserAuthenticationError
from app.managers.cache_manager import CacheManager
from app.managers.notification_hub import NotificationHub
from app.managers.rate_limiter import RateLimiter
from app.managers.token_manager import decode_access_token
from app.models import UserDB
from app.repositories import UserRepository
from app.services import PostService

# Tokens are issued by the external identity service
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> UserDB:
    """
    Get current authenticated user using user_id from token claims.

    Parameters
    ----------
    token : str
        Bearer token.
    session : AsyncSession
        Database session.

    Returns
    -------
    UserDB
        Current authenticated user.

    Raises
    ------
    UserAuthenticationError
        If the token is invalid or its user does not exist.
    """
    token_data = decode_access_token(token)
    if not token_data:
        raise UserAuthenticationError

    user = await UserRepository(session).get_by_id(token_data.user_id)
    if not user:
        mssg = "User not found"
        raise UserAuthenticationError(mssg)

    return user


def get_cache_manager(request: Request) -> CacheManager:
    return request.app.state.cache_manager


def get_notification_hub(request: Request) -> NotificationHub:
    return request.app.state.notification_hub


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


CacheDep = Annotated[CacheManager, Depends(get_cache_manager)]
HubDep = Annotated[NotificationHub, Depends(get_notification_hub)]
RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter)]
UserDBDep = Annotated[UserDB, Depends(get_current_user)]


def get_post_service(
    session: Annotated[AsyncSession, Depends(get_session)],
    cache: CacheDep,
    hub: HubDep,
) -> PostService:
    """
    Resolve the `PostService` dependency.

    Parameters
    ----------
    session : AsyncSession
        Database session.
    cache : CacheManager
        Shared cache manager from application state.
    hub : NotificationHub
        Notification hub from application state.

    Returns
    -------
    PostService
        Service bound to the request's session.
    """
    return PostService(session, cache, hub)


PostServiceDep = Annotated[PostService, Depends(get_post_service)]


@dataclass(frozen=True)
class PostListQuery:
    """
    Query container for post listing.

    Parameters
    ----------
    page : int
        1-based page number.
    limit : int
        Posts per page.
    tag : str | None
        Optional tag filter.
    """

    page: int = 1
    limit: int = 10
    tag: str | None = None


def get_post_list_query(
    page: Annotated[int, Query(ge=1, description="Page number (1-based)")] = 1,
    limit: Annotated[int, Query(ge=1, le=100, description="Posts per page")] = 10,
    tag: Annotated[
        str | None,
        Query(min_length=1, max_length=50, description="Optional tag filter"),
    ] = None,
) -> PostListQuery:
    return PostListQuery(page=page, limit=limit, tag=tag.lower() if tag else None)


PostListQueryDep = Annotated[PostListQuery, Depends(get_post_list_query)]
