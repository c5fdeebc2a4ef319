"""
Cupid: Shared API dependencies.

Services are constructed once by the application factory and stored on
``app.state``; these helpers hand them to route functions.
"""

from __future__ import annotations

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.errors import AuthError
from app.models import User
from app.services.account_service import AccountService
from app.services.matchmaking_service import MatchmakingService

logger = structlog.get_logger("cupid.api.auth")

_bearer = HTTPBearer(auto_error=False)


def get_account_service(request: Request) -> AccountService:
    return request.app.state.account_service


def get_matchmaking_service(request: Request) -> MatchmakingService:
    return request.app.state.matchmaking_service


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    accounts: AccountService = Depends(get_account_service),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token to a user row or fail with 401."""
    if credentials is None or not credentials.credentials:
        raise AuthError("No token")

    user_id = accounts.tokens.decode_access_token(credentials.credentials)

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        logger.warning("token_user_not_found", user_id=str(user_id))
        raise AuthError("User not found")

    return user
