"""
Cupid: Users API

Self profile, avatar upload and the discovery feed.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_account_service, get_current_user, get_matchmaking_service
from app.database import get_db
from app.models import User
from app.schemas.user import ProfileUpdate, UserProfile, UserPublic, public_user, user_profile
from app.services.account_service import AccountService
from app.services.matchmaking_service import MatchmakingService

logger = structlog.get_logger("cupid.api.users")

router = APIRouter()


async def _profile_response(
    user: User, matchmaking: MatchmakingService, db: AsyncSession
) -> UserProfile:
    liked = await matchmaking.get_liked_ids(user.id, db)
    liked_by = await matchmaking.get_liked_by_ids(user.id, db)
    return user_profile(user, liked, liked_by)


# ──────────────────────────────────────────────────────────────────────────────
# GET /me: Current user's full profile
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/me",
    response_model=UserProfile,
    summary="Get my profile",
)
async def get_me(
    me: User = Depends(get_current_user),
    matchmaking: MatchmakingService = Depends(get_matchmaking_service),
    db: AsyncSession = Depends(get_db),
) -> UserProfile:
    return await _profile_response(me, matchmaking, db)


# ──────────────────────────────────────────────────────────────────────────────
# PUT /me: Update profile fields
# ──────────────────────────────────────────────────────────────────────────────

@router.put(
    "/me",
    response_model=UserProfile,
    summary="Update my profile",
)
async def update_me(
    payload: ProfileUpdate,
    me: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
    matchmaking: MatchmakingService = Depends(get_matchmaking_service),
    db: AsyncSession = Depends(get_db),
) -> UserProfile:
    """Update mutable profile fields.

    Only the fields present in the request body are applied.  Credentials,
    email, avatar and the like relations cannot be changed here; sending
    them is a validation error.
    """
    user = await accounts.update_profile(me, payload, db)
    return await _profile_response(user, matchmaking, db)


# ──────────────────────────────────────────────────────────────────────────────
# POST /me/avatar: Replace avatar
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/me/avatar",
    response_model=UserProfile,
    summary="Upload a new avatar",
)
async def upload_avatar(
    avatar: UploadFile = File(..., description="Image file"),
    me: User = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
    matchmaking: MatchmakingService = Depends(get_matchmaking_service),
    db: AsyncSession = Depends(get_db),
) -> UserProfile:
    data = await avatar.read()
    user = await accounts.replace_avatar(
        me, data, avatar.filename, avatar.content_type, db
    )
    return await _profile_response(user, matchmaking, db)


# ──────────────────────────────────────────────────────────────────────────────
# GET /: Discovery feed candidates
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=list[UserPublic],
    summary="Get discovery feed candidates",
)
async def list_candidates(
    me: User = Depends(get_current_user),
    matchmaking: MatchmakingService = Depends(get_matchmaking_service),
    db: AsyncSession = Depends(get_db),
) -> list[UserPublic]:
    """Users matching my preference that I have not liked yet."""
    candidates = await matchmaking.list_candidates(me, db)
    return [public_user(u) for u in candidates]


# ──────────────────────────────────────────────────────────────────────────────
# GET /all: Everyone except me (debug)
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/all",
    response_model=list[UserPublic],
    summary="List users without filtering (debug)",
)
async def list_all_users(
    me: User = Depends(get_current_user),
    matchmaking: MatchmakingService = Depends(get_matchmaking_service),
    db: AsyncSession = Depends(get_db),
) -> list[UserPublic]:
    users = await matchmaking.list_all_users(me, db)
    return [public_user(u) for u in users]
