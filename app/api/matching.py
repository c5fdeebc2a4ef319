"""
Cupid: Matching API

Recording likes (with mutual-match detection) and listing matches.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_matchmaking_service
from app.database import get_db
from app.models import User
from app.schemas.match import (
    LikeRequest,
    LikeResponse,
    MatchListItem,
    match_record,
    participant,
)
from app.services.matchmaking_service import MatchmakingService

logger = structlog.get_logger("cupid.api.matching")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST /like: Like another user
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/like",
    response_model=LikeResponse,
    response_model_exclude_none=True,
    summary="Like a user",
)
async def like_user(
    payload: LikeRequest,
    me: User = Depends(get_current_user),
    matchmaking: MatchmakingService = Depends(get_matchmaking_service),
    db: AsyncSession = Depends(get_db),
) -> LikeResponse:
    """Record a like for ``targetId``.

    If the target already liked the caller and the pair has no match yet,
    the match is created and returned alongside ``"It's a match!"``.
    Liking again is harmless and answers ``"Liked"``.
    """
    outcome = await matchmaking.record_like(me, payload.target_id, db)
    if outcome.match is None:
        return LikeResponse(message=outcome.message)
    return LikeResponse(message=outcome.message, match=match_record(outcome.match))


# ──────────────────────────────────────────────────────────────────────────────
# GET /matches: List my matches
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/matches",
    response_model=list[MatchListItem],
    summary="List my matches",
)
async def list_matches(
    me: User = Depends(get_current_user),
    matchmaking: MatchmakingService = Depends(get_matchmaking_service),
    db: AsyncSession = Depends(get_db),
) -> list[MatchListItem]:
    """Matches involving me, newest first, with both participants expanded."""
    matches = await matchmaking.list_matches(me.id, db)

    return [
        MatchListItem(
            id=m.id,
            user_a=participant(m.user_a),
            user_b=participant(m.user_b),
            counterpart=participant(m.counterpart_of(me.id)),
            created_at=m.created_at,
        )
        for m in matches
    ]
