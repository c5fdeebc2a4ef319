from datetime import datetime
from typing import Optional
from uuid import UUID

from app.schemas.base import CamelModel


class LikeRequest(CamelModel):
    target_id: Optional[str] = None


class MatchRecord(CamelModel):
    id: UUID
    user_a: UUID
    user_b: UUID
    created_at: datetime


class LikeResponse(CamelModel):
    message: str
    match: Optional[MatchRecord] = None


class MatchParticipant(CamelModel):
    id: UUID
    first_name: str
    last_name: str
    avatar: Optional[str] = None


class MatchListItem(CamelModel):
    id: UUID
    user_a: MatchParticipant
    user_b: MatchParticipant
    counterpart: MatchParticipant
    created_at: datetime


def match_record(match) -> MatchRecord:
    return MatchRecord(
        id=match.id,
        user_a=match.user_a_id,
        user_b=match.user_b_id,
        created_at=match.created_at,
    )


def participant(user) -> MatchParticipant:
    return MatchParticipant(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        avatar=user.avatar,
    )
