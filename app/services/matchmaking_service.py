"""
Cupid: Matchmaking Service

Candidate discovery, like recording and match formation.

Match formation for a pair (A, B) follows::

    NoInteraction -> A liked B -> Matched (B liked A as well)

``Matched`` is terminal: further likes from either side leave the pair
untouched.  At most one ``matches`` row exists per unordered pair, enforced by
three layers:

  1. Row locks on both users (canonical id order) serialise concurrent likes
     between the same two people, so neither side can miss the other's like.
  2. ``likes`` and ``matches`` rows are written with
     ``INSERT ... ON CONFLICT DO NOTHING``; duplicates are silently skipped.
  3. The ``uq_match_pair`` constraint on the canonical ``(low, high)`` pair
     backs both of the above at the storage layer.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import Table, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.errors import InvalidInput, NotFound, SelfLikeRejected
from app.models import Like, Match, User
from app.models.match import canonical_pair

logger = structlog.get_logger("cupid.matchmaking_service")

LIKED_MESSAGE = "Liked"
MATCH_MESSAGE = "It's a match!"


@dataclass
class LikeOutcome:
    """Result of :meth:`MatchmakingService.record_like`."""

    message: str
    match: Match | None = None

    @property
    def matched(self) -> bool:
        return self.match is not None


def _dialect_insert(db_session: AsyncSession, table: Table):
    """Return an ``INSERT`` construct supporting ``on_conflict_do_nothing``."""
    dialect = db_session.bind.dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Unsupported database dialect: {dialect}")
    return insert(table)


async def insert_ignoring_conflict(
    db_session: AsyncSession,
    table: Table,
    values: dict[str, Any],
    conflict_columns: list[str],
) -> bool:
    """Insert one row unless it collides on ``conflict_columns``.

    Returns True when a row was written, False when it already existed.
    """
    stmt = (
        _dialect_insert(db_session, table)
        .values(**values)
        .on_conflict_do_nothing(index_elements=conflict_columns)
    )
    result = await db_session.execute(stmt)
    return result.rowcount == 1


class MatchmakingService:
    """Discovery, likes and mutual-match detection over the relation store."""

    def __init__(self, settings: Settings) -> None:
        self.candidate_limit: int = settings.CANDIDATE_LIMIT

        logger.info(
            "matchmaking_service_initialised",
            candidate_limit=self.candidate_limit,
        )

    # ── Relation sets ─────────────────────────────────────────────────────

    async def get_liked_ids(
        self, user_id: uuid.UUID, db_session: AsyncSession
    ) -> list[uuid.UUID]:
        """Ids the user has liked, oldest like first."""
        stmt = (
            select(Like.target_id)
            .where(Like.liker_id == user_id)
            .order_by(Like.created_at)
        )
        return list((await db_session.execute(stmt)).scalars().all())

    async def get_liked_by_ids(
        self, user_id: uuid.UUID, db_session: AsyncSession
    ) -> list[uuid.UUID]:
        """Ids of users who have liked this user, oldest like first."""
        stmt = (
            select(Like.liker_id)
            .where(Like.target_id == user_id)
            .order_by(Like.created_at)
        )
        return list((await db_session.execute(stmt)).scalars().all())

    # ── Discovery ─────────────────────────────────────────────────────────

    async def list_candidates(
        self, requester: User, db_session: AsyncSession
    ) -> list[User]:
        """Return users the requester may still like.

        Excludes the requester and everyone they already liked; filters on
        ``genre == requester.preference`` unless the preference is ``all``.
        Capped at ``CANDIDATE_LIMIT``.
        """
        log = logger.bind(user_id=str(requester.id))

        already_liked = select(Like.target_id).where(Like.liker_id == requester.id)
        stmt = (
            select(User)
            .where(User.id != requester.id)
            .where(User.id.not_in(already_liked))
        )
        if requester.preference and requester.preference != "all":
            stmt = stmt.where(User.genre == requester.preference)

        stmt = stmt.order_by(User.created_at.desc()).limit(self.candidate_limit)
        candidates = list((await db_session.execute(stmt)).scalars().all())

        log.info(
            "list_candidates_complete",
            preference=requester.preference,
            candidate_count=len(candidates),
        )
        return candidates

    async def list_all_users(
        self, requester: User, db_session: AsyncSession
    ) -> list[User]:
        """Debug listing: everyone but the requester, no exclusion filter."""
        stmt = (
            select(User)
            .where(User.id != requester.id)
            .order_by(User.created_at.desc())
            .limit(self.candidate_limit)
        )
        users = list((await db_session.execute(stmt)).scalars().all())
        logger.info("list_all_users", user_id=str(requester.id), count=len(users))
        return users

    # ── Likes ─────────────────────────────────────────────────────────────

    async def record_like(
        self,
        requester: User,
        target_id: str | uuid.UUID | None,
        db_session: AsyncSession,
    ) -> LikeOutcome:
        """Record ``requester -> target`` and form a match if it is mutual.

        Raises
        ------
        InvalidInput
            ``target_id`` is missing or not a valid id.
        SelfLikeRejected
            ``target_id`` is the requester's own id.
        NotFound
            No user exists with ``target_id``.
        """
        log = logger.bind(user_id=str(requester.id), target_id=str(target_id))

        target_uuid = self._parse_target_id(requester, target_id)

        target = await self._lock_pair(requester.id, target_uuid, db_session)
        if target is None:
            log.warning("record_like_target_not_found")
            raise NotFound("User not found")

        created = await insert_ignoring_conflict(
            db_session,
            Like.__table__,
            {"liker_id": requester.id, "target_id": target.id},
            ["liker_id", "target_id"],
        )
        log.info("like_recorded", new_like=created)

        if not await self._check_mutual_like(requester.id, target.id, db_session):
            return LikeOutcome(message=LIKED_MESSAGE)

        match = await self._store_match(requester.id, target.id, db_session)
        if match is None:
            log.info("match_already_exists")
            return LikeOutcome(message=LIKED_MESSAGE)

        log.info("match_formed", match_id=str(match.id))
        return LikeOutcome(message=MATCH_MESSAGE, match=match)

    # ── Matches ───────────────────────────────────────────────────────────

    async def find_match(
        self,
        user_id: uuid.UUID,
        other_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> Match | None:
        """Look up the match for a pair, whichever slot each id occupies."""
        stmt = select(Match).where(
            or_(
                (Match.user_a_id == user_id) & (Match.user_b_id == other_id),
                (Match.user_a_id == other_id) & (Match.user_b_id == user_id),
            )
        )
        return (await db_session.execute(stmt)).scalars().first()

    async def list_matches(
        self, user_id: uuid.UUID, db_session: AsyncSession
    ) -> list[Match]:
        """Every match the user participates in, newest first."""
        log = logger.bind(user_id=str(user_id))

        stmt = (
            select(Match)
            .where(or_(Match.user_a_id == user_id, Match.user_b_id == user_id))
            .order_by(Match.created_at.desc())
        )
        matches = list((await db_session.execute(stmt)).scalars().all())

        log.info("list_matches_complete", count=len(matches))
        return matches

    # ── Helpers ───────────────────────────────────────────────────────────

    @staticmethod
    def _parse_target_id(
        requester: User, target_id: str | uuid.UUID | None
    ) -> uuid.UUID:
        if target_id is None or (isinstance(target_id, str) and not target_id.strip()):
            raise InvalidInput("targetId required")

        if str(target_id).strip().lower() == str(requester.id):
            raise SelfLikeRejected()

        try:
            parsed = (
                target_id
                if isinstance(target_id, uuid.UUID)
                else uuid.UUID(target_id.strip())
            )
        except ValueError:
            raise InvalidInput("Invalid targetId")

        if parsed == requester.id:
            raise SelfLikeRejected()
        return parsed

    async def _lock_pair(
        self,
        requester_id: uuid.UUID,
        target_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> User | None:
        """Lock both user rows in canonical order and return the target.

        ``FOR UPDATE`` is dropped by backends without row locks (SQLite),
        where the single-writer database already serialises transactions.
        """
        low, high = canonical_pair(requester_id, target_id)
        stmt = (
            select(User)
            .where(User.id.in_([low, high]))
            .order_by(User.id)
            .with_for_update()
        )
        users = (await db_session.execute(stmt)).scalars().all()
        return next((u for u in users if u.id == target_id), None)

    async def _check_mutual_like(
        self,
        requester_id: uuid.UUID,
        target_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> bool:
        """True when the target has already liked the requester."""
        stmt = select(Like.id).where(
            Like.liker_id == target_id,
            Like.target_id == requester_id,
        )
        reciprocal = (await db_session.execute(stmt)).scalar_one_or_none()
        return reciprocal is not None

    async def _store_match(
        self,
        requester_id: uuid.UUID,
        target_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> Match | None:
        """Create the match for the pair; None if it already existed."""
        low, high = canonical_pair(requester_id, target_id)
        created = await insert_ignoring_conflict(
            db_session,
            Match.__table__,
            {"user_a_id": low, "user_b_id": high},
            ["user_a_id", "user_b_id"],
        )
        if not created:
            return None
        return await self.find_match(low, high, db_session)
