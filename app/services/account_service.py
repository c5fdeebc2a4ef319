"""
Cupid: Account Service

Registration, login and self-service profile changes.
"""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.errors import Conflict, InvalidCredentials
from app.models import User
from app.schemas.user import ProfileUpdate, RegisterRequest
from app.utils.security import PasswordManager, TokenManager
from app.utils.storage import save_avatar, validate_avatar

logger = structlog.get_logger("cupid.account_service")


class AccountService:
    """Owns credentials: hashing on the way in, tokens on the way out."""

    def __init__(
        self,
        settings: Settings,
        passwords: PasswordManager | None = None,
        tokens: TokenManager | None = None,
    ) -> None:
        self.settings = settings
        self.passwords = passwords or PasswordManager(settings)
        self.tokens = tokens or TokenManager(settings)

    async def register(
        self,
        payload: RegisterRequest,
        db_session: AsyncSession,
        avatar: tuple[bytes, str | None, str | None] | None = None,
    ) -> tuple[str, User]:
        """Create a user and return ``(token, user)``.

        ``avatar`` is ``(data, filename, content_type)`` when a file was sent.

        Raises
        ------
        Conflict
            The email is already registered.
        InvalidInput
            The avatar is not an acceptable image.
        """
        log = logger.bind(email=payload.email)
        log.info("register_start")

        if await self._email_taken(payload.email, db_session):
            log.warning("register_duplicate_email")
            raise Conflict("Email already registered")

        if avatar is not None:
            data, _, content_type = avatar
            validate_avatar(data, content_type, self.settings)

        user = User(
            email=payload.email,
            password_hash=self.passwords.hash_password(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
            genre=payload.genre,
            dob=payload.dob,
            preference=payload.preference,
            interests=[],
        )
        db_session.add(user)
        try:
            await db_session.flush()
        except IntegrityError:
            # Concurrent registration with the same email won the race.
            log.warning("register_duplicate_email_race")
            raise Conflict("Email already registered")

        # Stored only once the row exists, so a rejected registration leaves no file.
        if avatar is not None:
            data, filename, content_type = avatar
            user.avatar = await save_avatar(data, filename, content_type, self.settings)
            await db_session.flush()

        log.info("register_complete", user_id=str(user.id))
        return self.tokens.create_access_token(user.id), user

    async def _email_taken(self, email: str, db_session: AsyncSession) -> bool:
        existing = await db_session.execute(select(User.id).where(User.email == email))
        return existing.scalar_one_or_none() is not None

    async def login(
        self, email: str, password: str, db_session: AsyncSession
    ) -> tuple[str, User]:
        """Verify credentials and return ``(token, user)``."""
        log = logger.bind(email=email)

        result = await db_session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user is None or not self.passwords.verify_password(password, user.password_hash):
            log.warning("login_failed")
            raise InvalidCredentials()

        log.info("login_complete", user_id=str(user.id))
        return self.tokens.create_access_token(user.id), user

    async def update_profile(
        self, user: User, payload: ProfileUpdate, db_session: AsyncSession
    ) -> User:
        """Apply the allow-listed fields present in ``payload``."""
        log = logger.bind(user_id=str(user.id))

        update_data = payload.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            setattr(user, field, value)

        await db_session.flush()
        log.info("update_profile_complete", updated_fields=list(update_data.keys()))
        return user

    async def replace_avatar(
        self,
        user: User,
        data: bytes,
        filename: str | None,
        content_type: str | None,
        db_session: AsyncSession,
    ) -> User:
        user.avatar = await save_avatar(data, filename, content_type, self.settings)
        await db_session.flush()
        logger.info("avatar_replaced", user_id=str(user.id), avatar=user.avatar)
        return user
