"""
Cupid: Password hashing and access tokens.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
import structlog

from app.config import Settings
from app.errors import AuthError, InvalidInput

logger = structlog.get_logger("cupid.security")

# bcrypt only looks at the first 72 bytes and newer releases reject longer input.
MAX_PASSWORD_BYTES = 72


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


class PasswordManager:
    """bcrypt hashing with a configurable work factor."""

    def __init__(self, settings: Settings) -> None:
        self.rounds = settings.BCRYPT_ROUNDS

    def hash_password(self, password: str) -> str:
        if password_too_long(password):
            raise InvalidInput(
                f"Password must be at most {MAX_PASSWORD_BYTES} bytes"
            )
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, hashed_password: str) -> bool:
        if password_too_long(password):
            # No stored hash can come from a password this long.
            return False
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"),
                hashed_password.encode("utf-8"),
            )
        except ValueError as exc:
            logger.error("password_hash_malformed", error=str(exc))
            return False


class TokenManager:
    """Issues and verifies the bearer JWTs used by every protected route."""

    def __init__(self, settings: Settings) -> None:
        self.secret = settings.JWT_SECRET
        self.algorithm = settings.JWT_ALGORITHM
        self.expire_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES

    def create_access_token(self, user_id: uuid.UUID) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {"sub": str(user_id), "iat": now}
        if self.expire_minutes > 0:
            payload["exp"] = now + timedelta(minutes=self.expire_minutes)
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> uuid.UUID:
        """Return the user id carried by ``token``.

        Raises
        ------
        AuthError
            If the token is expired, tampered with, or has no usable subject.
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("token_expired")
            raise AuthError("Token expired")
        except jwt.PyJWTError as exc:
            logger.warning("token_invalid", error=str(exc))
            raise AuthError("Invalid token")

        try:
            return uuid.UUID(str(payload["sub"]))
        except (KeyError, ValueError):
            logger.warning("token_subject_invalid")
            raise AuthError("Invalid token")
