from datetime import date, datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import ConfigDict, Field, field_validator

from app.schemas.base import CamelModel
from app.utils.security import MAX_PASSWORD_BYTES, password_too_long

Genre = Literal["male", "female"]
Preference = Literal["male", "female", "all"]


class RegisterRequest(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    genre: Genre
    email: str
    password: str = Field(min_length=1)
    dob: date
    preference: Preference

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        local, _, domain = v.partition("@")
        if not local or not domain:
            raise ValueError("not a valid email address")
        return v

    @field_validator("password")
    @classmethod
    def _fits_bcrypt(cls, v: str) -> str:
        if password_too_long(v):
            raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(CamelModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.strip().lower()


class AuthUser(CamelModel):
    id: UUID
    first_name: str
    avatar: Optional[str] = None


class AuthResponse(CamelModel):
    token: str
    user: AuthUser


class UserPublic(CamelModel):
    id: UUID
    first_name: str
    last_name: str
    genre: str
    dob: date
    preference: str
    interests: list[str] = []
    avatar: Optional[str] = None


class UserProfile(UserPublic):
    email: str
    created_at: datetime
    liked: list[UUID] = []
    liked_by: list[UUID] = []


class ProfileUpdate(CamelModel):
    """Fields a user may change on their own record; anything else is rejected."""

    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    genre: Optional[Genre] = None
    dob: Optional[date] = None
    preference: Optional[Preference] = None
    interests: Optional[list[str]] = None

    @field_validator("*", mode="before")
    @classmethod
    def _reject_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


def public_user(user) -> UserPublic:
    return UserPublic(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        genre=user.genre,
        dob=user.dob,
        preference=user.preference,
        interests=user.interests or [],
        avatar=user.avatar,
    )


def user_profile(user, liked: list[UUID], liked_by: list[UUID]) -> UserProfile:
    return UserProfile(
        **public_user(user).model_dump(),
        email=user.email,
        created_at=user.created_at,
        liked=liked,
        liked_by=liked_by,
    )
