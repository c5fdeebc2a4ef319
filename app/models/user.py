"""
Cupid: User model.
"""

import uuid
from datetime import date, datetime

from sqlalchemy import JSON, CheckConstraint, Date, DateTime, String, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("genre IN ('male', 'female')", name="ck_users_genre"),
        CheckConstraint(
            "preference IN ('male', 'female', 'all')", name="ck_users_preference"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    password_hash: Mapped[str] = mapped_column(String, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    genre: Mapped[str] = mapped_column(String, index=True, nullable=False)
    dob: Mapped[date] = mapped_column(Date, nullable=False)
    preference: Mapped[str] = mapped_column(
        String, default="all", server_default="all", nullable=False
    )
    interests: Mapped[list | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        default=list,
        nullable=True,
        comment="Free-text interest tags",
    )
    avatar: Mapped[str | None] = mapped_column(
        String, nullable=True, comment="Relative or public avatar URL"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    def __repr__(self) -> str:
        return f"<User {self.email!r} id={self.id}>"
