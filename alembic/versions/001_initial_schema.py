"""Initial schema: users, likes and matches.

Revision ID: 001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── 1. users ────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String, nullable=False),
        sa.Column("password_hash", sa.String, nullable=False),
        sa.Column("first_name", sa.String, nullable=False),
        sa.Column("last_name", sa.String, nullable=False),
        sa.Column("genre", sa.String, nullable=False),
        sa.Column("dob", sa.Date, nullable=False),
        sa.Column(
            "preference",
            sa.String,
            server_default="all",
            nullable=False,
        ),
        sa.Column(
            "interests",
            postgresql.JSONB,
            nullable=True,
            comment="Free-text interest tags",
        ),
        sa.Column(
            "avatar",
            sa.String,
            nullable=True,
            comment="Relative or public avatar URL",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("genre IN ('male', 'female')", name="ck_users_genre"),
        sa.CheckConstraint(
            "preference IN ('male', 'female', 'all')",
            name="ck_users_preference",
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_genre", "users", ["genre"])

    # ── 2. likes (directed edge: liker -> target) ───────────────────
    op.create_table(
        "likes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "liker_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("liker_id", "target_id", name="uq_like_pair"),
        sa.CheckConstraint("liker_id <> target_id", name="ck_like_not_self"),
    )
    op.create_index("ix_likes_target_id", "likes", ["target_id"])

    # ── 3. matches (canonical pair: user_a_id < user_b_id) ──────────
    op.create_table(
        "matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_a_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_b_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("user_a_id", "user_b_id", name="uq_match_pair"),
    )
    op.create_index("ix_matches_user_b_id", "matches", ["user_b_id"])


def downgrade() -> None:
    op.drop_index("ix_matches_user_b_id", table_name="matches")
    op.drop_table("matches")
    op.drop_index("ix_likes_target_id", table_name="likes")
    op.drop_table("likes")
    op.drop_index("ix_users_genre", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
