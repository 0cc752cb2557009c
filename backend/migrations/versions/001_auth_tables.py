"""Create auth tables: users, refresh_tokens, otp_verifications, one_time_tokens.

Revision ID: 001_auth_tables
Revises:
Create Date: 2026-10-19

- users: credential store (email unique, roles as JSON list)
- refresh_tokens: one row per user (unique user_id)
- otp_verifications: phone codes, indexed for latest-unverified lookups
- one_time_tokens: magic link tokens, one row per user (unique user_id)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_auth_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column(
            "provider", sa.String(20), nullable=False, server_default="LOCAL"
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("token", sa.String(255), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("token", name="uq_refresh_tokens_token"),
        sa.UniqueConstraint("user_id", name="uq_refresh_tokens_user_id"),
    )

    op.create_table(
        "otp_verifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("otp", sa.String(10), nullable=False),
        sa.Column(
            "verified", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_otp_verifications_phone_verified_created",
        "otp_verifications",
        ["phone", "verified", "created_at"],
    )

    op.create_table(
        "one_time_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("token", sa.String(255), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("token", name="uq_one_time_tokens_token"),
        sa.UniqueConstraint("user_id", name="uq_one_time_tokens_user_id"),
    )


def downgrade() -> None:
    op.drop_table("one_time_tokens")
    op.drop_index(
        "ix_otp_verifications_phone_verified_created",
        table_name="otp_verifications",
    )
    op.drop_table("otp_verifications")
    op.drop_table("refresh_tokens")
    op.drop_table("users")
