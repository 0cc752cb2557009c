"""Refresh token model - one long-lived session credential per user."""

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from snapbuy_auth.models.base import Base


class RefreshToken(Base):
    """Opaque refresh token bound to a single user.

    The unique constraint on user_id enforces at most one live refresh token
    per user; replacing one is delete-then-insert in a single transaction.

    Attributes:
        id: Integer primary key.
        token: Random opaque value presented by the client.
        user_id: Owning user (unique).
        issued_at: When the token was created.
        expires_at: When the token stops being accepted.
    """

    __tablename__ = "refresh_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    issued_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now
