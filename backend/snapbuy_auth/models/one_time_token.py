"""One-time token model - magic link sign-in tokens.

Single-use, time-limited, at most one outstanding per user.
"""

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from snapbuy_auth.models.base import Base, utcnow


class OneTimeToken(Base):
    """Magic link token.

    Attributes:
        id: Integer primary key.
        token: Random opaque value embedded in the emailed link.
        user_id: Owning user (unique).
        expires_at: When the link stops working.
        created_at: When the link was generated.
    """

    __tablename__ = "one_time_tokens"

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
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now
