"""OTP verification model - phone codes awaiting confirmation."""

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from snapbuy_auth.models.base import Base, utcnow


class OtpVerification(Base):
    """A one-time numeric code sent to a phone.

    Rows move from unverified to verified on a matching code; expired rows
    are purged by the cleanup sweep.

    Attributes:
        id: Integer primary key.
        phone: Normalized phone number (country code prefixed).
        otp: Numeric code as sent.
        verified: Set once the code was confirmed.
        user_id: Account that confirmed the code, NULL until verified.
        created_at: When the code was issued.
        expires_at: When the code stops being accepted.
    """

    __tablename__ = "otp_verifications"
    __table_args__ = (
        Index(
            "ix_otp_verifications_phone_verified_created",
            "phone",
            "verified",
            "created_at",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    otp: Mapped[str] = mapped_column(String(10), nullable=False)
    verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at
