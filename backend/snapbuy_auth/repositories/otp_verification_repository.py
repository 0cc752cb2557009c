"""Repository for OtpVerification operations.

Codes are looked up per normalized phone; only the most recent unverified
row is ever checked.
"""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from snapbuy_auth.models.otp_verification import OtpVerification


class OtpVerificationRepository:
    """Stateless repository for OtpVerification table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        phone: str,
        otp: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> OtpVerification:
        """Store a new unverified code.

        Args:
            db: Async database session.
            phone: Normalized phone number.
            otp: Numeric code.
            created_at: Issue time.
            expires_at: Expiry time.

        Returns:
            Created OtpVerification.
        """
        row = OtpVerification(
            phone=phone,
            otp=otp,
            verified=False,
            created_at=created_at,
            expires_at=expires_at,
        )
        db.add(row)
        await db.flush()
        return row

    @staticmethod
    async def latest_unverified(
        db: AsyncSession, phone: str
    ) -> OtpVerification | None:
        """Most recently issued unverified code for a phone.

        Args:
            db: Async database session.
            phone: Normalized phone number.

        Returns:
            OtpVerification if one exists, None otherwise.
        """
        stmt = (
            select(OtpVerification)
            .where(
                OtpVerification.phone == phone,
                OtpVerification.verified.is_(False),
            )
            .order_by(OtpVerification.created_at.desc(), OtpVerification.id.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def exists_verified(db: AsyncSession, phone: str) -> bool:
        stmt = (
            select(OtpVerification.id)
            .where(
                OtpVerification.phone == phone,
                OtpVerification.verified.is_(True),
            )
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def delete_unverified(db: AsyncSession, phone: str) -> int:
        """Delete every pending code for a phone (resend).

        Returns:
            Number of deleted rows.
        """
        stmt = delete(OtpVerification).where(
            OtpVerification.phone == phone,
            OtpVerification.verified.is_(False),
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def delete_expired(db: AsyncSession, *, now: datetime) -> int:
        """Delete all expired codes, verified or not (periodic cleanup).

        Args:
            db: Async database session.
            now: Cutoff; rows with expires_at before it are removed.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(OtpVerification).where(OtpVerification.expires_at < now)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
