"""Repository for RefreshToken operations."""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from snapbuy_auth.models.refresh_token import RefreshToken


class RefreshTokenRepository:
    """Stateless repository for RefreshToken table operations."""

    @staticmethod
    async def get_by_token(db: AsyncSession, token: str) -> RefreshToken | None:
        """Look up a refresh token by its opaque value."""
        stmt = select(RefreshToken).where(RefreshToken.token == token)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_for_user(db: AsyncSession, user_id: int) -> RefreshToken | None:
        stmt = select(RefreshToken).where(RefreshToken.user_id == user_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def replace_for_user(
        db: AsyncSession,
        *,
        user_id: int,
        token: str,
        issued_at: datetime,
        expires_at: datetime,
    ) -> RefreshToken:
        """Delete the user's current token and insert a new one.

        The DELETE is executed before the INSERT is flushed, so the unique
        user_id constraint never sees two rows. A concurrent replace for the
        same user fails on that constraint instead of leaving an orphan.

        Args:
            db: Async database session.
            user_id: Owning user.
            token: New opaque value.
            issued_at: Creation time.
            expires_at: Expiry time.

        Returns:
            The newly inserted RefreshToken.
        """
        await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
        row = RefreshToken(
            user_id=user_id,
            token=token,
            issued_at=issued_at,
            expires_at=expires_at,
        )
        db.add(row)
        await db.flush()
        return row

    @staticmethod
    async def delete(db: AsyncSession, row: RefreshToken) -> None:
        await db.delete(row)
        await db.flush()

    @staticmethod
    async def consume(db: AsyncSession, token: str) -> bool:
        """Delete a presented token by value; True if this call removed it.

        A single conditional DELETE, so two concurrent exchanges of the same
        token cannot both succeed.
        """
        stmt = delete(RefreshToken).where(RefreshToken.token == token)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count == 1

    @staticmethod
    async def delete_expired(db: AsyncSession, *, now: datetime) -> int:
        """Delete every refresh token past its expiry.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(RefreshToken).where(RefreshToken.expires_at < now)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
