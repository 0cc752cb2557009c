"""Repository for OneTimeToken (magic link) operations.

Single-use tokens, at most one outstanding per user.
"""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from snapbuy_auth.models.one_time_token import OneTimeToken


class OneTimeTokenRepository:
    """Stateless repository for OneTimeToken table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def replace_for_user(
        db: AsyncSession,
        *,
        user_id: int,
        token: str,
        expires_at: datetime,
        created_at: datetime,
    ) -> OneTimeToken:
        """Drop any outstanding token for the user and store a new one.

        Args:
            db: Async database session.
            user_id: Owning user.
            token: Opaque token value.
            expires_at: Token expiry timestamp.
            created_at: Issue time.

        Returns:
            Created OneTimeToken.
        """
        await db.execute(delete(OneTimeToken).where(OneTimeToken.user_id == user_id))
        ott = OneTimeToken(
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            created_at=created_at,
        )
        db.add(ott)
        await db.flush()
        return ott

    @staticmethod
    async def get(db: AsyncSession, token: str) -> OneTimeToken | None:
        """Look up a token by value.

        Args:
            db: Async database session.
            token: Opaque token value from the link.

        Returns:
            OneTimeToken if found, None otherwise.
        """
        stmt = select(OneTimeToken).where(OneTimeToken.token == token)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete(db: AsyncSession, ott: OneTimeToken) -> None:
        """Delete a loaded token (expired-token cleanup)."""
        await db.delete(ott)
        await db.flush()

    @staticmethod
    async def delete_for_user(db: AsyncSession, user_id: int) -> int:
        """Revoke the user's outstanding token, if any.

        Returns:
            Number of deleted rows (0 or 1).
        """
        stmt = delete(OneTimeToken).where(OneTimeToken.user_id == user_id)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def consume(db: AsyncSession, token: str) -> bool:
        """Delete a token by value in one conditional statement.

        Of two requests racing on the same token only one deletes the row;
        the other gets False and must reject the token.

        Returns:
            True if this call removed the row.
        """
        stmt = delete(OneTimeToken).where(OneTimeToken.token == token)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count == 1

    @staticmethod
    async def delete_expired(db: AsyncSession, *, now: datetime) -> int:
        """Delete all expired tokens (periodic cleanup).

        Returns:
            Number of deleted rows.
        """
        stmt = delete(OneTimeToken).where(OneTimeToken.expires_at < now)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
