"""Refresh token ledger.

At most one refresh token per user. Creating one replaces whatever the user
had; lookups always apply the expiry check before handing a row back, and an
expired row is deleted as soon as it is seen.

Exchange flow (POST /auth/refreshToken):
    presented token → find_valid → re-sign access token → rotate (default)
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from snapbuy_auth.core.auth import TokenPair, TokenSigner, get_token_signer
from snapbuy_auth.core.config import settings
from snapbuy_auth.core.errors import (
    TokenExpiredError,
    TokenInvalidError,
    UserNotFoundError,
)
from snapbuy_auth.models.refresh_token import RefreshToken
from snapbuy_auth.models.user import User
from snapbuy_auth.repositories.refresh_token_repository import (
    RefreshTokenRepository,
)
from snapbuy_auth.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

# 32 bytes = 256 bits of entropy
_TOKEN_BYTES = 32


class RefreshStatus(StrEnum):
    FOUND = "found"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class RefreshLookup:
    """Result of RefreshTokenService.find_valid.

    Attributes:
        status: FOUND, EXPIRED (row was deleted) or NOT_FOUND.
        token: The live row when status is FOUND, else None.
    """

    status: RefreshStatus
    token: RefreshToken | None = None


class RefreshTokenService:
    """Creates, looks up and exchanges refresh tokens.

    Args:
        db: Async database session. The caller owns the transaction.
        signer: Access token signer used by exchange().
        ttl: Refresh token lifetime. Defaults to settings.
        rotate_on_use: Issue a fresh refresh token on every exchange.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        signer: TokenSigner | None = None,
        ttl: timedelta | None = None,
        rotate_on_use: bool | None = None,
    ) -> None:
        self._db = db
        self._signer = signer or get_token_signer()
        self._ttl = ttl or timedelta(days=settings.refresh_token_ttl_days)
        self._rotate_on_use = (
            settings.refresh_token_rotate_on_use
            if rotate_on_use is None
            else rotate_on_use
        )

    async def create(
        self, identifier: str, *, now: datetime | None = None
    ) -> RefreshToken:
        """Replace the user's refresh token with a new one.

        Args:
            identifier: Account email.
            now: Issue time. Defaults to the current UTC time.

        Returns:
            The new RefreshToken row.

        Raises:
            UserNotFoundError: If no account matches the identifier.
        """
        user = await UserRepository.get_by_email(self._db, identifier)
        if user is None:
            raise UserNotFoundError(identifier)
        return await self.create_for_user(user, now=now)

    async def create_for_user(
        self, user: User, *, now: datetime | None = None
    ) -> RefreshToken:
        issued_at = now or datetime.now(UTC)
        row = await RefreshTokenRepository.replace_for_user(
            self._db,
            user_id=user.id,
            token=secrets.token_urlsafe(_TOKEN_BYTES),
            issued_at=issued_at,
            expires_at=issued_at + self._ttl,
        )
        logger.info("Refresh token issued for user %s", user.id)
        return row

    async def find_valid(
        self, token: str, *, now: datetime | None = None
    ) -> RefreshLookup:
        """Look up a presented token, enforcing expiry.

        An expired row is deleted and committed before returning EXPIRED, so
        the deletion survives even when the caller turns the result into an
        error response.
        """
        row = await RefreshTokenRepository.get_by_token(self._db, token)
        if row is None:
            return RefreshLookup(status=RefreshStatus.NOT_FOUND)
        if row.is_expired(now or datetime.now(UTC)):
            await RefreshTokenRepository.delete(self._db, row)
            await self._db.commit()
            logger.info("Expired refresh token removed for user %s", row.user_id)
            return RefreshLookup(status=RefreshStatus.EXPIRED)
        return RefreshLookup(status=RefreshStatus.FOUND, token=row)

    async def verify_expiry(
        self, row: RefreshToken, *, now: datetime | None = None
    ) -> RefreshToken:
        """Return the row unchanged, or delete it and raise if expired.

        Raises:
            TokenExpiredError: If the row is past its expiry.
        """
        if row.is_expired(now or datetime.now(UTC)):
            await RefreshTokenRepository.delete(self._db, row)
            await self._db.commit()
            raise TokenExpiredError("refresh")
        return row

    async def exchange(self, token: str, *, now: datetime | None = None) -> TokenPair:
        """Trade a refresh token for a new access token.

        With rotation on (default) the presented token is replaced by a new
        one and stops working. With rotation off the same refresh token is
        echoed back until it expires.

        Raises:
            TokenInvalidError: Unknown token, or its owner no longer exists.
            TokenExpiredError: Token found but past its expiry (now deleted).
        """
        current = now or datetime.now(UTC)
        lookup = await self.find_valid(token, now=current)
        if lookup.status is RefreshStatus.EXPIRED:
            raise TokenExpiredError("refresh")
        if lookup.token is None:
            raise TokenInvalidError("refresh")

        user = await UserRepository.get_by_id(self._db, lookup.token.user_id)
        if user is None:
            raise TokenInvalidError("refresh")

        access_token = self._signer.issue(user, now=current)
        if self._rotate_on_use:
            if not await RefreshTokenRepository.consume(self._db, token):
                logger.warning("Refresh token already rotated for user %s", user.id)
                raise TokenInvalidError("refresh")
            refresh = await self.create_for_user(user, now=current)
            return TokenPair(access_token=access_token, refresh_token=refresh.token)
        return TokenPair(access_token=access_token, refresh_token=lookup.token.token)
