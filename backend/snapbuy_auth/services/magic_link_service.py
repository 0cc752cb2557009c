"""Magic link (one-time token) sign-in.

generate: resolve account → email a link → store the token (one per user)
redeem:   token → (conditional delete) → access token + refresh token

Tokens are single-use: a successful redemption deletes the row with a DELETE
keyed on the token value, and only the request whose DELETE hit a row gets a
token pair. An expired token is deleted when presented.
"""

import logging
import secrets
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from urllib.parse import quote, urlencode

from sqlalchemy.ext.asyncio import AsyncSession

from snapbuy_auth.core.auth import TokenPair, TokenSigner, get_token_signer
from snapbuy_auth.core.config import settings
from snapbuy_auth.core.email import send_magic_link_email
from snapbuy_auth.core.errors import (
    TokenExpiredError,
    TokenInvalidError,
    UserNotFoundError,
)
from snapbuy_auth.repositories.one_time_token_repository import (
    OneTimeTokenRepository,
)
from snapbuy_auth.repositories.user_repository import UserRepository
from snapbuy_auth.services.refresh_token_service import RefreshTokenService

logger = logging.getLogger(__name__)

EmailSender = Callable[..., Awaitable[None]]

# 32 bytes = 256 bits of entropy, URL-safe base64 encoded
_TOKEN_BYTES = 32


def build_login_link(token: str) -> str:
    """Absolute sign-in URL carrying the URL-encoded token."""
    params = urlencode({"token": token}, quote_via=quote)
    return f"{settings.app_base_url.rstrip('/')}{settings.ott_login_path}?{params}"


class MagicLinkService:
    """Issues and redeems magic link tokens.

    Args:
        db: Async database session. The caller owns the transaction.
        signer: Access token signer for redeemed links.
        email_sender: Coroutine taking to_email, name, link, ttl_minutes.
            Must raise MessageDispatchError on failure.
        ttl: Link lifetime. Defaults to settings.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        signer: TokenSigner | None = None,
        email_sender: EmailSender = send_magic_link_email,
        ttl: timedelta | None = None,
    ) -> None:
        self._db = db
        self._signer = signer or get_token_signer()
        self._email_sender = email_sender
        self._ttl = ttl or timedelta(seconds=settings.ott_ttl_seconds)

    async def generate(self, identifier: str, *, now: datetime | None = None) -> str:
        """Email a fresh sign-in link to the account.

        Any earlier link is revoked (and committed) first. The email goes out
        before the new token is stored: if dispatch fails the
        MessageDispatchError propagates and the user is left with no usable
        link at all.

        Args:
            identifier: Account email or display name.
            now: Issue time. Defaults to the current UTC time.

        Returns:
            The link that was sent.

        Raises:
            UserNotFoundError: If no account matches the identifier.
            MessageDispatchError: If the email could not be sent.
        """
        current = now or datetime.now(UTC)
        user = await UserRepository.get_by_identifier(self._db, identifier)
        if user is None:
            raise UserNotFoundError(identifier)

        if await OneTimeTokenRepository.delete_for_user(self._db, user.id):
            await self._db.commit()
            logger.info("Previous magic link revoked for user %s", user.id)

        token = secrets.token_urlsafe(_TOKEN_BYTES)
        link = build_login_link(token)

        await self._email_sender(
            to_email=user.email,
            name=user.name,
            link=link,
            ttl_minutes=int(self._ttl.total_seconds()) // 60,
        )

        await OneTimeTokenRepository.replace_for_user(
            self._db,
            user_id=user.id,
            token=token,
            expires_at=current + self._ttl,
            created_at=current,
        )
        logger.info("Magic link sent to user %s", user.id)
        return link

    async def redeem(self, token: str, *, now: datetime | None = None) -> TokenPair:
        """Exchange a magic link token for a token pair.

        Raises:
            TokenInvalidError: Unknown token, or its owner no longer exists.
            TokenExpiredError: Token past its expiry (deleted before raising).
        """
        current = now or datetime.now(UTC)
        ott = await OneTimeTokenRepository.get(self._db, token)
        if ott is None:
            raise TokenInvalidError("ott")

        if ott.is_expired(current):
            await OneTimeTokenRepository.delete(self._db, ott)
            await self._db.commit()
            logger.info("Expired magic link removed for user %s", ott.user_id)
            raise TokenExpiredError("ott")

        user = await UserRepository.get_by_id(self._db, ott.user_id)
        if user is None:
            raise TokenInvalidError("ott")

        if not await OneTimeTokenRepository.consume(self._db, token):
            logger.warning("Magic link already redeemed for user %s", user.id)
            raise TokenInvalidError("ott")
        refresh_tokens = RefreshTokenService(self._db, signer=self._signer)
        refresh = await refresh_tokens.create_for_user(user, now=current)
        logger.info("Magic link redeemed by user %s", user.id)
        return TokenPair(
            access_token=self._signer.issue(user, now=current),
            refresh_token=refresh.token,
        )
