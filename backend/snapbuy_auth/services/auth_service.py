"""Password and OTP sign-in, and registration."""

import hmac
import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from snapbuy_auth.core.auth import (
    TokenPair,
    TokenSigner,
    get_token_signer,
    hash_password,
    validate_password_strength,
    verify_password,
)
from snapbuy_auth.core.config import settings
from snapbuy_auth.core.errors import (
    InvalidCredentialsError,
    OtpVerificationError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from snapbuy_auth.models.user import ADMIN_ROLE, DEFAULT_ROLE, User
from snapbuy_auth.repositories.user_repository import UserRepository
from snapbuy_auth.services.otp_service import OtpFailure, OtpService, normalize_phone
from snapbuy_auth.services.refresh_token_service import RefreshTokenService

logger = logging.getLogger(__name__)


def resolve_roles(admin_key: str | None) -> list[str]:
    """ADMIN when the presented key matches the configured one, else USER.

    An empty configured key disables admin self-registration.
    """
    configured = settings.admin_registration_key.get_secret_value()
    if admin_key and configured and hmac.compare_digest(
        admin_key.encode(), configured.encode()
    ):
        return [ADMIN_ROLE]
    return [DEFAULT_ROLE]


class AuthService:
    """Sign-in and registration flows that end in a token pair.

    Args:
        db: Async database session. The caller owns the transaction.
        signer: Access token signer.
        otp_service: Verifier used by OTP sign-in.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        signer: TokenSigner | None = None,
        otp_service: OtpService | None = None,
    ) -> None:
        self._db = db
        self._signer = signer or get_token_signer()
        self._otp_service = otp_service or OtpService(db)
        self._refresh_tokens = RefreshTokenService(db, signer=self._signer)

    async def _issue_pair(self, user: User, now: datetime | None) -> TokenPair:
        current = now or datetime.now(UTC)
        refresh = await self._refresh_tokens.create_for_user(user, now=current)
        return TokenPair(
            access_token=self._signer.issue(user, now=current),
            refresh_token=refresh.token,
        )

    async def register(
        self,
        *,
        name: str,
        email: str,
        password: str,
        phone: str | None = None,
        admin_key: str | None = None,
        now: datetime | None = None,
    ) -> TokenPair:
        """Create an account and sign it in.

        Raises:
            UserAlreadyExistsError: If the email is taken.
            ValidationError: If the password is too weak.
        """
        if await UserRepository.get_by_email(self._db, email) is not None:
            raise UserAlreadyExistsError(
                f"User already exists with email: {email.strip().lower()}"
            )
        validate_password_strength(password)

        roles = resolve_roles(admin_key)
        user = await UserRepository.create(
            self._db,
            email=email,
            name=name,
            password_hash=hash_password(password),
            phone=normalize_phone(phone) if phone else None,
            roles=roles,
        )
        logger.info("User %s registered with roles %s", user.id, ",".join(roles))
        return await self._issue_pair(user, now)

    async def sign_in_with_password(
        self, *, email: str, password: str, now: datetime | None = None
    ) -> TokenPair:
        """Check an email/password pair.

        The bcrypt comparison runs even for unknown emails, and both failure
        modes raise the same error.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
        """
        user = await UserRepository.get_by_email(self._db, email)
        password_hash = user.password_hash if user else None
        if not verify_password(password, password_hash) or user is None:
            raise InvalidCredentialsError()
        return await self._issue_pair(user, now)

    async def sign_in_with_otp(
        self,
        *,
        phone: str,
        email: str,
        otp: str,
        now: datetime | None = None,
    ) -> TokenPair:
        """Sign in by confirming a phone OTP.

        Raises:
            UserNotFoundError: If no account matches the email.
            OtpVerificationError: If the code is missing, expired or wrong.
        """
        result = await self._otp_service.verify(phone, email, otp, now=now)
        if not result.success:
            failure = result.failure or OtpFailure.MISMATCH
            raise OtpVerificationError(failure.value, result.message)

        user = await UserRepository.get_by_email(self._db, email)
        if user is None:
            raise UserNotFoundError(email)
        return await self._issue_pair(user, now)
