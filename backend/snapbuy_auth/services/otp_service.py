"""Phone OTP issue and verification.

Per-phone lifecycle:
    no code → unverified (code, expiry) → verified
                                       ↘ expired → purged by cleanup

Only the most recent unverified code for a phone is ever checked. Failed
checks (wrong code, expired code) leave the row untouched; the caller gets a
result with success=False and a reason, never an exception. The one hard
failure is an unknown account at verify time.
"""

import logging
import secrets
import string
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from snapbuy_auth.core.config import settings
from snapbuy_auth.core.errors import UserNotFoundError
from snapbuy_auth.core.sms import mask_number, send_sms
from snapbuy_auth.repositories.otp_verification_repository import (
    OtpVerificationRepository,
)
from snapbuy_auth.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

SmsSender = Callable[[str, str], Awaitable[bool]]

MSG_SENT = "OTP sent successfully"
MSG_SEND_FAILED = "Failed to send OTP"
MSG_VERIFIED = "Verified successfully!"
MSG_NOT_FOUND = "No OTP found"
MSG_EXPIRED = "OTP has expired"
MSG_MISMATCH = "Invalid OTP"

_SMS_TEMPLATE = "Your code: {otp}. Expires in {minutes} min."


class OtpFailure(StrEnum):
    """Why an OTP operation did not succeed."""

    NOT_FOUND = "OTP_NOT_FOUND"
    EXPIRED = "OTP_EXPIRED"
    MISMATCH = "OTP_MISMATCH"
    DISPATCH_FAILED = "DISPATCH_FAILED"


@dataclass(frozen=True)
class OtpResult:
    """Outcome of send / verify / resend.

    Attributes:
        success: Whether the operation succeeded.
        message: Human-readable outcome, returned to the client as-is.
        expires_at: Code expiry on success, None otherwise.
        failure: Machine-readable reason when success is False.
    """

    success: bool
    message: str
    expires_at: datetime | None = None
    failure: OtpFailure | None = None


def normalize_phone(phone: str, country_code: str | None = None) -> str:
    """Prefix the country code unless already present.

    String transform only; applying it twice gives the same result.

    Args:
        phone: Raw phone number from the request.
        country_code: Prefix to ensure. Defaults to settings.

    Returns:
        Phone number starting with the country code.
    """
    code = country_code or settings.otp_country_code
    cleaned = "".join(phone.split())
    if cleaned.startswith(code):
        return cleaned
    return code + cleaned


def mask_phone(phone: str) -> str:
    """Mask a phone number for logs: "****" + last four digits."""
    return mask_number(phone)


def generate_code(length: int | None = None) -> str:
    """Draw an OTP of independent random digits from the OS CSPRNG."""
    size = length or settings.otp_length
    return "".join(secrets.choice(string.digits) for _ in range(size))


class OtpService:
    """Issues and checks phone OTP codes.

    Args:
        db: Async database session. The caller owns the transaction.
        sms_sender: Coroutine sending (to, body), returning success.
        ttl: Code lifetime. Defaults to settings.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        sms_sender: SmsSender = send_sms,
        ttl: timedelta | None = None,
    ) -> None:
        self._db = db
        self._sms_sender = sms_sender
        self._ttl = ttl or timedelta(seconds=settings.otp_ttl_seconds)

    async def send(self, phone: str, *, now: datetime | None = None) -> OtpResult:
        """Issue a new code for a phone and text it.

        Globally expired rows are purged first. The new row is kept even if
        the SMS could not be sent.

        Args:
            phone: Raw phone number.
            now: Issue time. Defaults to the current UTC time.

        Returns:
            OtpResult; success reflects SMS dispatch.
        """
        current = now or datetime.now(UTC)
        normalized = normalize_phone(phone)
        await self.cleanup_expired(now=current)

        code = generate_code()
        row = await OtpVerificationRepository.create(
            self._db,
            phone=normalized,
            otp=code,
            created_at=current,
            expires_at=current + self._ttl,
        )

        body = _SMS_TEMPLATE.format(
            otp=code, minutes=int(self._ttl.total_seconds()) // 60
        )
        if not await self._sms_sender(normalized, body):
            logger.warning("OTP dispatch failed for %s", mask_phone(normalized))
            return OtpResult(
                success=False,
                message=MSG_SEND_FAILED,
                failure=OtpFailure.DISPATCH_FAILED,
            )

        logger.info("OTP sent to %s", mask_phone(normalized))
        return OtpResult(success=True, message=MSG_SENT, expires_at=row.expires_at)

    async def verify(
        self,
        phone: str,
        email: str,
        otp: str,
        *,
        now: datetime | None = None,
    ) -> OtpResult:
        """Check a code against the latest pending one for the phone.

        Args:
            phone: Raw phone number.
            email: Account the verification is attached to.
            otp: Code entered by the user.
            now: Check time. Defaults to the current UTC time.

        Returns:
            OtpResult. On success the row is marked verified and linked.

        Raises:
            UserNotFoundError: If no account matches the email.
        """
        current = now or datetime.now(UTC)
        normalized = normalize_phone(phone)

        user = await UserRepository.get_by_email(self._db, email)
        if user is None:
            raise UserNotFoundError(email)

        row = await OtpVerificationRepository.latest_unverified(self._db, normalized)
        if row is None:
            return OtpResult(
                success=False, message=MSG_NOT_FOUND, failure=OtpFailure.NOT_FOUND
            )
        if row.is_expired(current):
            logger.info("Expired OTP presented for %s", mask_phone(normalized))
            return OtpResult(
                success=False, message=MSG_EXPIRED, failure=OtpFailure.EXPIRED
            )
        if not secrets.compare_digest(row.otp.encode(), otp.strip().encode()):
            logger.info("Wrong OTP presented for %s", mask_phone(normalized))
            return OtpResult(
                success=False, message=MSG_MISMATCH, failure=OtpFailure.MISMATCH
            )

        row.verified = True
        row.user_id = user.id
        await self._db.flush()
        logger.info("OTP verified for %s (user %s)", mask_phone(normalized), user.id)
        return OtpResult(success=True, message=MSG_VERIFIED, expires_at=row.expires_at)

    async def resend(self, phone: str, *, now: datetime | None = None) -> OtpResult:
        """Drop every pending code for the phone and send a fresh one."""
        normalized = normalize_phone(phone)
        await OtpVerificationRepository.delete_unverified(self._db, normalized)
        return await self.send(normalized, now=now)

    async def is_phone_verified(self, phone: str) -> bool:
        return await OtpVerificationRepository.exists_verified(
            self._db, normalize_phone(phone)
        )

    async def cleanup_expired(self, *, now: datetime | None = None) -> int:
        """Delete every code past its expiry. Safe to call repeatedly.

        Returns:
            Number of deleted rows.
        """
        deleted = await OtpVerificationRepository.delete_expired(
            self._db, now=now or datetime.now(UTC)
        )
        if deleted:
            logger.info("Cleaned up %d expired OTP(s)", deleted)
        return deleted
