"""Phone OTP endpoints.

POST /otp/send, /otp/verify, /otp/resend. OTP-level failures (no code,
expired, wrong code, SMS not delivered) come back as 200 with
success=false; only an unknown account is an error response.
"""

import re
from typing import Annotated

import structlog
from fastapi import APIRouter, Request
from pydantic import AfterValidator, EmailStr, Field

from snapbuy_auth.api.deps import OtpServiceDep
from snapbuy_auth.core.config import settings
from snapbuy_auth.core.rate_limiting import limiter
from snapbuy_auth.core.responses import CamelModel, OtpResponse
from snapbuy_auth.services.otp_service import OtpResult

logger = structlog.get_logger()

router = APIRouter()


def _phone_pattern(country_code: str) -> re.Pattern[str]:
    """10 local digits, optionally already carrying the configured prefix.

    Any other "+<country>" prefix is rejected; normalization would otherwise
    prepend the configured code a second time.
    """
    return re.compile(rf"({re.escape(country_code)})?\d{{10}}")


def _check_phone(value: str) -> str:
    cleaned = "".join(value.split())
    if not _phone_pattern(settings.otp_country_code).fullmatch(cleaned):
        raise ValueError(
            f"Phone number must be 10 digits, optionally prefixed with "
            f"{settings.otp_country_code}"
        )
    return cleaned


PhoneNumber = Annotated[str, AfterValidator(_check_phone)]


# ===================================================================
# Request models
# ===================================================================


class OtpSendRequest(CamelModel):
    """Request body for POST /otp/send and /otp/resend."""

    phone: PhoneNumber
    email: EmailStr | None = None


class OtpVerifyRequest(CamelModel):
    """Request body for POST /otp/verify."""

    phone: PhoneNumber
    email: EmailStr
    otp: str = Field(min_length=1, max_length=10)


def _to_response(result: OtpResult) -> OtpResponse:
    return OtpResponse(
        success=result.success,
        message=result.message,
        expires_at=result.expires_at,
    )


# ===================================================================
# Endpoints
# ===================================================================


@router.post("/send", response_model=OtpResponse)
@limiter.limit(settings.rate_limit_otp)
async def send_otp(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: OtpSendRequest,
    otp_service: OtpServiceDep,
) -> OtpResponse:
    """Text a fresh code to the phone."""
    logger.info("Sending OTP")
    return _to_response(await otp_service.send(body.phone))


@router.post("/verify", response_model=OtpResponse)
async def verify_otp(
    body: OtpVerifyRequest,
    otp_service: OtpServiceDep,
) -> OtpResponse:
    """Check a code and attach the verification to the account.

    Raises:
        UserNotFoundError: If no account matches the email.
    """
    logger.info("Verifying OTP")
    return _to_response(await otp_service.verify(body.phone, body.email, body.otp))


@router.post("/resend", response_model=OtpResponse)
@limiter.limit(settings.rate_limit_otp)
async def resend_otp(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: OtpSendRequest,
    otp_service: OtpServiceDep,
) -> OtpResponse:
    """Discard pending codes for the phone and text a new one."""
    logger.info("Resending OTP")
    return _to_response(await otp_service.resend(body.phone))
