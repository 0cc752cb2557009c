"""Shared dependencies for API endpoints.

Identity comes from the gatekeeper middleware (core/gatekeeper.py), which
attaches it to request.state. Signers and message senders are dependencies so
tests can swap them through app.dependency_overrides.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from snapbuy_auth.core.auth import TokenSigner, get_token_signer
from snapbuy_auth.core.database import get_db
from snapbuy_auth.core.email import send_magic_link_email
from snapbuy_auth.core.errors import UnauthorizedError
from snapbuy_auth.core.gatekeeper import AuthenticatedIdentity
from snapbuy_auth.core.sms import send_sms
from snapbuy_auth.services.auth_service import AuthService
from snapbuy_auth.services.magic_link_service import EmailSender, MagicLinkService
from snapbuy_auth.services.otp_service import OtpService, SmsSender
from snapbuy_auth.services.refresh_token_service import RefreshTokenService


def get_current_identity(request: Request) -> AuthenticatedIdentity:
    """Identity attached by the gatekeeper.

    Raises:
        UnauthorizedError: If the request carried no valid bearer token.
    """
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise UnauthorizedError()
    return identity


def get_sms_sender() -> SmsSender:
    return send_sms


def get_email_sender() -> EmailSender:
    return send_magic_link_email


# Type aliases for cleaner endpoint signatures
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentIdentity = Annotated[AuthenticatedIdentity, Depends(get_current_identity)]
Signer = Annotated[TokenSigner, Depends(get_token_signer)]


def get_otp_service(
    db: DbSession,
    sms_sender: Annotated[SmsSender, Depends(get_sms_sender)],
) -> OtpService:
    return OtpService(db, sms_sender=sms_sender)


def get_refresh_token_service(db: DbSession, signer: Signer) -> RefreshTokenService:
    return RefreshTokenService(db, signer=signer)


def get_magic_link_service(
    db: DbSession,
    signer: Signer,
    email_sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> MagicLinkService:
    return MagicLinkService(db, signer=signer, email_sender=email_sender)


def get_auth_service(
    db: DbSession,
    signer: Signer,
    otp_service: Annotated[OtpService, Depends(get_otp_service)],
) -> AuthService:
    return AuthService(db, signer=signer, otp_service=otp_service)


OtpServiceDep = Annotated[OtpService, Depends(get_otp_service)]
RefreshTokenServiceDep = Annotated[
    RefreshTokenService, Depends(get_refresh_token_service)
]
MagicLinkServiceDep = Annotated[MagicLinkService, Depends(get_magic_link_service)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
