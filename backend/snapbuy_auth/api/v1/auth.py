"""Authentication endpoints.

POST /auth/signIn        email + password, or phone + email + OTP
POST /auth/signUp        register and sign in
POST /auth/refreshToken  trade a refresh token for a new access token
GET  /auth/me            identity attached by the gatekeeper

Every sign-in path answers with {accessToken, refreshToken}.

Security considerations:
- signIn: constant-time comparison via DUMMY_HASH prevents user enumeration
- signUp: admin role only with the configured registration key
"""

import structlog
from fastapi import APIRouter, Request, status
from pydantic import EmailStr, Field, model_validator

from snapbuy_auth.api.deps import (
    AuthServiceDep,
    CurrentIdentity,
    RefreshTokenServiceDep,
)
from snapbuy_auth.api.v1.otp import PhoneNumber
from snapbuy_auth.core.auth import TokenPair
from snapbuy_auth.core.config import settings
from snapbuy_auth.core.rate_limiting import limiter
from snapbuy_auth.core.responses import CamelModel, TokenPairResponse

logger = structlog.get_logger()

router = APIRouter()


# ===================================================================
# Request / response models
# ===================================================================


class SignInRequest(CamelModel):
    """Request body for POST /auth/signIn.

    Either ``password`` or both ``phone`` and ``otp`` must be present.
    """

    email: EmailStr
    password: str | None = Field(None, min_length=1, max_length=128)
    phone: PhoneNumber | None = None
    otp: str | None = Field(None, min_length=1, max_length=10)

    @model_validator(mode="after")
    def check_credentials(self) -> "SignInRequest":
        if self.password is None and (self.phone is None or self.otp is None):
            raise ValueError("Provide either password, or phone and otp")
        return self


class SignUpRequest(CamelModel):
    """Request body for POST /auth/signUp."""

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    phone: PhoneNumber | None = None
    admin_key: str | None = Field(None, max_length=255)


class RefreshTokenRequest(CamelModel):
    """Request body for POST /auth/refreshToken."""

    token: str = Field(min_length=1, max_length=255)


class MeResponse(CamelModel):
    """Response body for GET /auth/me."""

    user_id: int
    email: str
    name: str
    roles: list[str]


def _to_response(pair: TokenPair) -> TokenPairResponse:
    return TokenPairResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )


# ===================================================================
# Endpoints
# ===================================================================


@router.post("/signIn", response_model=TokenPairResponse)
@limiter.limit(settings.rate_limit_auth)
async def sign_in(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SignInRequest,
    auth_service: AuthServiceDep,
) -> TokenPairResponse:
    """Sign in with a password, or with a phone OTP when no password is sent.

    Raises:
        InvalidCredentialsError: Wrong email/password.
        OtpVerificationError: OTP missing, expired or wrong.
        UserNotFoundError: OTP sign-in for an unknown email.
    """
    if body.password is not None:
        pair = await auth_service.sign_in_with_password(
            email=body.email, password=body.password
        )
    else:
        pair = await auth_service.sign_in_with_otp(
            phone=body.phone or "", email=body.email, otp=body.otp or ""
        )
    logger.info("User signed in", method="password" if body.password else "otp")
    return _to_response(pair)


@router.post(
    "/signUp",
    response_model=TokenPairResponse,
    status_code=status.HTTP_201_CREATED,
)
async def sign_up(
    body: SignUpRequest,
    auth_service: AuthServiceDep,
) -> TokenPairResponse:
    """Register a new account and return its first token pair.

    Raises:
        UserAlreadyExistsError: Email already registered.
        ValidationError: Password too weak.
    """
    pair = await auth_service.register(
        name=body.name,
        email=body.email,
        password=body.password,
        phone=body.phone,
        admin_key=body.admin_key,
    )
    return _to_response(pair)


@router.post("/refreshToken", response_model=TokenPairResponse)
async def refresh_token(
    body: RefreshTokenRequest,
    refresh_tokens: RefreshTokenServiceDep,
) -> TokenPairResponse:
    """Exchange a refresh token for a new access token.

    Raises:
        TokenExpiredError: Refresh token expired (and was deleted).
        TokenInvalidError: Unknown refresh token.
    """
    return _to_response(await refresh_tokens.exchange(body.token))


@router.get("/me", response_model=MeResponse)
async def get_me(identity: CurrentIdentity) -> MeResponse:
    """Return the authenticated caller.

    Raises:
        UnauthorizedError: No valid bearer token on the request.
    """
    return MeResponse(
        user_id=identity.user_id,
        email=identity.subject,
        name=identity.name,
        roles=list(identity.roles),
    )
