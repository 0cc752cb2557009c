"""Magic link (one-time token) endpoints.

POST /ott/sent   email a sign-in link; plain-text confirmation
GET|POST /ott/login   redeem the link's token for a token pair

Both accept their single parameter either as a query parameter (the link in
the email carries ?token=) or in a JSON body.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Body, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import Field

from snapbuy_auth.api.deps import MagicLinkServiceDep
from snapbuy_auth.core.auth import TokenPair
from snapbuy_auth.core.config import settings
from snapbuy_auth.core.errors import ValidationError
from snapbuy_auth.core.rate_limiting import limiter
from snapbuy_auth.core.responses import CamelModel, TokenPairResponse

logger = structlog.get_logger()

MAGIC_LINK_SENT_MESSAGE = "Magic link sent to your email. Please check your inbox."

router = APIRouter()


class OttSendRequest(CamelModel):
    """Request body for POST /ott/sent. Email or display name."""

    email: str = Field(min_length=1, max_length=255)


class OttLoginRequest(CamelModel):
    """Request body for /ott/login."""

    token: str = Field(min_length=1, max_length=255)


@router.post("/sent", response_class=PlainTextResponse)
@limiter.limit(settings.rate_limit_otp)
async def send_magic_link(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    magic_links: MagicLinkServiceDep,
    body: Annotated[OttSendRequest | None, Body()] = None,
    email: Annotated[str | None, Query(max_length=255)] = None,
    username: Annotated[str | None, Query(max_length=255)] = None,
) -> str:
    """Email a single-use sign-in link.

    Raises:
        ValidationError: No identifier supplied.
        UserNotFoundError: No account matches the identifier.
        MessageDispatchError: The email could not be sent (502).
    """
    identifier = (body.email if body else None) or email or username
    if not identifier:
        raise ValidationError("Email is required")
    await magic_links.generate(identifier)
    logger.info("Magic link requested")
    return MAGIC_LINK_SENT_MESSAGE


@router.api_route("/login", methods=["GET", "POST"], response_model=TokenPairResponse)
async def login_with_magic_link(
    magic_links: MagicLinkServiceDep,
    body: Annotated[OttLoginRequest | None, Body()] = None,
    token: Annotated[str | None, Query(max_length=255)] = None,
) -> TokenPairResponse:
    """Redeem a magic link token.

    Raises:
        ValidationError: No token supplied.
        TokenInvalidError: Unknown token.
        TokenExpiredError: Token expired (and was deleted).
    """
    value = (body.token if body else None) or token
    if not value:
        raise ValidationError("Token is required")
    pair: TokenPair = await magic_links.redeem(value)
    return TokenPairResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )
