"""Email sending via Resend API.

Simple HTTP POST to Resend for magic link emails, plain-text format.
"""

import logging

import httpx

from snapbuy_auth.core.config import settings
from snapbuy_auth.core.errors import MessageDispatchError

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


async def send_magic_link_email(
    *, to_email: str, name: str, link: str, ttl_minutes: int
) -> None:
    """Send a magic link sign-in email via Resend.

    Args:
        to_email: Recipient email address.
        name: Recipient display name for the greeting.
        link: Fully built sign-in link carrying the one-time token.
        ttl_minutes: Link lifetime, quoted in the body.

    Raises:
        MessageDispatchError: If Resend is not configured, unreachable, or
            rejects the message.
    """
    api_key = settings.resend_api_key.get_secret_value()
    if not api_key:
        logger.warning("RESEND_API_KEY is not set; cannot send magic link email")
        raise MessageDispatchError("Email delivery is not configured")

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": "Your SnapBuy sign-in link",
                    "text": (
                        f"Hello {name},\n\n"
                        "Click the link below to sign in to your SnapBuy account:\n\n"
                        f"{link}\n\n"
                        f"This link is valid for {ttl_minutes} minutes. "
                        "If you didn't request this, you can safely ignore this email."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Failed to send magic link email", exc_info=True)
        raise MessageDispatchError("Failed to send magic link email") from exc
