"""SMS sending via the Twilio REST API.

Plain form POST with HTTP basic auth. Returns a success flag instead of
raising: OTP callers report a failed dispatch in their own result envelope.
"""

import logging

import httpx

from snapbuy_auth.core.config import settings

logger = logging.getLogger(__name__)

_TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
_TWILIO_TIMEOUT = 10.0


def mask_number(phone: str) -> str:
    """Hide all but the last four digits of a phone number for logging."""
    return "****" + phone[-4:] if len(phone) >= 4 else "****"


async def send_sms(to: str, body: str) -> bool:
    """Send a text message.

    Args:
        to: Destination in international form (e.g. "+919876543210").
        body: Message text.

    Returns:
        True if Twilio accepted the message, False otherwise.
    """
    sid = settings.twilio_account_sid
    auth_token = settings.twilio_auth_token.get_secret_value()
    if not (sid and auth_token and settings.twilio_from_number):
        logger.warning("Twilio is not configured; SMS to %s not sent", mask_number(to))
        return False

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{_TWILIO_API_BASE}/Accounts/{sid}/Messages.json",
                auth=(sid, auth_token),
                data={"To": to, "From": settings.twilio_from_number, "Body": body},
                timeout=_TWILIO_TIMEOUT,
            )
            resp.raise_for_status()
    except httpx.HTTPError:
        logger.warning("Failed to send SMS to %s", mask_number(to), exc_info=True)
        return False

    logger.info("SMS sent to %s", mask_number(to))
    return True
