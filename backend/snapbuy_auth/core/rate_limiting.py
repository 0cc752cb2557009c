"""Rate limiting configuration using slowapi.

Security: Throttles the endpoints that send messages (OTP, magic link) or
accept passwords, so they cannot be used to flood phones and inboxes or to
brute-force credentials.

Requests carrying a verifiable bearer token are keyed on its subject
(per-user); everything else falls back to IP-based keying.

Usage in routers:
    from snapbuy_auth.core.rate_limiting import limiter

    @router.post("/send")
    @limiter.limit(settings.rate_limit_otp)
    async def send_otp(request: Request, ...):
        ...
"""

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from snapbuy_auth.core.auth import TokenStatus, get_token_signer
from snapbuy_auth.core.config import settings
from snapbuy_auth.core.responses import error_response

_BEARER_PREFIX = "Bearer "

_WINDOW_SECONDS = {"second": 1, "minute": 60, "hour": 3600, "day": 86400}
_DEFAULT_RETRY_AFTER = "60"


def _rate_limit_key_func(request: Request) -> str:
    """Get rate limit key from request.

    Key format:
    - Valid bearer token: "user:{sub}"
    - No/invalid token: "unauth:{ip}"

    Args:
        request: The incoming request.

    Returns:
        Rate limit key string.
    """
    header = request.headers.get("Authorization", "")
    if header.startswith(_BEARER_PREFIX):
        check = get_token_signer().inspect(header[len(_BEARER_PREFIX) :].strip())
        if check.status is TokenStatus.VALID and check.subject:
            return f"user:{check.subject}"

    return f"unauth:{get_remote_address(request)}"


def _retry_after_seconds(detail: object) -> str:
    """Window length in seconds from a limit description like "5 per 1 hour".

    Falls back to 60 seconds when the description cannot be parsed.
    """
    try:
        _, _, amount, unit = str(detail).split()
        seconds = int(amount) * _WINDOW_SECONDS[unit.rstrip("s")]
    except (ValueError, KeyError):
        return _DEFAULT_RETRY_AFTER
    return str(seconds)


# Global limiter instance
# In-memory storage (single instance); for multi-instance deployments
# configure Redis storage via RATELIMIT_STORAGE_URL
limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(
    request: Request,
    exc: RateLimitExceeded,
) -> Response:
    """Handle rate limit exceeded errors.

    Returns 429 Too Many Requests with the standard error envelope.

    Args:
        request: The incoming request.
        exc: The rate limit exception.

    Returns:
        JSONResponse with 429 status and retry-after header.
    """
    retry_after = _retry_after_seconds(exc.detail)

    return error_response(
        status_code=429,
        code="RATE_LIMITED",
        message=f"Rate limit exceeded: {exc.detail}",
        path=request.url.path,
        headers={"Retry-After": retry_after},
    )
