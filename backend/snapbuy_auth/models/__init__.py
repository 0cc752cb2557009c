"""SQLAlchemy ORM models for SnapBuy auth.

All models are exported from this module for convenient imports:
    from snapbuy_auth.models import User, RefreshToken, ...

- user.py: User (credential store)
- refresh_token.py: RefreshToken (one per user)
- otp_verification.py: OtpVerification (phone codes)
- one_time_token.py: OneTimeToken (magic links, one per user)
"""

from snapbuy_auth.models.base import Base, TimestampMixin, UTCDateTime
from snapbuy_auth.models.one_time_token import OneTimeToken
from snapbuy_auth.models.otp_verification import OtpVerification
from snapbuy_auth.models.refresh_token import RefreshToken
from snapbuy_auth.models.user import ADMIN_ROLE, DEFAULT_ROLE, User

__all__ = [
    "ADMIN_ROLE",
    "Base",
    "DEFAULT_ROLE",
    "OneTimeToken",
    "OtpVerification",
    "RefreshToken",
    "TimestampMixin",
    "UTCDateTime",
    "User",
]
