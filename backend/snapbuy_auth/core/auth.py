"""Bearer token signing and password helpers.

Pipeline:
- TokenSigner.issue: HS512 access token for a user
- TokenSigner.inspect: typed VALID / EXPIRED / INVALID check (gatekeeper)
- TokenSigner.validate / extract_*: claim projections for services
- hash_password / verify_password: bcrypt with DUMMY_HASH timing defense
"""

import base64
import binascii
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from functools import lru_cache
from typing import Any, Protocol

import bcrypt
import jwt

from snapbuy_auth.core.config import settings
from snapbuy_auth.core.errors import (
    TokenExpiredError,
    TokenInvalidError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Only algorithm accepted on decode; blocks alg=none and algorithm substitution.
_ALGORITHM = "HS512"

_REQUIRED_CLAIMS = ["sub", "exp", "iat"]

# bcrypt ignores (bcrypt>=5 rejects) input beyond 72 bytes
_BCRYPT_MAX_BYTES = 72

# Pre-computed bcrypt hash for timing-safe comparison on user-not-found.
# Security: prevents user enumeration via response time differences.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"


class TokenSubject(Protocol):
    """What the signer needs to know about a user."""

    id: int
    email: str
    name: str
    roles: list[str]


class TokenStatus(StrEnum):
    """Outcome of a bearer token check."""

    VALID = "valid"
    EXPIRED = "expired"
    INVALID = "invalid"


@dataclass(frozen=True)
class TokenCheck:
    """Result of TokenSigner.inspect.

    Attributes:
        status: VALID, EXPIRED (signature fine, window elapsed) or INVALID.
        claims: Decoded claims when the signature verified, else None.
    """

    status: TokenStatus
    claims: dict[str, Any] | None = None

    @property
    def subject(self) -> str | None:
        return self.claims.get("sub") if self.claims else None


@dataclass(frozen=True)
class TokenPair:
    """Access token plus refresh token handed out on every sign-in path."""

    access_token: str
    refresh_token: str


def decode_secret(secret_b64: str) -> bytes:
    """Decode a base64 signing secret into the raw HMAC key.

    Raises:
        ValueError: If the secret is not valid base64.
    """
    try:
        return base64.b64decode(secret_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Signing secret must be base64 encoded") from exc


class TokenSigner:
    """Issues and checks HS512-signed access tokens.

    Claims are {sub: email, roles, userId, name, iat, exp}. Expiry is
    compared against an explicit clock so callers (and tests) can pass
    ``now``.

    Args:
        secret_b64: Base64-encoded HMAC key.
        access_token_ttl: Lifetime of issued tokens.
    """

    def __init__(self, secret_b64: str, *, access_token_ttl: timedelta) -> None:
        self._key = decode_secret(secret_b64)
        self._ttl = access_token_ttl

    @property
    def access_token_ttl(self) -> timedelta:
        return self._ttl

    def issue(self, user: TokenSubject, *, now: datetime | None = None) -> str:
        """Sign a new access token for a user.

        Args:
            user: Account the token speaks for.
            now: Issue time. Defaults to the current UTC time.

        Returns:
            Compact JWS string.
        """
        issued_at = now or datetime.now(UTC)
        payload = {
            "sub": user.email,
            "roles": list(user.roles),
            "userId": user.id,
            "name": user.name,
            "iat": issued_at,
            "exp": issued_at + self._ttl,
        }
        return jwt.encode(payload, self._key, algorithm=_ALGORITHM)

    def inspect(self, token: str, *, now: datetime | None = None) -> TokenCheck:
        """Check signature and expiry without raising.

        Args:
            token: Compact JWS string.
            now: Clock for the expiry comparison.

        Returns:
            TokenCheck with claims when the signature verified.
        """
        try:
            claims = jwt.decode(
                token,
                self._key,
                algorithms=[_ALGORITHM],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": _REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidTokenError:
            return TokenCheck(status=TokenStatus.INVALID)

        exp = claims.get("exp")
        if not isinstance(exp, int | float):
            return TokenCheck(status=TokenStatus.INVALID)
        current = now or datetime.now(UTC)
        if current.timestamp() >= exp:
            return TokenCheck(status=TokenStatus.EXPIRED, claims=claims)
        return TokenCheck(status=TokenStatus.VALID, claims=claims)

    def validate(
        self,
        token: str,
        expected_subject: str,
        *,
        now: datetime | None = None,
    ) -> bool:
        """True iff the token verifies, is unexpired and names the subject.

        Fails closed: any malformed, forged or expired token is False.
        """
        check = self.inspect(token, now=now)
        return (
            check.status is TokenStatus.VALID and check.subject == expected_subject
        )

    def _verified_claims(
        self, token: str, now: datetime | None = None
    ) -> dict[str, Any]:
        check = self.inspect(token, now=now)
        if check.status is TokenStatus.EXPIRED:
            raise TokenExpiredError("access")
        if check.status is TokenStatus.INVALID or check.claims is None:
            raise TokenInvalidError("access")
        return check.claims

    def extract_subject(self, token: str, *, now: datetime | None = None) -> str:
        """Return the ``sub`` claim.

        Raises:
            TokenExpiredError: Signature valid but the token expired.
            TokenInvalidError: Parsing or signature verification failed.
        """
        return str(self._verified_claims(token, now)["sub"])

    def extract_expiry(self, token: str, *, now: datetime | None = None) -> datetime:
        """Return the ``exp`` claim as an aware UTC datetime.

        Raises:
            TokenExpiredError: Signature valid but the token expired.
            TokenInvalidError: Parsing or signature verification failed.
        """
        exp = self._verified_claims(token, now)["exp"]
        return datetime.fromtimestamp(exp, tz=UTC)


@lru_cache(maxsize=1)
def get_token_signer() -> TokenSigner:
    """Build the process-wide signer from settings.

    Outside production an unset JWT_SECRET falls back to an ephemeral random
    key, so tokens stop verifying on restart.
    """
    secret = settings.jwt_secret.get_secret_value()
    if not secret:
        logger.warning("JWT_SECRET is not set; signing with an ephemeral key")
        secret = base64.b64encode(secrets.token_bytes(64)).decode()
    return TokenSigner(
        secret,
        access_token_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
    )


def validate_password_strength(password: str) -> None:
    """Validate password meets strength requirements.

    8 characters minimum, at most 72 UTF-8 bytes, letter + number.

    Raises:
        ValidationError: If password doesn't meet requirements.
    """
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if len(password.encode()) > _BCRYPT_MAX_BYTES:
        raise ValidationError("Password must be at most 72 bytes")
    if not re.search(r"[a-zA-Z]", password):
        raise ValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one number")


def hash_password(password: str) -> str:
    """Hash a plain-text password with bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Compare a password against a stored bcrypt hash.

    When there is no stored hash (unknown user, passwordless account) the
    comparison still runs against DUMMY_HASH so response time does not reveal
    whether the account exists.

    Args:
        password: Plain-text password from the request.
        password_hash: Stored hash, or None.

    Returns:
        True only when a stored hash exists and matches.
    """
    candidate = password.encode()[:_BCRYPT_MAX_BYTES]
    if password_hash is None:
        bcrypt.checkpw(candidate, DUMMY_HASH)
        return False
    return bcrypt.checkpw(candidate, password_hash.encode())
