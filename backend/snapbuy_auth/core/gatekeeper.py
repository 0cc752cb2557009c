"""Per-request bearer token gatekeeper.

Runs once per request, before routing:

1. Allow-listed path → pass through untouched.
2. No "Authorization: Bearer ..." header → pass through without identity.
3. Token expired → 401 TOKEN_EXPIRED. Token malformed/forged → 401
   TOKEN_INVALID. Clients retry the refresh flow only on TOKEN_EXPIRED.
4. Token valid → load the account; missing account → 401 TOKEN_INVALID.
   Otherwise attach an AuthenticatedIdentity to request.state.identity.

Endpoints that require a caller depend on CurrentIdentity (api/deps.py),
which turns a missing identity into 401 UNAUTHORIZED.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from snapbuy_auth.core.auth import TokenSigner, TokenStatus
from snapbuy_auth.core.errors import APIError, TokenExpiredError, TokenInvalidError
from snapbuy_auth.core.responses import error_response
from snapbuy_auth.models.user import User

logger = structlog.get_logger()

UserLoader = Callable[[str], Awaitable[User | None]]

_BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Who the current request speaks for.

    Attributes:
        user_id: Account primary key.
        subject: Token subject (account email).
        name: Display name.
        roles: Granted role names.
    """

    user_id: int
    subject: str
    name: str
    roles: tuple[str, ...]

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass(frozen=True)
class PublicPath:
    """One allow-list entry.

    Parsed from "/exact", "/prefix/*", or either form preceded by an HTTP
    method ("GET /api/v1/products").
    """

    path: str
    prefix: bool = False
    method: str | None = None

    @classmethod
    def parse(cls, entry: str) -> "PublicPath":
        method, _, rest = entry.strip().rpartition(" ")
        path = rest.strip()
        prefix = path.endswith("/*")
        if prefix:
            path = path[:-2] or "/"
        return cls(path=path, prefix=prefix, method=method.strip().upper() or None)

    def matches(self, method: str, path: str) -> bool:
        if self.method is not None and self.method != method.upper():
            return False
        if self.prefix:
            base = self.path.rstrip("/")
            return path == base or path.startswith(base + "/")
        return path == self.path


def extract_bearer_token(request: Request) -> str | None:
    """Token from the Authorization header, or None if absent/not Bearer."""
    header = request.headers.get("Authorization")
    if not header or not header.startswith(_BEARER_PREFIX):
        return None
    token = header[len(_BEARER_PREFIX) :].strip()
    return token or None


class AuthGatekeeperMiddleware(BaseHTTPMiddleware):
    """Authenticates bearer tokens and attaches the caller's identity.

    Args:
        app: Downstream ASGI app.
        signer_factory: Returns the TokenSigner to check tokens with.
        user_loader: Coroutine resolving a token subject to a User.
        public_paths: Allow-list entries that skip authentication.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        signer_factory: Callable[[], TokenSigner],
        user_loader: UserLoader,
        public_paths: Sequence[str],
    ) -> None:
        super().__init__(app)
        self._signer_factory = signer_factory
        self._user_loader = user_loader
        self._public_paths = [PublicPath.parse(entry) for entry in public_paths]

    def is_public(self, method: str, path: str) -> bool:
        return any(entry.matches(method, path) for entry in self._public_paths)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Authenticate the request, or reject it with a 401."""
        if self.is_public(request.method, request.url.path):
            return await call_next(request)

        token = extract_bearer_token(request)
        if token is None:
            return await call_next(request)

        signer = self._signer_factory()
        check = signer.inspect(token)
        if check.status is TokenStatus.EXPIRED:
            logger.info("Rejected expired bearer token", path=request.url.path)
            return self._reject(request, TokenExpiredError("access"))
        if check.status is TokenStatus.INVALID or check.subject is None:
            logger.info("Rejected invalid bearer token", path=request.url.path)
            return self._reject(request, TokenInvalidError("access"))

        if getattr(request.state, "identity", None) is None:
            user = await self._user_loader(check.subject)
            if user is None:
                logger.info("Bearer token for unknown account", path=request.url.path)
                return self._reject(request, TokenInvalidError("access"))
            if signer.validate(token, user.email):
                request.state.identity = AuthenticatedIdentity(
                    user_id=user.id,
                    subject=user.email,
                    name=user.name,
                    roles=tuple(user.roles),
                )

        return await call_next(request)

    @staticmethod
    def _reject(request: Request, exc: APIError) -> Response:
        return error_response(
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            path=request.url.path,
        )
