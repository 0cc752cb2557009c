"""SnapBuy auth application.

create_app() wires together:
- the bearer token gatekeeper and response hardening middleware
- translation of APIError / validation / rate limit / unexpected exceptions
  into the {"error": {...}} envelope
- the /api/v1 routers and /health
- the expired credential sweep, started from the lifespan
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from snapbuy_auth.api.v1.router import router as v1_router
from snapbuy_auth.core.auth import TokenSigner, get_token_signer
from snapbuy_auth.core.config import settings
from snapbuy_auth.core.database import async_session_factory
from snapbuy_auth.core.errors import APIError
from snapbuy_auth.core.gatekeeper import AuthGatekeeperMiddleware, UserLoader
from snapbuy_auth.core.rate_limiting import limiter, rate_limit_exceeded_handler
from snapbuy_auth.core.responses import error_response
from snapbuy_auth.models.user import User
from snapbuy_auth.repositories.user_repository import UserRepository
from snapbuy_auth.services.otp_cleanup_worker import OtpCleanupWorker

logger = structlog.get_logger()

# The API only serves JSON and plain text; nothing may frame or embed it.
_STATIC_SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardens every response.

    Token-bearing /api/ responses are never cached; error responses already
    carry their own no-store headers and keep them. HSTS is only sent in
    production, where TLS terminates at the proxy.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)

        for name, value in _STATIC_SECURITY_HEADERS.items():
            response.headers[name] = value
        if request.url.path.startswith("/api/"):
            response.headers.setdefault("Cache-Control", "no-store, max-age=0")
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response


def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Render an APIError with its own code and status."""
    return error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        path=request.url.path,
        details=exc.details,
    )


def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request body/query validation failures as 400 VALIDATION_ERROR.

    Each pydantic error becomes one {loc, msg, type} entry in details.
    """
    return error_response(
        status_code=400,
        code="VALIDATION_ERROR",
        message="Request validation failed",
        path=request.url.path,
        details=[
            {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
            for err in exc.errors()
        ],
    )


def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log anything unexpected and answer with an opaque 500."""
    logger.exception("Unhandled exception", exc_info=exc, path=request.url.path)
    return error_response(
        status_code=500,
        code="INTERNAL_ERROR",
        message="An unexpected error occurred",
        path=request.url.path,
    )


def _make_user_loader(
    session_factory: async_sessionmaker[AsyncSession],
) -> UserLoader:
    async def load_user(subject: str) -> User | None:
        async with session_factory() as db:
            return await UserRepository.get_by_email(db, subject)

    return load_user


def create_app(
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    signer_factory: Callable[[], TokenSigner] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        session_factory: Sessions for the gatekeeper's account lookups and
            the sweep worker. Defaults to the application database.
        signer_factory: Source of the token signer used by the gatekeeper.
            Defaults to the settings-backed signer.

    Returns:
        Configured FastAPI application instance.
    """
    sessions = session_factory or async_session_factory

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logging.basicConfig(level=settings.log_level.upper())
        worker: OtpCleanupWorker | None = None
        if settings.otp_cleanup_interval_seconds > 0:
            worker = OtpCleanupWorker(
                sessions, interval_seconds=settings.otp_cleanup_interval_seconds
            )
            worker.start()
        logger.info("SnapBuy auth started", environment=settings.environment)
        try:
            yield
        finally:
            if worker is not None:
                await worker.stop()

    app = FastAPI(
        title="SnapBuy Auth API",
        version="1.0.0",
        description="Authentication and token lifecycle for the SnapBuy storefront",
        lifespan=lifespan,
    )

    # Added innermost first: requests pass CORS, then security headers, then
    # the gatekeeper. CORS must see preflights before the gatekeeper does.
    app.add_middleware(
        AuthGatekeeperMiddleware,
        signer_factory=signer_factory or get_token_signer,
        user_loader=_make_user_loader(sessions),
        public_paths=settings.public_paths,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )

    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    # slowapi looks the limiter up on app state
    app.state.limiter = limiter

    app.include_router(v1_router, prefix="/api/v1")

    @app.get("/health")
    def health_check() -> dict:
        """Liveness probe. Allow-listed, so it never needs a token."""
        return {"status": "healthy"}

    return app


# uvicorn snapbuy_auth.main:app
app = create_app()
