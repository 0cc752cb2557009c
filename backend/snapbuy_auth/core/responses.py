"""Response envelope models.

Success bodies for the auth endpoints are flat camelCase objects (the wire
format the storefront clients already consume). Errors always use the
{"error": {...}} envelope.
"""

from datetime import UTC, datetime

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

# Attached to every error response.
NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys.

    Accepts both camelCase and snake_case on input.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TokenPairResponse(CamelModel):
    """Access + refresh token pair returned by every sign-in path."""

    access_token: str
    refresh_token: str


class OtpResponse(CamelModel):
    """Result envelope for /otp endpoints.

    Attributes:
        success: Whether the operation succeeded.
        message: Human-readable outcome.
        expires_at: Code expiry on success, None otherwise.
    """

    success: bool
    message: str
    expires_at: datetime | None = None


class ErrorDetail(BaseModel):
    """Error detail for response body.

    Attributes:
        code: Machine-readable error code (e.g., "TOKEN_EXPIRED").
        message: Human-readable error message.
        details: Optional list of field-level errors (for validation).
        path: Request path that produced the error.
        timestamp: UTC time the error was produced (ISO 8601).
    """

    code: str
    message: str
    details: list[dict] | None = None
    path: str | None = None
    timestamp: str | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope.

    Usage in exception handlers:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(code=exc.code, message=exc.message)
            ).model_dump(),
        )
    """

    error: ErrorDetail


def error_response(
    *,
    status_code: int,
    code: str,
    message: str,
    path: str,
    details: list[dict] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a JSONResponse carrying the standard error envelope.

    Args:
        status_code: HTTP status.
        code: Machine-readable error code.
        message: Human-readable message.
        path: Request path, echoed in the body.
        details: Optional field-level errors.
        headers: Extra headers merged over the no-store defaults.

    Returns:
        JSONResponse with no-store cache headers.
    """
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=code,
                message=message,
                details=details,
                path=path,
                timestamp=datetime.now(UTC).isoformat(),
            )
        ).model_dump(),
        headers={**NO_STORE_HEADERS, **(headers or {})},
    )
