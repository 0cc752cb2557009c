"""API error classes.

Every failure that reaches a client is an APIError subclass carrying a
machine-readable code, a human message and an HTTP status. The exception
handlers in main.py translate them into the standard error envelope.

Token errors carry a ``kind`` ("access", "refresh", "ott") so logs and
messages can say which credential failed, while the client-facing code stays
TOKEN_EXPIRED / TOKEN_INVALID. Clients retry a refresh flow only on
TOKEN_EXPIRED.
"""


class APIError(Exception):
    """Base class for API errors.

    Attributes:
        code: Machine-readable error code (e.g., "USER_NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400)."""

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Raised by downstream dependencies when the gatekeeper attached no identity.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class UserNotFoundError(APIError):
    """No account matches the identifier (404)."""

    def __init__(self, identifier: str | None = None) -> None:
        message = f"User not found: {identifier}" if identifier else "User not found"
        super().__init__(
            code="USER_NOT_FOUND",
            message=message,
            status_code=404,
        )


class InvalidCredentialsError(APIError):
    """Email/password pair rejected (401).

    The message never says which half was wrong.
    """

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(
            code="INVALID_CREDENTIALS",
            message=message,
            status_code=401,
        )


class TokenExpiredError(APIError):
    """Token signature/lookup was fine but its lifetime elapsed (401)."""

    def __init__(self, kind: str = "access", message: str | None = None) -> None:
        self.kind = kind
        super().__init__(
            code="TOKEN_EXPIRED",
            message=message or _EXPIRED_MESSAGES.get(kind, "Token has expired"),
            status_code=401,
        )


class TokenInvalidError(APIError):
    """Token is malformed, badly signed, or unknown (401)."""

    def __init__(self, kind: str = "access", message: str | None = None) -> None:
        self.kind = kind
        super().__init__(
            code="TOKEN_INVALID",
            message=message or _INVALID_MESSAGES.get(kind, "Invalid token"),
            status_code=401,
        )


class OtpVerificationError(APIError):
    """OTP-based sign-in rejected (401).

    Only raised where an OTP failure must stop the request (sign-in). The OTP
    endpoints themselves report failures in a success=false envelope.

    Args:
        code: One of OTP_NOT_FOUND, OTP_EXPIRED, OTP_MISMATCH.
        message: Message from the OTP result.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=401,
        )


class UserAlreadyExistsError(APIError):
    """Registration with an email that is already taken (409)."""

    def __init__(
        self,
        message: str = "User already exists, please enter different user details",
    ) -> None:
        super().__init__(
            code="USER_ALREADY_EXISTS",
            message=message,
            status_code=409,
        )


class MessageDispatchError(APIError):
    """Outbound email/SMS provider rejected or was unreachable (502)."""

    def __init__(self, message: str = "Failed to send notification") -> None:
        super().__init__(
            code="MESSAGE_DISPATCH_FAILED",
            message=message,
            status_code=502,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Use for unhandled exceptions. Never expose stack traces to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )


_EXPIRED_MESSAGES = {
    "access": "Access token has expired",
    "refresh": "Refresh token was expired. Please make a new sign in request",
    "ott": "Token expired, please request a new one.",
}

_INVALID_MESSAGES = {
    "access": "Invalid access token",
    "refresh": "Refresh token is invalid or not found",
    "ott": "Invalid or expired token, please request a new one.",
}
