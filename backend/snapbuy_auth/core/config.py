"""Application configuration loaded from environment variables.

Settings for the database, token lifetimes, OTP and magic-link delivery,
the request gatekeeper allow-list, and rate limiting. Uses pydantic-settings
for validation and .env file support.
"""

import base64
import binascii

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "snapbuy_dev_password"  # nosec B105

# HS512 needs a key at least as long as its digest (512 bits = 64 bytes)
_MIN_JWT_KEY_BYTES = 64

_MIN_OTP_LENGTH = 4
_MAX_OTP_LENGTH = 10

# Paths that skip the bearer-token gatekeeper entirely.
# "/prefix/*" matches any sub-path; a leading "METHOD " restricts the match.
_DEFAULT_PUBLIC_PATHS = [
    "/api/v1/auth/signIn",
    "/api/v1/auth/signUp",
    "/api/v1/auth/refreshToken",
    "/api/v1/ott/*",
    "/api/v1/otp/*",
    "GET /api/v1/products",
    "GET /api/v1/products/*",
    "/docs",
    "/docs/*",
    "/redoc",
    "/openapi.json",
    "/health",
    "/error",
    "/favicon.ico",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "snapbuy"
    database_user: str = "snapbuy_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    # Full SQLAlchemy URL; takes precedence over the discrete fields above
    database_url_override: str = ""

    # API
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000
    allowed_origins: list[str] = ["http://localhost:5000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Bearer tokens. JWT_SECRET is base64; the decoded bytes are the HMAC key.
    jwt_secret: SecretStr = SecretStr("")
    access_token_ttl_minutes: int = 30

    # Refresh tokens
    refresh_token_ttl_days: int = 15
    refresh_token_rotate_on_use: bool = True

    # Phone OTP
    otp_length: int = 6
    otp_ttl_seconds: int = 300
    otp_country_code: str = "+91"
    otp_cleanup_interval_seconds: int = 3600  # 0 disables the sweep worker

    # Magic link (one-time token)
    ott_ttl_seconds: int = 600
    app_base_url: str = "http://localhost:8000"
    ott_login_path: str = "/api/v1/ott/login"

    # SMS (Twilio)
    twilio_account_sid: str = ""
    twilio_auth_token: SecretStr = SecretStr("")
    twilio_from_number: str = ""

    # Email (Resend)
    email_from: str = "noreply@snapbuy.app"
    resend_api_key: SecretStr = SecretStr("")

    # Registration: callers presenting this key at sign-up receive ADMIN.
    # Empty disables admin self-registration.
    admin_registration_key: SecretStr = SecretStr("")

    # Gatekeeper allow-list
    public_paths: list[str] = _DEFAULT_PUBLIC_PATHS

    # Rate Limiting (Security)
    rate_limit_enabled: bool = True
    rate_limit_otp: str = "5/hour"
    rate_limit_auth: str = "10/minute"

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return self.database_url.replace("+asyncpg", "").replace("+aiosqlite", "")

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants.

        Checks:
        - OTP length within 4..10 digits (all environments)
        - CORS must not use wildcard origin (all environments)
        - JWT_SECRET, when set, must be valid base64 (all environments)
        - Database password must not be the default in production
        - JWT_SECRET must be set and decode to >= 64 bytes in production
        """
        if not _MIN_OTP_LENGTH <= self.otp_length <= _MAX_OTP_LENGTH:
            msg = (
                f"OTP_LENGTH must be between {_MIN_OTP_LENGTH} and "
                f"{_MAX_OTP_LENGTH}. Got: {self.otp_length}"
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application allows credentials, which are incompatible "
                "with wildcard CORS origins."
            )
            raise ValueError(msg)

        secret_value = self.jwt_secret.get_secret_value()
        key_bytes = b""
        if secret_value:
            try:
                key_bytes = base64.b64decode(secret_value, validate=True)
            except (binascii.Error, ValueError) as exc:
                msg = "JWT_SECRET must be base64 encoded"
                raise ValueError(msg) from exc

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            if not secret_value:
                msg = (
                    "JWT_SECRET must be set in production. "
                    'Generate with: python -c "import base64, secrets; '
                    'print(base64.b64encode(secrets.token_bytes(64)).decode())"'
                )
                raise ValueError(msg)
            if len(key_bytes) < _MIN_JWT_KEY_BYTES:
                msg = (
                    f"JWT_SECRET must decode to at least {_MIN_JWT_KEY_BYTES} "
                    "bytes for HS512."
                )
                raise ValueError(msg)

        return self


settings = Settings()
