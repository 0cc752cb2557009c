"""Tests for application configuration.

Settings for the database, bearer tokens, OTP delivery, and the gatekeeper
allow-list. Tests cover defaults, env var loading, and validation.
"""

import base64

import pytest
from pydantic import SecretStr, ValidationError

from snapbuy_auth.core.config import _INSECURE_DEFAULT_PASSWORD, Settings

# Reusable test constants
_SECURE_DB_PASSWORD = "my-secure-production-password-123!"
_STRONG_SECRET = base64.b64encode(b"k" * 64).decode()
_SHORT_SECRET = base64.b64encode(b"k" * 32).decode()
_PRODUCTION = "production"


class TestDefaults:
    """Tests for default values."""

    def test_token_lifetimes(self):
        s = Settings()
        assert s.access_token_ttl_minutes == 30
        assert s.refresh_token_ttl_days == 15
        assert s.otp_ttl_seconds == 300
        assert s.ott_ttl_seconds == 600

    def test_otp_defaults(self):
        s = Settings()
        assert s.otp_length == 6
        assert s.otp_country_code == "+91"

    def test_public_paths_cover_sign_in_flows(self):
        s = Settings()
        assert "/api/v1/auth/signIn" in s.public_paths
        assert "/api/v1/otp/*" in s.public_paths
        assert "/api/v1/auth/me" not in s.public_paths

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("OTP_LENGTH", "8")
        monkeypatch.setenv("ACCESS_TOKEN_TTL_MINUTES", "5")
        s = Settings()
        assert s.otp_length == 8
        assert s.access_token_ttl_minutes == 5


class TestDatabaseUrl:
    """Tests for database URL assembly."""

    def test_built_from_parts(self):
        s = Settings(
            database_user="u",
            database_password="p",
            database_host="db",
            database_port=5433,
            database_name="shop",
        )
        assert s.database_url == "postgresql+asyncpg://u:p@db:5433/shop"
        assert s.database_url_sync == "postgresql://u:p@db:5433/shop"

    def test_override_wins(self):
        s = Settings(database_url_override="sqlite+aiosqlite:///./auth.db")
        assert s.database_url == "sqlite+aiosqlite:///./auth.db"
        assert s.database_url_sync == "sqlite:///./auth.db"


class TestValidation:
    """Tests for configuration invariants in every environment."""

    @pytest.mark.parametrize("length", [3, 11])
    def test_rejects_otp_length_out_of_range(self, length):
        with pytest.raises(ValidationError, match="OTP_LENGTH"):
            Settings(otp_length=length)

    def test_rejects_wildcard_origin(self):
        with pytest.raises(ValidationError, match="wildcard"):
            Settings(allowed_origins=["*"])

    def test_rejects_non_base64_secret(self):
        with pytest.raises(ValidationError, match="base64"):
            Settings(jwt_secret=SecretStr("not base64!!"))


class TestProductionSecurityValidation:
    """Tests for production security requirements."""

    def test_allows_default_password_in_development(self):
        """Default password is allowed in development environment."""
        s = Settings(
            environment="development",
            database_password=_INSECURE_DEFAULT_PASSWORD,
        )
        assert s.database_password == _INSECURE_DEFAULT_PASSWORD

    def test_rejects_default_password_in_production(self):
        with pytest.raises(ValidationError) as exc_info:
            Settings(
                environment=_PRODUCTION,
                database_password=_INSECURE_DEFAULT_PASSWORD,
                jwt_secret=SecretStr(_STRONG_SECRET),
            )

        errors = exc_info.value.errors()
        assert len(errors) == 1
        assert "Cannot use default database password in production" in str(
            errors[0]["msg"]
        )

    def test_requires_secret_in_production(self):
        with pytest.raises(ValidationError, match="JWT_SECRET must be set"):
            Settings(environment=_PRODUCTION, database_password=_SECURE_DB_PASSWORD)

    def test_rejects_short_secret_in_production(self):
        with pytest.raises(ValidationError, match="at least 64"):
            Settings(
                environment=_PRODUCTION,
                database_password=_SECURE_DB_PASSWORD,
                jwt_secret=SecretStr(_SHORT_SECRET),
            )

    def test_accepts_secure_production_config(self):
        s = Settings(
            environment=_PRODUCTION,
            database_password=_SECURE_DB_PASSWORD,
            jwt_secret=SecretStr(_STRONG_SECRET),
        )
        assert s.jwt_secret.get_secret_value() == _STRONG_SECRET
