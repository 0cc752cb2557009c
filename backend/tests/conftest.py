import base64
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from snapbuy_auth.core.auth import TokenSigner, hash_password
from snapbuy_auth.models import Base, User

# In-memory SQLite shared by every session of a test (StaticPool = one connection)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Security: test-only signing key (64 bytes for HS512). Production reads JWT_SECRET.
TEST_JWT_SECRET = base64.b64encode(bytes(range(64))).decode()  # gitleaks:allow
TEST_ACCESS_TTL = timedelta(minutes=30)

TEST_EMAIL = "shopper@example.com"
TEST_NAME = "Test Shopper"
TEST_PASSWORD = "Sn4pBuy-pass!"  # nosec B105
TEST_PHONE = "9876543210"
TEST_PHONE_NORMALIZED = "+919876543210"

# Hashed once at import; bcrypt is deliberately slow.
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


def create_test_jwt(
    subject: str = TEST_EMAIL,
    *,
    user_id: int = 1,
    secret: str = TEST_JWT_SECRET,
    expires_delta: timedelta = TEST_ACCESS_TTL,
    iat: datetime | None = None,
    algorithm: str = "HS512",
) -> str:
    """Create a signed JWT shaped like the ones TokenSigner issues.

    Args:
        subject: Value of the sub claim (account email).
        user_id: Value of the userId claim.
        secret: Base64 signing secret.
        expires_delta: exp relative to iat. Negative for an expired token.
        iat: Issued-at time. Defaults to now.
        algorithm: Signing algorithm.

    Returns:
        Encoded JWT string.
    """
    issued_at = iat or datetime.now(UTC)
    payload = {
        "sub": subject,
        "roles": ["USER"],
        "userId": user_id,
        "name": TEST_NAME,
        "iat": issued_at,
        "exp": issued_at + expires_delta,
    }
    return jwt.encode(payload, base64.b64decode(secret), algorithm=algorithm)


@pytest.fixture
def token_signer() -> TokenSigner:
    """Signer over the test key with a 30 minute access token TTL."""
    return TokenSigner(TEST_JWT_SECRET, access_token_ttl=TEST_ACCESS_TTL)


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh in-memory schema for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a password account with a phone number.

    Args:
        db_session: Database session from db_session fixture.

    Returns:
        User model instance.
    """
    user = User(
        email=TEST_EMAIL,
        name=TEST_NAME,
        password_hash=TEST_PASSWORD_HASH,
        roles=["USER"],
        phone=TEST_PHONE_NORMALIZED,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def sms_sender() -> AsyncMock:
    """SMS sender stand-in that reports successful delivery."""
    return AsyncMock(return_value=True)


@pytest.fixture
def email_sender() -> AsyncMock:
    """Email sender stand-in that accepts every message."""
    return AsyncMock(return_value=None)


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(
    db_engine,
    token_signer: TokenSigner,
    sms_sender: AsyncMock,
    email_sender: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against an app wired to the test database.

    Sets up:
    - create_app with the test session factory and signer (gatekeeper)
    - get_db / get_token_signer / sender dependency overrides
    - httpx.AsyncClient with ASGI transport

    Yields:
        AsyncClient without credentials; tests add Authorization headers.
    """
    from snapbuy_auth.api.deps import get_email_sender, get_sms_sender
    from snapbuy_auth.core.auth import get_token_signer
    from snapbuy_auth.core.database import get_db
    from snapbuy_auth.main import create_app

    test_session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    app = create_app(
        session_factory=test_session_factory,
        signer_factory=lambda: token_signer,
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_signer] = lambda: token_signer
    app.dependency_overrides[get_sms_sender] = lambda: sms_sender
    app.dependency_overrides[get_email_sender] = lambda: email_sender

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Rate limiting is tested separately; disable for other tests to avoid
    flaky failures from rate limit triggers.
    """
    from snapbuy_auth.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled
