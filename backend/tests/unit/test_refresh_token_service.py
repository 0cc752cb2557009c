"""Tests for the refresh token ledger.

One row per user, expiry enforced on every lookup, and rotation on exchange.
"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from snapbuy_auth.core.auth import TokenSigner
from snapbuy_auth.core.errors import (
    TokenExpiredError,
    TokenInvalidError,
    UserNotFoundError,
)
from snapbuy_auth.models import RefreshToken, User
from snapbuy_auth.repositories.refresh_token_repository import (
    RefreshTokenRepository,
)
from snapbuy_auth.services.refresh_token_service import (
    RefreshStatus,
    RefreshTokenService,
)
from tests.conftest import TEST_EMAIL

_TTL = timedelta(days=15)


def _service(
    db: AsyncSession, signer: TokenSigner, *, rotate_on_use: bool = True
) -> RefreshTokenService:
    return RefreshTokenService(
        db, signer=signer, ttl=_TTL, rotate_on_use=rotate_on_use
    )


async def _row_count(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(RefreshToken))
    return result.scalar_one()


class TestCreate:
    """Tests for RefreshTokenService.create."""

    async def test_sets_issue_and_expiry(
        self, db_session, test_user: User, token_signer
    ):
        """expires_at = issued_at + TTL, bound to the user."""
        now = datetime.now(UTC)
        row = await _service(db_session, token_signer).create(TEST_EMAIL, now=now)

        assert row.user_id == test_user.id
        assert row.issued_at == now
        assert row.expires_at == now + _TTL
        assert len(row.token) >= 40

    async def test_second_create_replaces_first(
        self, db_session, test_user: User, token_signer  # noqa: ARG002
    ):
        """Two creates leave one row; the first value no longer resolves."""
        service = _service(db_session, token_signer)
        first = (await service.create(TEST_EMAIL)).token
        second = (await service.create(TEST_EMAIL)).token

        assert first != second
        assert await _row_count(db_session) == 1
        assert (await service.find_valid(first)).status is RefreshStatus.NOT_FOUND
        assert (await service.find_valid(second)).status is RefreshStatus.FOUND

    async def test_unknown_user_raises(self, db_session, token_signer):
        with pytest.raises(UserNotFoundError):
            await _service(db_session, token_signer).create("ghost@example.com")

    async def test_identifier_is_case_insensitive(
        self, db_session, test_user: User, token_signer
    ):
        row = await _service(db_session, token_signer).create(TEST_EMAIL.upper())
        assert row.user_id == test_user.id


class TestFindValid:
    """Tests for RefreshTokenService.find_valid and verify_expiry."""

    async def test_unknown_token(self, db_session, token_signer):
        lookup = await _service(db_session, token_signer).find_valid("nope")
        assert lookup.status is RefreshStatus.NOT_FOUND
        assert lookup.token is None

    async def test_expired_token_is_deleted(
        self, db_session, test_user: User, token_signer  # noqa: ARG002
    ):
        """An expired row reports EXPIRED and is gone afterwards."""
        service = _service(db_session, token_signer)
        issued = datetime.now(UTC) - _TTL - timedelta(minutes=1)
        row = await service.create(TEST_EMAIL, now=issued)

        lookup = await service.find_valid(row.token)

        assert lookup.status is RefreshStatus.EXPIRED
        assert await _row_count(db_session) == 0

    async def test_verify_expiry_returns_live_row(
        self, db_session, test_user: User, token_signer  # noqa: ARG002
    ):
        service = _service(db_session, token_signer)
        row = await service.create(TEST_EMAIL)
        assert await service.verify_expiry(row) is row

    async def test_verify_expiry_raises_and_deletes(
        self, db_session, test_user: User, token_signer  # noqa: ARG002
    ):
        service = _service(db_session, token_signer)
        row = await service.create(TEST_EMAIL)

        with pytest.raises(TokenExpiredError) as exc_info:
            await service.verify_expiry(row, now=row.expires_at + timedelta(seconds=1))

        assert exc_info.value.code == "TOKEN_EXPIRED"
        assert await _row_count(db_session) == 0


class TestExchange:
    """Tests for RefreshTokenService.exchange."""

    async def test_rotates_by_default(
        self, db_session, test_user: User, token_signer: TokenSigner  # noqa: ARG002
    ):
        """Exchange returns a new refresh token; the old one stops working."""
        service = _service(db_session, token_signer)
        original = (await service.create(TEST_EMAIL)).token

        pair = await service.exchange(original)

        assert pair.refresh_token != original
        assert token_signer.validate(pair.access_token, TEST_EMAIL) is True
        assert (await service.find_valid(original)).status is RefreshStatus.NOT_FOUND

    async def test_reuse_mode_echoes_token(
        self, db_session, test_user: User, token_signer: TokenSigner  # noqa: ARG002
    ):
        """With rotation off the same refresh token comes back."""
        service = _service(db_session, token_signer, rotate_on_use=False)
        original = (await service.create(TEST_EMAIL)).token

        first = await service.exchange(original)
        second = await service.exchange(original)

        assert first.refresh_token == original
        assert second.refresh_token == original

    async def test_unknown_token_is_invalid(self, db_session, token_signer):
        with pytest.raises(TokenInvalidError):
            await _service(db_session, token_signer).exchange("missing")

    async def test_concurrent_exchange_rotates_once(
        self,
        db_engine,
        db_session,
        token_signer: TokenSigner,
        monkeypatch,
        test_user: User,  # noqa: ARG002
    ):
        """A second session exchanges between lookup and rotation; only it wins."""
        service = _service(db_session, token_signer)
        original = (await service.create(TEST_EMAIL)).token
        await db_session.commit()

        other_sessions = async_sessionmaker(
            db_engine, class_=AsyncSession, expire_on_commit=False
        )
        real_get = RefreshTokenRepository.get_by_token
        winners = []

        async def get_then_lose_race(db: AsyncSession, value: str):
            row = await real_get(db, value)
            if db is db_session and not winners:
                async with other_sessions() as other:
                    winners.append(
                        await _service(other, token_signer).exchange(value)
                    )
                    await other.commit()
            return row

        monkeypatch.setattr(
            RefreshTokenRepository, "get_by_token", staticmethod(get_then_lose_race)
        )

        with pytest.raises(TokenInvalidError):
            await service.exchange(original)

        assert len(winners) == 1
        live = (await db_session.execute(select(RefreshToken))).scalars().all()
        assert [row.token for row in live] == [winners[0].refresh_token]

    async def test_expired_token_raises_expired(
        self, db_session, test_user: User, token_signer  # noqa: ARG002
    ):
        service = _service(db_session, token_signer)
        row = await service.create(TEST_EMAIL)

        with pytest.raises(TokenExpiredError):
            await service.exchange(row.token, now=row.expires_at + timedelta(hours=1))
