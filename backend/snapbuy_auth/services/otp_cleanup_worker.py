"""Expired credential sweep worker.

asyncio background task started from the FastAPI lifespan. Every interval it
purges expired OTP codes, plus magic link and refresh tokens nobody came back
to redeem.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from snapbuy_auth.repositories.one_time_token_repository import (
    OneTimeTokenRepository,
)
from snapbuy_auth.repositories.refresh_token_repository import (
    RefreshTokenRepository,
)
from snapbuy_auth.services.otp_service import OtpService

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60 * 60


@dataclass(frozen=True)
class SweepResult:
    """Rows removed by one sweep.

    Attributes:
        otps: Expired OTP codes deleted.
        one_time_tokens: Expired magic link tokens deleted.
        refresh_tokens: Expired refresh tokens deleted.
        finished_at: When the sweep committed.
    """

    otps: int
    one_time_tokens: int
    refresh_tokens: int
    finished_at: datetime


async def sweep_expired(
    db: AsyncSession, *, now: datetime | None = None
) -> SweepResult:
    """Delete expired OTPs and tokens, then commit.

    Args:
        db: Async database session.
        now: Cutoff. Defaults to the current UTC time.

    Returns:
        SweepResult with per-table counts.
    """
    current = now or datetime.now(UTC)
    otps = await OtpService(db).cleanup_expired(now=current)
    one_time_tokens = await OneTimeTokenRepository.delete_expired(db, now=current)
    refresh_tokens = await RefreshTokenRepository.delete_expired(db, now=current)
    await db.commit()
    return SweepResult(
        otps=otps,
        one_time_tokens=one_time_tokens,
        refresh_tokens=refresh_tokens,
        finished_at=datetime.now(UTC),
    )


class OtpCleanupWorker:
    """Runs sweep_expired on a fixed interval in an asyncio task.

    The sweep runs once immediately on start, then every interval. stop()
    wakes the sleeping loop through an event instead of cancelling it, so a
    sweep in progress is allowed to commit.

    Args:
        session_factory: Source of a fresh session per sweep.
        interval_seconds: Pause between sweeps.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._last_run_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_run_at(self) -> datetime | None:
        """finished_at of the latest successful sweep."""
        return self._last_run_at

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop. Idempotent."""
        if self.is_running:
            logger.warning("OTP cleanup worker already running")
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run_loop())
        logger.info("OTP cleanup worker started (interval=%ds)", self._interval)

    async def stop(self) -> None:
        """Signal the loop to exit and wait for it."""
        self._stopping.set()
        task, self._task = self._task, None
        if task is not None and not task.done():
            await task
        logger.info("OTP cleanup worker stopped")

    async def run_once(self) -> SweepResult:
        """One sweep in its own session."""
        async with self._session_factory() as db:
            result = await sweep_expired(db)
        self._last_run_at = result.finished_at
        return result

    async def _run_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                result = await self.run_once()
            except Exception:  # noqa: BLE001
                logger.exception("Expired credential sweep failed")
            else:
                if result.otps or result.one_time_tokens or result.refresh_tokens:
                    logger.info(
                        "Sweep removed %d OTP(s), %d magic link(s), "
                        "%d refresh token(s)",
                        result.otps,
                        result.one_time_tokens,
                        result.refresh_tokens,
                    )
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval)
