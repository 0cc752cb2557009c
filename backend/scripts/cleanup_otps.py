"""Sweep expired OTP codes and tokens once.

Standalone script for cron-style deployments that run with
OTP_CLEANUP_INTERVAL_SECONDS=0 (no in-process worker).

Usage:
    cd backend && python -m scripts.cleanup_otps
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from snapbuy_auth.services.otp_cleanup_worker import SweepResult, sweep_expired

logger = logging.getLogger(__name__)


async def run_cleanup(session: AsyncSession) -> SweepResult:
    """Run one sweep on the given session (commits)."""
    result = await sweep_expired(session)
    logger.info(
        "Removed %d OTP(s), %d magic link(s), %d refresh token(s)",
        result.otps,
        result.one_time_tokens,
        result.refresh_tokens,
    )
    return result


async def main() -> None:
    """CLI entry point: run the sweep against the configured database."""
    import sys

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from snapbuy_auth.core.config import settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = create_async_engine(settings.database_url, echo=False)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        await run_cleanup(session)

    await engine.dispose()
    sys.exit(0)


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
