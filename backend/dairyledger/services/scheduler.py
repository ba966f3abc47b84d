"""Background task scheduler: daily delivery records and overdue refresh.

Uses FastAPI's lifespan context to start/stop an asyncio background loop
that fires once per day at the configured hour, on the server's local
clock:

    1. create_daily_records for today (idempotent, safe to re-run)
    2. refresh_overdue_statuses

Configuration (.env):
    DAILY_RECORDS_HOUR=18
    SCHEDULER_ENABLED=true
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from fastapi import FastAPI

from dairyledger.config import settings
from dairyledger.database import async_session
from dairyledger.services.invoices import refresh_overdue_statuses
from dairyledger.services.records import create_daily_records
from dairyledger.utils.cache import close_redis, invalidate_cache

logger = logging.getLogger("dairyledger.scheduler")


async def run_daily_jobs() -> None:
    """Generate today's records, then re-derive overdue statuses.

    Each job commits on its own so a failing overdue refresh never
    discards the day's records.
    """
    logger.info("Starting daily jobs")

    async with async_session() as db:
        try:
            summary = await create_daily_records(db)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Daily record generation failed")
        else:
            logger.info(
                "Daily records %s: created=%d existing=%d skipped=%d failed=%d holiday=%s",
                summary.record_date,
                summary.created,
                summary.existing,
                summary.skipped,
                len(summary.failed),
                summary.holiday,
            )

    async with async_session() as db:
        try:
            changed = await refresh_overdue_statuses(db)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Overdue refresh failed")
        else:
            if changed:
                await invalidate_cache("billing:*")

    logger.info("Daily jobs complete")


def seconds_until(target_hour: int, now: datetime) -> tuple[datetime, float]:
    """Next occurrence of target_hour:00 after `now`, and the wait in seconds."""
    next_run = now.replace(hour=target_hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return next_run, (next_run - now).total_seconds()


async def _scheduler_loop() -> None:
    while True:
        next_run, wait_seconds = seconds_until(settings.daily_records_hour, datetime.now())
        logger.info(
            "Next daily run at %s (in %.0f seconds)",
            next_run.isoformat(),
            wait_seconds,
        )

        await asyncio.sleep(wait_seconds)

        try:
            await run_daily_jobs()
        except Exception:
            logger.exception("Unhandled error in daily jobs")

        # Small buffer to avoid running twice in the same minute
        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: start the scheduler on startup, cancel on shutdown."""
    task = None
    if settings.scheduler_enabled:
        task = asyncio.create_task(_scheduler_loop())
        logger.info("Daily scheduler started (hour=%d)", settings.daily_records_hour)
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Daily scheduler stopped")
        await close_redis()
