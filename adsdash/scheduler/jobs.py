"""AdsDash — Scheduler Jobs.

APScheduler daily job that syncs yesterday's Meta data at the configured
local time of the business timezone.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlmodel import Session

from adsdash.config import settings
from adsdash.connectors.meta.client import MetaClient, MetaConfig
from adsdash.connectors.meta.endpoints import MetaAdsSource
from adsdash.core.dates import get_yesterday
from adsdash.core.logging import get_logger
from adsdash.database import engine
from adsdash.sync.orchestrator import sync_meta_for_day

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler(timezone=settings.business_timezone)


async def daily_sync_job():
    """Run the single-day sync for yesterday."""
    date = get_yesterday()
    logger.info("Scheduled daily sync starting...", extra={"since": date, "until": date})
    try:
        async with MetaClient(MetaConfig.from_settings()) as client:
            with Session(engine) as session:
                result = await sync_meta_for_day(
                    session, MetaAdsSource(client), date, settings.default_channel_id
                )
        logger.info(
            f"Scheduled sync complete: {result.metrics_upserted} metric rows",
            extra={"channel_id": settings.default_channel_id, "since": date, "until": date},
        )
    except Exception as e:
        logger.error(f"Scheduled sync failed: {e}")


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        daily_sync_job,
        "cron",
        hour=settings.sync_hour,
        minute=settings.sync_minute,
        id="daily_meta_sync",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started. Daily sync at {settings.sync_hour:02d}:{settings.sync_minute:02d} "
        f"{settings.business_timezone}"
    )


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
