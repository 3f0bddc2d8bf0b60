# bms/core/scheduler.py
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bms.services.maintenance import job_missed_opportunities

logger = logging.getLogger("bms.scheduler")


# --------------------------------------------------------------------------------------
# APScheduler configuration
# --------------------------------------------------------------------------------------

def build_scheduler(sessionmaker: async_sessionmaker[AsyncSession], sweep_minutes: int) -> AsyncIOScheduler:
    """
    Register recurring jobs (not started).
    - Missed-opportunity sweep every ``sweep_minutes``
    """
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        job_missed_opportunities,
        IntervalTrigger(minutes=sweep_minutes),
        args=[sessionmaker],
        name="missed_opportunities",
        coalesce=True,
        max_instances=1,
    )
    return scheduler


def start_scheduler(sessionmaker: async_sessionmaker[AsyncSession], sweep_minutes: int) -> AsyncIOScheduler:
    scheduler = build_scheduler(sessionmaker, sweep_minutes)
    scheduler.start()
    logger.info("scheduler started (missed-opportunity sweep every %d min)", sweep_minutes)
    return scheduler
