"""Out-of-band maintenance: duplicate cleanup and the missed-opportunity sweep."""

import datetime as dt
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bms.domain.models import TenderStatus, utcnow
from bms.services.activity import log_activity
from bms.services.tender_repo import TenderRepository
from bms.storage import DocumentStorage

logger = logging.getLogger("bms.maintenance")


async def clear_duplicates(db: AsyncSession, storage: Optional[DocumentStorage] = None) -> int:
    repo = TenderRepository(db)
    deleted, storage_keys = await repo.remove_duplicates()
    await db.commit()
    if storage is not None:
        storage.discard(storage_keys)
    logger.info("duplicate cleanup deleted %d tender(s)", deleted)
    return deleted


async def process_missed_opportunities(db: AsyncSession, now: Optional[dt.datetime] = None) -> list[dict]:
    """Move expired, unassigned active tenders to missed_opportunity."""
    now = now or utcnow()
    repo = TenderRepository(db)
    expired = await repo.find_expired_unassigned(now)

    missed = []
    for tender in expired:
        previous = tender.status
        tender.status = TenderStatus.MISSED_OPPORTUNITY.value
        tender.updated_at = now
        await log_activity(
            db,
            tender.id,
            "missed_opportunity",
            None,
            {
                "reason": "deadline_expired",
                "deadline": tender.deadline.isoformat(),
                "previousStatus": previous,
                "newStatus": tender.status,
                "source": "automated_check",
            },
        )
        missed.append(
            {
                "id": tender.id,
                "title": tender.title,
                "organization": tender.organization,
                "deadline": tender.deadline.isoformat(),
            }
        )

    await db.commit()
    if missed:
        logger.info("moved %d tender(s) to missed opportunities", len(missed))
    return missed


async def job_missed_opportunities(sessionmaker: async_sessionmaker[AsyncSession]) -> int:
    """Scheduler entry point; opens its own session."""
    async with sessionmaker() as db:
        missed = await process_missed_opportunities(db)
    return len(missed)
