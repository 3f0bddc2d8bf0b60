"""Dashboard aggregates over the tender table."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bms.domain.models import Tender, TenderStatus

OPEN_STATUSES = (
    TenderStatus.DRAFT.value,
    TenderStatus.ACTIVE.value,
    TenderStatus.ASSIGNED.value,
    TenderStatus.IN_PROGRESS.value,
)


@dataclass
class DashboardStats:
    total_tenders: int = 0
    active_tenders: int = 0
    submitted_tenders: int = 0
    won_tenders: int = 0
    missed_opportunities: int = 0
    win_rate: int = 0  # percent of submitted-or-won that were won
    total_value: int = 0
    ai_score: int = 0  # mean, unscored tenders count as 0
    status_counts: dict[str, int] = field(default_factory=dict)


@dataclass
class PipelineData:
    prospecting: int = 0
    proposal: int = 0
    negotiation: int = 0
    won: int = 0
    total_value: int = 0


async def _status_counts(db: AsyncSession) -> dict[str, int]:
    stmt = select(Tender.status, func.count()).group_by(Tender.status)
    return {status: count for status, count in (await db.execute(stmt)).all()}


async def _total_value(db: AsyncSession) -> int:
    total = (await db.execute(select(func.coalesce(func.sum(Tender.value), 0)))).scalar_one()
    return round(total)


async def dashboard_stats(db: AsyncSession) -> DashboardStats:
    counts = await _status_counts(db)
    avg_score = (await db.execute(select(func.avg(func.coalesce(Tender.ai_score, 0))))).scalar_one()

    won = counts.get(TenderStatus.WON.value, 0)
    submitted = counts.get(TenderStatus.SUBMITTED.value, 0) + won
    return DashboardStats(
        total_tenders=sum(counts.values()),
        active_tenders=sum(counts.get(s, 0) for s in OPEN_STATUSES),
        submitted_tenders=submitted,
        won_tenders=won,
        missed_opportunities=counts.get(TenderStatus.MISSED_OPPORTUNITY.value, 0),
        win_rate=round(won * 100 / submitted) if submitted else 0,
        total_value=await _total_value(db),
        ai_score=round(avg_score or 0),
        status_counts=counts,
    )


async def pipeline_data(db: AsyncSession) -> PipelineData:
    counts = await _status_counts(db)
    return PipelineData(
        prospecting=counts.get(TenderStatus.DRAFT.value, 0),
        proposal=counts.get(TenderStatus.IN_PROGRESS.value, 0),
        negotiation=counts.get(TenderStatus.SUBMITTED.value, 0),
        won=counts.get(TenderStatus.WON.value, 0),
        total_value=await _total_value(db),
    )
