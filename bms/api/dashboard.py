from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bms.auth import SessionUser, require
from bms.core.db import get_session
from bms.schemas import DashboardStatsOut, PipelineOut
from bms.services.dashboard import dashboard_stats, pipeline_data

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
async def get_stats(
    user: SessionUser = Depends(require(permission="view_tenders")),
    db: AsyncSession = Depends(get_session),
):
    stats = await dashboard_stats(db)
    return DashboardStatsOut(**asdict(stats)).model_dump(by_alias=True)


@router.get("/pipeline")
async def get_pipeline(
    user: SessionUser = Depends(require(permission="view_tenders")),
    db: AsyncSession = Depends(get_session),
):
    pipeline = await pipeline_data(db)
    return PipelineOut(**asdict(pipeline)).model_dump(by_alias=True)
