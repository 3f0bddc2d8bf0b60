from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bms.auth import SessionUser, require_admin
from bms.core.db import get_session
from bms.services.maintenance import clear_duplicates, process_missed_opportunities

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/maintenance/clear-duplicates")
async def run_clear_duplicates(
    request: Request,
    user: SessionUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    deleted = await clear_duplicates(db, request.app.state.storage)
    return {"success": True, "deleted": deleted}


@router.post("/maintenance/missed-opportunities")
async def run_missed_opportunities(user: SessionUser = Depends(require_admin), db: AsyncSession = Depends(get_session)):
    missed = await process_missed_opportunities(db)
    return {"success": True, "processed": len(missed), "missedOpportunities": missed}
