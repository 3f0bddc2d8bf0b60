import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bms.auth import SessionUser, require, require_login
from bms.core.db import get_session
from bms.domain.models import Document
from bms.schemas import (
    ActivityOut,
    AssignIn,
    ExcelUploadOut,
    Pagination,
    TenderCreate,
    TenderListOut,
    TenderOut,
    TenderUpdate,
)
from bms.services.activity import list_activity, log_activity
from bms.services.excel_import import list_uploads
from bms.services.listing import FilterSpec, list_tenders
from bms.services.tender_repo import TenderRepository

logger = logging.getLogger("bms.api.tenders")

router = APIRouter(prefix="/api/tenders", tags=["tenders"])


@router.get("")
async def get_tenders(request: Request, db: AsyncSession = Depends(get_session)):
    spec = FilterSpec.from_query(request.query_params)
    result = await list_tenders(TenderRepository(db), spec)
    out = TenderListOut(
        tenders=[TenderOut.from_model(t) for t in result.items],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
        ),
    )
    return out.model_dump(by_alias=True, mode="json")


@router.get("/excel-uploads")
async def get_excel_uploads(user: SessionUser = Depends(require_login), db: AsyncSession = Depends(get_session)):
    uploads = await list_uploads(db)
    return [ExcelUploadOut.from_model(u).model_dump(by_alias=True, mode="json") for u in uploads]


@router.get("/{tender_id}")
async def get_tender(tender_id: str, db: AsyncSession = Depends(get_session)):
    tender = await TenderRepository(db).get_by_id(tender_id)
    return TenderOut.from_model(tender).model_dump(by_alias=True, mode="json")


@router.post("")
async def create_tender(
    payload: TenderCreate,
    user: SessionUser = Depends(require(permission="create_tenders")),
    db: AsyncSession = Depends(get_session),
):
    tender_id = await TenderRepository(db).create(payload.model_dump(exclude_none=True))
    await log_activity(db, tender_id, "tender_created", user, {"title": payload.title})
    await db.commit()
    logger.info("tender %s created by %s", tender_id, user.username)
    return JSONResponse(
        status_code=201,
        content={"success": True, "id": tender_id, "message": "Tender created successfully"},
    )


@router.api_route("/{tender_id}", methods=["PUT", "PATCH"])
async def update_tender(
    tender_id: str,
    payload: TenderUpdate,
    user: SessionUser = Depends(require(permission="edit_tenders")),
    db: AsyncSession = Depends(get_session),
):
    change = await TenderRepository(db).update(tender_id, payload.model_dump(exclude_unset=True))

    if change.changes:
        await log_activity(db, tender_id, "tender_updated", user, {"updatedFields": sorted(change.changes)})
    if "status" in change.changes:
        old, new = change.changes["status"]
        await log_activity(db, tender_id, "status_changed", user, {"oldStatus": old, "newStatus": new})
    if "deadline" in change.changes:
        old, new = change.changes["deadline"]
        kind = "reactivated" if change.reactivated else "deadline_extended"
        await log_activity(db, tender_id, kind, user, {"oldDeadline": old.isoformat(), "newDeadline": new.isoformat()})
    await db.commit()
    return {"success": True, "message": "Tender updated successfully"}


@router.delete("/{tender_id}")
async def delete_tender(
    tender_id: str,
    request: Request,
    user: SessionUser = Depends(require(role="admin", permission="delete_tenders")),
    db: AsyncSession = Depends(get_session),
):
    keys = (await db.execute(select(Document.storage_key).where(Document.tender_id == tender_id))).scalars().all()
    tender = await TenderRepository(db).delete(tender_id)
    # the tender's own feed is gone with it
    await log_activity(db, None, "tender_deleted", user, {"title": tender.title, "tenderId": tender_id})
    await db.commit()

    request.app.state.storage.discard(keys)
    return {"success": True, "message": "Tender deleted successfully"}


@router.post("/{tender_id}/assign")
async def assign_tender(
    tender_id: str,
    payload: AssignIn,
    user: SessionUser = Depends(require(permission="assign_tenders")),
    db: AsyncSession = Depends(get_session),
):
    tender, assignee = await TenderRepository(db).assign(tender_id, payload.assigned_to)
    await log_activity(
        db,
        tender.id,
        "tender_assigned",
        user,
        {"assignedTo": assignee.id, "assignedToName": assignee.name, "notes": payload.notes},
    )
    await db.commit()
    return {"success": True, "message": f"Tender assigned to {assignee.name}"}


@router.delete("/{tender_id}/assign")
async def unassign_tender(
    tender_id: str,
    user: SessionUser = Depends(require(permission="assign_tenders")),
    db: AsyncSession = Depends(get_session),
):
    tender = await TenderRepository(db).unassign(tender_id)
    await log_activity(db, tender.id, "assignment_removed", user)
    await db.commit()
    return {"success": True, "message": "Assignment removed"}


@router.get("/{tender_id}/activity")
async def get_tender_activity(
    tender_id: str,
    user: SessionUser = Depends(require_login),
    db: AsyncSession = Depends(get_session),
):
    await TenderRepository(db).get_by_id(tender_id)
    rows = await list_activity(db, tender_id)
    return [ActivityOut.from_model(a).model_dump(by_alias=True, mode="json") for a in rows]
