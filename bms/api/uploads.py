from pathlib import Path

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from bms.auth import SessionUser, require
from bms.core.db import get_session
from bms.errors import ValidationError
from bms.services.excel_import import import_workbook

router = APIRouter(prefix="/api/uploads", tags=["uploads"])

EXCEL_EXT = {"xlsx", "xlsm"}


@router.post("/excel")
async def upload_excel(
    request: Request,
    file: UploadFile = File(...),
    user: SessionUser = Depends(require(permission="import_tenders")),
    db: AsyncSession = Depends(get_session),
):
    name = Path(file.filename or "").name
    if Path(name).suffix.lower().lstrip(".") not in EXCEL_EXT:
        raise ValidationError("Only .xlsx workbooks can be imported")

    data = await file.read()
    if not data:
        raise ValidationError("The uploaded file is empty")
    max_mb = request.app.state.settings.MAX_UPLOAD_MB
    if len(data) > max_mb * 1024 * 1024:
        raise ValidationError(f"File too large (>{max_mb} MB)")

    summary = await import_workbook(db, data, name, user)
    return {
        "success": True,
        "message": f"{summary.tenders_added} tenders added, {summary.duplicates} duplicates skipped",
        "fileName": summary.file_name,
        "tendersAdded": summary.tenders_added,
        "duplicates": summary.duplicates,
        "errors": summary.errors,
        "gemAdded": summary.gem_added,
        "nonGemAdded": summary.non_gem_added,
        "sheetsProcessed": summary.sheets_processed,
        "missedOpportunities": summary.missed,
    }
