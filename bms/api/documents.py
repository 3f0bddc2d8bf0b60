import logging
import os
import re
import uuid
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, File, Request, UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bms.auth import SessionUser, require, require_login
from bms.core.db import get_session
from bms.domain.models import Document
from bms.errors import NotFound, ValidationError
from bms.schemas import DocumentOut
from bms.services.activity import log_activity
from bms.services.tender_repo import TenderRepository

logger = logging.getLogger("bms.api.documents")

router = APIRouter(tags=["documents"])

ALLOWED_MIME = {
    # documents
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "text/csv",
    # images
    "image/jpeg",
    "image/png",
}
ALLOWED_EXT = {"pdf", "doc", "docx", "xls", "xlsx", "txt", "csv", "jpg", "jpeg", "png", "zip"}

_SAFE_RE = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(name: str) -> str:
    name = os.path.basename(name or "")
    if not name:
        return f"file-{uuid.uuid4().hex}"
    stem = Path(name).stem
    ext = Path(name).suffix.lower().lstrip(".")
    stem = _SAFE_RE.sub("-", stem).strip("-._") or f"file-{uuid.uuid4().hex}"
    if ext and ext not in ALLOWED_EXT:
        ext = ""
    out = stem[:80]
    return f"{out}.{ext}" if ext else out


def _check_type(safe_name: str, mime: str) -> None:
    if mime and mime in ALLOWED_MIME:
        return
    # allow unknown mime if extension permitted
    ext = Path(safe_name).suffix.lower().lstrip(".")
    if ext not in ALLOWED_EXT:
        raise ValidationError(f"Unsupported file type: {mime or ext or 'unknown'}")


@router.get("/api/tenders/{tender_id}/documents")
async def list_documents(
    tender_id: str,
    request: Request,
    user: SessionUser = Depends(require_login),
    db: AsyncSession = Depends(get_session),
):
    await TenderRepository(db).get_by_id(tender_id)
    rows = (
        await db.execute(
            select(Document).where(Document.tender_id == tender_id).order_by(Document.uploaded_at.desc())
        )
    ).scalars().all()
    storage = request.app.state.storage
    return [DocumentOut.from_model(d, storage.download_url(d.storage_key)).model_dump(by_alias=True, mode="json") for d in rows]


@router.post("/api/tenders/{tender_id}/documents")
async def upload_documents(
    tender_id: str,
    request: Request,
    files: List[UploadFile] = File(...),
    user: SessionUser = Depends(require(permission="upload_documents")),
    db: AsyncSession = Depends(get_session),
):
    await TenderRepository(db).get_by_id(tender_id)
    storage = request.app.state.storage
    max_mb = request.app.state.settings.MAX_UPLOAD_MB

    # Check the whole batch before anything is written
    accepted = []
    for up in files:
        # Enforce MIME/size/filename hygiene
        safe_name = sanitize_filename(up.filename)
        mime = (up.content_type or "").lower().strip()
        _check_type(safe_name, mime)

        data = await up.read()
        if not data:
            continue
        if len(data) > max_mb * 1024 * 1024:
            raise ValidationError(f"File too large (>{max_mb} MB)")
        accepted.append((up.filename, safe_name, mime, data))

    saved = []
    stored_keys = []
    try:
        for original_name, safe_name, mime, data in accepted:
            storage_key, stored_name, size, mime = storage.store_bytes(tender_id, data, safe_name, mime)
            stored_keys.append(storage_key)
            doc = Document(
                tender_id=tender_id,
                filename=stored_name,
                original_name=original_name or stored_name,
                mime_type=mime,
                size=size,
                storage_key=storage_key,
                uploaded_by=user.id,
            )
            db.add(doc)
            await db.flush()
            await log_activity(db, tender_id, "document_uploaded", user, {"fileName": doc.original_name, "fileSize": size})
            saved.append(DocumentOut.from_model(doc, storage.download_url(storage_key)).model_dump(by_alias=True, mode="json"))
        await db.commit()
    except Exception:
        storage.discard(stored_keys)
        raise

    logger.info("%d document(s) uploaded to tender %s by %s", len(saved), tender_id, user.username)
    return {"success": True, "files": saved}


@router.delete("/api/documents/{document_id}")
async def delete_document(
    document_id: str,
    request: Request,
    user: SessionUser = Depends(require(permission="upload_documents")),
    db: AsyncSession = Depends(get_session),
):
    doc = await db.get(Document, document_id)
    if doc is None:
        raise NotFound("Document not found")
    storage_key = doc.storage_key
    await db.delete(doc)
    await db.commit()

    request.app.state.storage.discard([storage_key])
    return {"success": True}
