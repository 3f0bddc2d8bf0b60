"""
Spreadsheet ingestion for tender exports (GeM / non-GeM sheets).

Every sheet of the workbook is read; columns are located by sniffing the
header row, rows become tenders, and duplicates are skipped by T247 ID
or reference number.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Optional, Sequence
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bms.auth.session import SessionUser
from bms.domain.models import ExcelUpload, TenderStatus, utcnow
from bms.errors import ValidationError
from bms.services.activity import log_activity
from bms.services.maintenance import process_missed_opportunities
from bms.services.tender_repo import TenderRepository

logger = logging.getLogger("bms.excel_import")

# column -> header substrings, first matching header wins
HEADER_RULES: dict[str, tuple[str, ...]] = {
    "title": ("brief", "title"),
    "organization": ("organization",),
    "value": ("cost", "value"),
    "deadline": ("deadline", "date"),
    "location": ("location",),
    "reference": ("reference",),
    "t247_id": ("t247",),
}

TECH_KEYWORDS = ("software", "it", "technology", "digital", "system", "web", "mobile")
MIN_TITLE_LENGTH = 5
_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")

DATE_FORMATS = (
    "%d-%m-%Y %H:%M",
    "%d-%m-%Y",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%d %b %Y",
)


@dataclass
class ImportSummary:
    file_name: str
    tenders_added: int = 0
    duplicates: int = 0
    errors: int = 0
    gem_added: int = 0
    non_gem_added: int = 0
    sheets_processed: int = 0
    missed: int = 0


def sniff_columns(headers: Sequence[Any]) -> dict[str, int]:
    """Map logical columns to header indices (-1 when absent)."""
    lowered = [str(h).strip().lower() if h is not None else "" for h in headers]
    found = {}
    for column, needles in HEADER_RULES.items():
        found[column] = next(
            (idx for idx, h in enumerate(lowered) if h and any(n in h for n in needles)),
            -1,
        )
    return found


def classify_sheet(sheet_name: str) -> str:
    name = sheet_name.lower()
    if "gem" in name and "non" not in name:
        return "gem"
    return "non_gem"


def parse_value(raw: Any) -> int:
    if raw is None:
        return 0
    if isinstance(raw, (int, float)):
        return round(raw)
    match = _NUMBER_RE.search(str(raw))
    if match is None:
        return 0
    return round(float(match.group(0).replace(",", "")))


def parse_deadline(raw: Any, default: dt.datetime) -> dt.datetime:
    if isinstance(raw, dt.datetime):
        if raw.tzinfo is not None:
            return raw.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return raw
    if isinstance(raw, dt.date):
        return dt.datetime.combine(raw, dt.time())
    text = str(raw or "").strip()
    if not text:
        return default
    for fmt in DATE_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return parse_deadline(dt.datetime.fromisoformat(text), default)
    except ValueError:
        return default


def keyword_score(title: str) -> int:
    """Relevance score from tech keywords in the title, capped at 85."""
    lowered = title.lower()
    matches = sum(1 for kw in TECH_KEYWORDS if re.search(rf"\b{re.escape(kw)}\b", lowered))
    return min(85, 30 + matches * 15)


def _text(row: Sequence[Any], idx: int) -> str:
    if idx < 0 or idx >= len(row) or row[idx].value is None:
        return ""
    return str(row[idx].value).strip()


def _is_checkable_t247(t247_id: str) -> bool:
    return len(t247_id) >= 6 and t247_id.isdigit()


def _is_checkable_reference(reference: str) -> bool:
    return len(reference) > 8 and ("/" in reference or "GEM" in reference)


async def import_workbook(
    db: AsyncSession,
    data: bytes,
    file_name: str,
    uploaded_by: SessionUser,
) -> ImportSummary:
    try:
        workbook = load_workbook(filename=BytesIO(data), data_only=True)
    except (InvalidFileException, BadZipFile, KeyError) as exc:
        logger.warning("excel import rejected %s: %s", file_name, exc)
        raise ValidationError("Unable to read the uploaded file as an Excel workbook")

    repo = TenderRepository(db)
    summary = ImportSummary(file_name=file_name)
    now = utcnow()

    for sheet in workbook.worksheets:
        rows = list(sheet.iter_rows())
        if len(rows) <= 1:
            logger.info("sheet %s has no data, skipping", sheet.title)
            continue

        cols = sniff_columns([c.value for c in rows[0]])
        source = classify_sheet(sheet.title)
        logger.info("sheet %r classified as %s, columns=%s", sheet.title, source, cols)
        summary.sheets_processed += 1

        for row in rows[1:]:
            title = _text(row, cols["title"])
            if len(title) < MIN_TITLE_LENGTH:
                continue

            t247_id = _text(row, cols["t247_id"])
            reference = _text(row, cols["reference"])
            if _is_checkable_t247(t247_id) and await repo.exists_by_t247_id(t247_id):
                summary.duplicates += 1
                continue
            if _is_checkable_reference(reference) and await repo.exists_by_reference(reference):
                summary.duplicates += 1
                continue

            link: Optional[str] = None
            if 0 <= cols["title"] < len(row) and row[cols["title"]].hyperlink is not None:
                link = row[cols["title"]].hyperlink.target

            deadline_cell = row[cols["deadline"]].value if 0 <= cols["deadline"] < len(row) else None
            value_cell = row[cols["value"]].value if 0 <= cols["value"] < len(row) else None

            try:
                await repo.create(
                    {
                        "title": title,
                        "organization": _text(row, cols["organization"]) or "Unknown",
                        "value": parse_value(value_cell),
                        "deadline": parse_deadline(deadline_cell, now),
                        "status": TenderStatus.ACTIVE.value,
                        "source": source,
                        "ai_score": keyword_score(title),
                        "description": f"Imported from {sheet.title}",
                        "link": link,
                        "location": _text(row, cols["location"]) or None,
                        "reference": reference or None,
                        "t247_id": t247_id or None,
                    },
                    allow_past_deadline=True,
                )
            except ValidationError as exc:
                summary.errors += 1
                logger.warning("row %d of sheet %s rejected: %s", row[0].row, sheet.title, exc.message)
                continue

            summary.tenders_added += 1
            if source == "gem":
                summary.gem_added += 1
            else:
                summary.non_gem_added += 1

    db.add(
        ExcelUpload(
            file_name=file_name,
            uploaded_by=uploaded_by.username,
            tenders_added=summary.tenders_added,
            duplicates=summary.duplicates,
            errors=summary.errors,
            gem_added=summary.gem_added,
            non_gem_added=summary.non_gem_added,
        )
    )
    await log_activity(
        db,
        None,
        "excel_upload",
        uploaded_by,
        {"fileName": file_name, "tendersAdded": summary.tenders_added, "duplicates": summary.duplicates},
    )
    await db.commit()

    summary.missed = len(await process_missed_opportunities(db))
    logger.info(
        "excel import %s: %d added (%d gem, %d non-gem), %d duplicates, %d errors",
        file_name,
        summary.tenders_added,
        summary.gem_added,
        summary.non_gem_added,
        summary.duplicates,
        summary.errors,
    )
    return summary


async def list_uploads(db: AsyncSession, limit: int = 50) -> Sequence[ExcelUpload]:
    stmt = select(ExcelUpload).order_by(ExcelUpload.uploaded_at.desc()).limit(limit)
    return (await db.execute(stmt)).scalars().all()
