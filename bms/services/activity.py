import logging
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bms.auth.session import SessionUser
from bms.domain.models import ActivityLog

logger = logging.getLogger("bms.activity")

SYSTEM_USER = "System"


def _actor_name(actor: SessionUser | str | None) -> str:
    if actor is None:
        return SYSTEM_USER
    if isinstance(actor, SessionUser):
        return actor.name or actor.username
    return actor


def describe(activity_type: str, actor: str, details: dict[str, Any]) -> str:
    """Human-readable line for the activity feed."""
    if activity_type == "tender_created":
        return f'Tender created: "{details.get("title", "Unknown title")}" by {actor}'
    if activity_type == "tender_updated":
        fields = ", ".join(details.get("updatedFields") or []) or "no fields"
        return f"Tender updated ({fields}) by {actor}"
    if activity_type == "status_changed":
        return (
            f'Status changed from "{details.get("oldStatus", "Unknown")}" '
            f'to "{details.get("newStatus", "Unknown")}" by {actor}'
        )
    if activity_type == "deadline_extended":
        return f"Deadline extended from {details.get('oldDeadline', 'Unknown')} to {details.get('newDeadline', 'Unknown')} by {actor}"
    if activity_type == "tender_assigned":
        return f"Tender assigned to {details.get('assignedToName', 'Unknown User')} by {actor}"
    if activity_type == "assignment_removed":
        return f"Assignment removed and tender returned to active status by {actor}"
    if activity_type == "tender_deleted":
        return f'Tender deleted: "{details.get("title", "Unknown title")}" by {actor}'
    if activity_type == "document_uploaded":
        return f"Document uploaded: {details.get('fileName', 'Unknown file')} ({details.get('fileSize', 'Unknown size')} bytes) by {actor}"
    if activity_type == "excel_upload":
        return (
            f"Excel file uploaded: {details.get('fileName', 'Unknown file')} - "
            f"{details.get('tendersAdded', 0)} tenders added, "
            f"{details.get('duplicates', 0)} duplicates skipped by {actor}"
        )
    if activity_type == "missed_opportunity":
        return f"Tender automatically marked as missed opportunity - deadline expired ({details.get('deadline', 'Unknown date')}) by {SYSTEM_USER}"
    if activity_type == "reactivated":
        return f"Tender reactivated after deadline extension to {details.get('newDeadline', 'Unknown')} by {actor}"
    return f"{activity_type.replace('_', ' ').capitalize()} by {actor}"


async def log_activity(
    db: AsyncSession,
    tender_id: Optional[str],
    activity_type: str,
    actor: SessionUser | str | None = None,
    details: Optional[dict[str, Any]] = None,
) -> ActivityLog:
    details = details or {}
    name = _actor_name(actor)
    entry = ActivityLog(
        tender_id=tender_id,
        activity_type=activity_type,
        description=describe(activity_type, name, details),
        created_by=actor.id if isinstance(actor, SessionUser) else name,
        details=details,
    )
    db.add(entry)
    logger.debug("activity %s tender=%s by=%s", activity_type, tender_id, name)
    return entry


async def list_activity(db: AsyncSession, tender_id: str, limit: int = 100) -> Sequence[ActivityLog]:
    stmt = (
        select(ActivityLog)
        .where(ActivityLog.tender_id == tender_id)
        .order_by(ActivityLog.created_at.desc())
        .limit(limit)
    )
    return (await db.execute(stmt)).scalars().all()
