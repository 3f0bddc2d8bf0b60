"""
Repository for tender records.

All filtering happens in SQL; callers own the transaction (flush here,
commit at the route / job boundary).
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Sequence

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bms.domain.models import ActivityLog, Document, Tender, TenderStatus, User, utcnow
from bms.errors import NotFound, ValidationError
from bms.services.listing import FilterSpec

REQUIRED_FIELDS = ("title", "organization", "value", "deadline")
NON_NULLABLE_FIELDS = REQUIRED_FIELDS + ("status", "source")
WRITABLE_FIELDS = frozenset(
    {
        "title",
        "organization",
        "description",
        "value",
        "deadline",
        "status",
        "source",
        "ai_score",
        "assigned_to",
        "requirements",
        "link",
        "location",
        "reference",
        "t247_id",
    }
)
STATUS_VALUES = frozenset(s.value for s in TenderStatus)

SORT_COLUMNS = {
    "deadline": Tender.deadline,
    "value": Tender.value,
    "createdAt": Tender.created_at,
    "title": Tender.title,
}


@dataclass
class TenderChange:
    tender: Tender
    changes: dict[str, tuple[Any, Any]] = field(default_factory=dict)
    reactivated: bool = False


def _normalize(data: dict[str, Any]) -> dict[str, Any]:
    unknown = set(data) - WRITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown tender field(s): {', '.join(sorted(unknown))}")

    out = dict(data)
    if "status" in out and out["status"] is not None:
        status = out["status"].value if isinstance(out["status"], TenderStatus) else str(out["status"])
        if status not in STATUS_VALUES:
            raise ValidationError(f"Invalid status: {status}")
        out["status"] = status
    if "value" in out and out["value"] is not None:
        try:
            out["value"] = float(out["value"])
        except (TypeError, ValueError):
            raise ValidationError("Value must be a number")
        if out["value"] < 0:
            raise ValidationError("Value must be positive")
    if "deadline" in out and out["deadline"] is not None and not isinstance(out["deadline"], dt.datetime):
        raise ValidationError("Invalid deadline format")
    if "requirements" in out:
        out["requirements"] = [str(r) for r in out["requirements"] or []]
    return out


def _missing(data: dict[str, Any], fields) -> list[str]:
    missing = []
    for name in fields:
        val = data.get(name)
        if val is None or (isinstance(val, str) and not val.strip()):
            missing.append(name)
    return missing


class TenderRepository:
    """Repository for Tender CRUD, listing and batch maintenance."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # -------------------------------------------------------------
    # Single-record operations
    # -------------------------------------------------------------

    async def get_by_id(self, tender_id: str) -> Tender:
        tender = await self.session.get(Tender, tender_id)
        if tender is None:
            raise NotFound("Tender not found")
        return tender

    async def create(self, data: dict[str, Any], *, allow_past_deadline: bool = False) -> str:
        data = _normalize({k: v for k, v in data.items() if v is not None})
        missing = _missing(data, REQUIRED_FIELDS)
        if missing:
            raise ValidationError(
                "Missing required field(s): " + ", ".join(missing),
                details=[{"field": m, "message": f"{m} is required"} for m in missing],
            )
        if not allow_past_deadline and data["deadline"] < utcnow():
            raise ValidationError("Deadline cannot be in the past")

        data.setdefault("status", TenderStatus.ACTIVE.value)
        data.setdefault("source", "non_gem")
        data.setdefault("requirements", [])
        tender = Tender(**data)
        self.session.add(tender)
        await self.session.flush()
        return tender.id

    async def update(self, tender_id: str, partial: dict[str, Any]) -> TenderChange:
        """Merge ``partial`` into the stored tender.

        A deadline pushed past the current one reactivates a missed opportunity
        unless the caller also sets the status explicitly.
        """
        tender = await self.get_by_id(tender_id)
        partial = _normalize(partial)

        nulled = [f for f in _missing(partial, NON_NULLABLE_FIELDS) if f in partial]
        if nulled:
            raise ValidationError(
                "Field(s) cannot be empty: " + ", ".join(nulled),
                details=[{"field": f, "message": f"{f} cannot be empty"} for f in nulled],
            )

        new_deadline = partial.get("deadline")
        if new_deadline is not None and new_deadline != tender.deadline and new_deadline < utcnow():
            raise ValidationError("Deadline cannot be in the past")

        change = TenderChange(tender=tender)
        for name, val in partial.items():
            old = getattr(tender, name)
            if old != val:
                change.changes[name] = (old, val)
                setattr(tender, name, val)

        if (
            "deadline" in change.changes
            and "status" not in partial
            and tender.status == TenderStatus.MISSED_OPPORTUNITY.value
            and change.changes["deadline"][1] > change.changes["deadline"][0]
        ):
            change.changes["status"] = (tender.status, TenderStatus.ACTIVE.value)
            tender.status = TenderStatus.ACTIVE.value
            change.reactivated = True

        if change.changes:
            tender.updated_at = utcnow()
            await self.session.flush()
        return change

    async def delete(self, tender_id: str) -> Tender:
        tender = await self.get_by_id(tender_id)
        await self.session.execute(delete(Document).where(Document.tender_id == tender_id))
        await self.session.execute(delete(ActivityLog).where(ActivityLog.tender_id == tender_id))
        await self.session.delete(tender)
        await self.session.flush()
        return tender

    async def assign(self, tender_id: str, user_id: str) -> tuple[Tender, User]:
        tender = await self.get_by_id(tender_id)
        user = await self.session.get(User, user_id)
        if user is None:
            raise ValidationError("Assignee does not exist")
        tender.assigned_to = user.id
        tender.status = TenderStatus.ASSIGNED.value
        tender.updated_at = utcnow()
        await self.session.flush()
        return tender, user

    async def unassign(self, tender_id: str) -> Tender:
        tender = await self.get_by_id(tender_id)
        tender.assigned_to = None
        tender.status = TenderStatus.ACTIVE.value
        tender.updated_at = utcnow()
        await self.session.flush()
        return tender

    # -------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------

    @staticmethod
    def _conditions(spec: FilterSpec) -> list:
        conditions = []
        if spec.search:
            conditions.append(
                or_(
                    Tender.title.icontains(spec.search, autoescape=True),
                    Tender.organization.icontains(spec.search, autoescape=True),
                )
            )
        if spec.source:
            conditions.append(Tender.source == spec.source)
        if spec.status is None:
            conditions.append(Tender.status != TenderStatus.MISSED_OPPORTUNITY.value)
        elif spec.status != "all":
            conditions.append(Tender.status == spec.status)
        if spec.assigned_to:
            conditions.append(Tender.assigned_to == spec.assigned_to)
        return conditions

    async def count(self, spec: FilterSpec) -> int:
        stmt = select(func.count()).select_from(Tender).where(*self._conditions(spec))
        return (await self.session.execute(stmt)).scalar_one()

    async def find(self, spec: FilterSpec) -> Sequence[Tender]:
        column = SORT_COLUMNS[spec.sort_by]
        order = column.desc() if spec.sort_order == "desc" else column.asc()
        stmt = (
            select(Tender)
            .where(*self._conditions(spec))
            .order_by(order, Tender.id.asc())
            .limit(spec.limit)
            .offset(spec.offset)
        )
        return (await self.session.execute(stmt)).scalars().all()

    # -------------------------------------------------------------
    # Lookups used by the importer
    # -------------------------------------------------------------

    async def exists_by_t247_id(self, t247_id: str) -> bool:
        stmt = select(Tender.id).where(Tender.t247_id == t247_id).limit(1)
        return (await self.session.execute(stmt)).first() is not None

    async def exists_by_reference(self, reference: str) -> bool:
        stmt = select(Tender.id).where(Tender.reference == reference).limit(1)
        return (await self.session.execute(stmt)).first() is not None

    # -------------------------------------------------------------
    # Batch maintenance
    # -------------------------------------------------------------

    async def remove_duplicates(self) -> tuple[int, list[str]]:
        """Keep the earliest-created tender per title, delete the rest.

        Ties on created_at keep the lowest id. Returns the number deleted and
        the storage keys of their documents, whose files the caller removes
        once the transaction is committed.
        """
        stmt = select(Tender.id, Tender.title).order_by(Tender.title, Tender.created_at.asc(), Tender.id.asc())
        rows = (await self.session.execute(stmt)).all()

        seen: set[str] = set()
        doomed: list[str] = []
        for tender_id, title in rows:
            if title in seen:
                doomed.append(tender_id)
            else:
                seen.add(title)

        storage_keys: list[str] = []
        for start in range(0, len(doomed), 500):
            chunk = doomed[start:start + 500]
            keys = await self.session.execute(select(Document.storage_key).where(Document.tender_id.in_(chunk)))
            storage_keys.extend(keys.scalars().all())
            await self.session.execute(delete(Document).where(Document.tender_id.in_(chunk)))
            await self.session.execute(delete(ActivityLog).where(ActivityLog.tender_id.in_(chunk)))
            await self.session.execute(delete(Tender).where(Tender.id.in_(chunk)))
        await self.session.flush()
        return len(doomed), storage_keys

    async def find_expired_unassigned(self, now: dt.datetime | None = None) -> Sequence[Tender]:
        now = now or utcnow()
        stmt = select(Tender).where(
            and_(
                Tender.deadline < now,
                or_(Tender.assigned_to.is_(None), Tender.assigned_to == ""),
                Tender.status == TenderStatus.ACTIVE.value,
            )
        )
        return (await self.session.execute(stmt)).scalars().all()
