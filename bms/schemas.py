"""Wire schemas: the fixed mapping between ORM rows and JSON payloads."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from bms.domain.models import ActivityLog, Document, ExcelUpload, Tender, TenderStatus, User


def _naive_utc(value: dt.datetime | None) -> dt.datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(dt.timezone.utc).replace(tzinfo=None)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ----------------------------------------------------------------------
# Auth
# ----------------------------------------------------------------------

class LoginIn(BaseModel):
    # Emptiness is checked by the authenticator so it fails as ValidationError.
    username: str = ""
    password: str = ""


class UserOut(CamelModel):
    id: str
    username: str
    email: str
    name: str
    role: str

    @classmethod
    def from_model(cls, user: User) -> "UserOut":
        return cls(id=user.id, username=user.username, email=user.email, name=user.name, role=user.role)


class LoginOut(BaseModel):
    success: bool = True
    message: str = "Login successful"
    token: str
    user: UserOut


# ----------------------------------------------------------------------
# Tenders
# ----------------------------------------------------------------------

class TenderBase(CamelModel):
    description: Optional[str] = None
    status: Optional[TenderStatus] = None
    source: Optional[str] = None
    ai_score: Optional[int] = Field(default=None, ge=0, le=100)
    assigned_to: Optional[str] = None
    requirements: Optional[list[str]] = None
    link: Optional[str] = None
    location: Optional[str] = None
    reference: Optional[str] = None
    t247_id: Optional[str] = None


class TenderCreate(TenderBase):
    title: str = Field(min_length=1)
    organization: str = Field(min_length=1)
    value: float
    deadline: dt.datetime

    @field_validator("deadline")
    @classmethod
    def normalize_deadline(cls, value):
        return _naive_utc(value)


class TenderUpdate(TenderBase):
    title: Optional[str] = None
    organization: Optional[str] = None
    value: Optional[float] = None
    deadline: Optional[dt.datetime] = None

    @field_validator("deadline")
    @classmethod
    def normalize_deadline(cls, value):
        return _naive_utc(value)


class TenderOut(CamelModel):
    id: str
    title: str
    organization: str
    description: Optional[str] = None
    value: float
    deadline: dt.datetime
    status: str
    source: str
    ai_score: Optional[int] = None
    assigned_to: Optional[str] = None
    requirements: list[str] = []
    link: Optional[str] = None
    location: Optional[str] = None
    reference: Optional[str] = None
    t247_id: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    @classmethod
    def from_model(cls, t: Tender) -> "TenderOut":
        return cls(
            id=t.id,
            title=t.title,
            organization=t.organization,
            description=t.description,
            value=t.value,
            deadline=t.deadline,
            status=t.status,
            source=t.source,
            ai_score=t.ai_score,
            assigned_to=t.assigned_to,
            requirements=list(t.requirements or []),
            link=t.link,
            location=t.location,
            reference=t.reference,
            t247_id=t.t247_id,
            created_at=t.created_at,
            updated_at=t.updated_at,
        )


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class TenderListOut(CamelModel):
    tenders: list[TenderOut]
    pagination: Pagination


class AssignIn(CamelModel):
    assigned_to: str = Field(min_length=1)
    notes: Optional[str] = None


# ----------------------------------------------------------------------
# Activity / documents / uploads
# ----------------------------------------------------------------------

class ActivityOut(CamelModel):
    id: str
    tender_id: Optional[str]
    activity_type: str
    description: str
    created_by: str
    details: dict[str, Any] = {}
    created_at: dt.datetime

    @classmethod
    def from_model(cls, a: ActivityLog) -> "ActivityOut":
        return cls(
            id=a.id,
            tender_id=a.tender_id,
            activity_type=a.activity_type,
            description=a.description,
            created_by=a.created_by,
            details=a.details or {},
            created_at=a.created_at,
        )


class DocumentOut(CamelModel):
    id: str
    tender_id: str
    filename: str
    original_name: str
    mime_type: str
    size: int
    download_url: str
    uploaded_at: dt.datetime

    @classmethod
    def from_model(cls, d: Document, download_url: str) -> "DocumentOut":
        return cls(
            id=d.id,
            tender_id=d.tender_id,
            filename=d.filename,
            original_name=d.original_name,
            mime_type=d.mime_type,
            size=d.size,
            download_url=download_url,
            uploaded_at=d.uploaded_at,
        )


class ExcelUploadOut(CamelModel):
    id: str
    file_name: str
    uploaded_by: str
    tenders_added: int
    duplicates: int
    errors: int
    gem_added: int
    non_gem_added: int
    uploaded_at: dt.datetime

    @classmethod
    def from_model(cls, u: ExcelUpload) -> "ExcelUploadOut":
        return cls(
            id=u.id,
            file_name=u.file_name,
            uploaded_by=u.uploaded_by,
            tenders_added=u.tenders_added,
            duplicates=u.duplicates,
            errors=u.errors,
            gem_added=u.gem_added,
            non_gem_added=u.non_gem_added,
            uploaded_at=u.uploaded_at,
        )


# ----------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------

class DashboardStatsOut(CamelModel):
    total_tenders: int
    active_tenders: int
    submitted_tenders: int
    won_tenders: int
    missed_opportunities: int
    win_rate: int
    total_value: int
    ai_score: int
    status_counts: dict[str, int]


class PipelineOut(CamelModel):
    prospecting: int
    proposal: int
    negotiation: int
    won: int
    total_value: int
