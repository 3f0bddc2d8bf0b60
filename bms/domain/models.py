from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Text, Integer, Float, TIMESTAMP, JSON, ForeignKey
import enum
import uuid, datetime as dt


def utcnow() -> dt.datetime:
    """Naive UTC timestamp; every datetime column stores naive UTC."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class TenderStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    WON = "won"
    LOST = "lost"
    NOT_RELEVANT = "not_relevant"
    MISSED_OPPORTUNITY = "missed_opportunity"


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username: Mapped[str] = mapped_column(String, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String)
    email: Mapped[str] = mapped_column(String, unique=True)
    name: Mapped[str] = mapped_column(String)
    role: Mapped[str] = mapped_column(String, default="manager")
    created_at: Mapped[dt.datetime] = mapped_column(TIMESTAMP, default=utcnow)


class Tender(Base):
    __tablename__ = "tenders"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(Text, index=True)
    organization: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    value: Mapped[float] = mapped_column(Float)
    deadline: Mapped[dt.datetime] = mapped_column(TIMESTAMP, index=True)
    status: Mapped[str] = mapped_column(String, default=TenderStatus.ACTIVE.value, index=True)
    source: Mapped[str] = mapped_column(String, default="non_gem", index=True)  # gem, non_gem, portal
    ai_score: Mapped[int | None] = mapped_column(Integer, default=None)  # 0-100
    assigned_to: Mapped[str | None] = mapped_column(String(36), default=None, index=True)  # users.id, weak
    requirements: Mapped[list[str]] = mapped_column(JSON, default=list)
    link: Mapped[str | None] = mapped_column(Text, default=None)
    location: Mapped[str | None] = mapped_column(String, default=None)
    reference: Mapped[str | None] = mapped_column(String, default=None, index=True)
    t247_id: Mapped[str | None] = mapped_column(String, default=None, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(TIMESTAMP, default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(TIMESTAMP, default=utcnow, onupdate=utcnow)


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tender_id: Mapped[str | None] = mapped_column(String(36), index=True)
    activity_type: Mapped[str] = mapped_column(String)
    description: Mapped[str] = mapped_column(Text)
    created_by: Mapped[str] = mapped_column(String, default="system")
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[dt.datetime] = mapped_column(TIMESTAMP, default=utcnow)


class Document(Base):
    __tablename__ = "documents"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tender_id: Mapped[str] = mapped_column(String(36), ForeignKey("tenders.id", ondelete="CASCADE"), index=True)
    filename: Mapped[str] = mapped_column(String)
    original_name: Mapped[str] = mapped_column(String)
    mime_type: Mapped[str] = mapped_column(String)
    size: Mapped[int] = mapped_column(Integer)
    storage_key: Mapped[str] = mapped_column(Text)
    uploaded_by: Mapped[str | None] = mapped_column(String(36), default=None)
    uploaded_at: Mapped[dt.datetime] = mapped_column(TIMESTAMP, default=utcnow)


class ExcelUpload(Base):
    __tablename__ = "excel_uploads"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    file_name: Mapped[str] = mapped_column(String)
    uploaded_by: Mapped[str] = mapped_column(String)
    tenders_added: Mapped[int] = mapped_column(Integer, default=0)
    duplicates: Mapped[int] = mapped_column(Integer, default=0)
    errors: Mapped[int] = mapped_column(Integer, default=0)
    gem_added: Mapped[int] = mapped_column(Integer, default=0)
    non_gem_added: Mapped[int] = mapped_column(Integer, default=0)
    uploaded_at: Mapped[dt.datetime] = mapped_column(TIMESTAMP, default=utcnow)
