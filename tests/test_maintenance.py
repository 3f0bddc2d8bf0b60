import datetime as dt

import pytest
from sqlalchemy import select

from bms.core.db import build_engine, build_sessionmaker
from bms.core.scheduler import build_scheduler
from bms.domain.models import ActivityLog, Base, Document, Tender, TenderStatus, utcnow
from bms.errors import NotFound, ValidationError
from bms.services.activity import log_activity
from bms.services.maintenance import clear_duplicates, job_missed_opportunities, process_missed_opportunities
from bms.services.tender_repo import TenderRepository
from tests.conftest import future


def _tender(title, created_at=None, **kw):
    fields = {
        "title": title,
        "organization": "Org",
        "value": 1.0,
        "deadline": future(),
        "status": TenderStatus.ACTIVE.value,
        "source": "non_gem",
        "requirements": [],
    }
    fields.update(kw)
    if created_at is not None:
        fields["created_at"] = created_at
    return Tender(**fields)


async def _titles(db):
    return sorted((await db.execute(select(Tender.title))).scalars().all())


async def test_duplicates_keep_the_earliest_per_title(db):
    t1 = dt.datetime(2024, 1, 1)
    t2 = dt.datetime(2024, 1, 2)
    first_a = _tender("A", t1)
    db.add_all([first_a, _tender("A", t2), _tender("B", t1)])
    await db.commit()

    assert await clear_duplicates(db) == 1
    assert await _titles(db) == ["A", "B"]
    kept = (await db.execute(select(Tender).where(Tender.title == "A"))).scalar_one()
    assert kept.id == first_a.id

    assert await clear_duplicates(db) == 0


async def test_duplicate_ties_keep_the_lowest_id(db):
    same = dt.datetime(2024, 1, 1)
    db.add_all([_tender("A", same, id="b-id"), _tender("A", same, id="a-id")])
    await db.commit()

    assert await clear_duplicates(db) == 1
    assert (await db.execute(select(Tender.id))).scalars().all() == ["a-id"]


class _RecordingStorage:
    def __init__(self):
        self.discarded = []

    def discard(self, storage_keys):
        self.discarded.extend(storage_keys)


async def test_duplicate_cleanup_drops_documents_activity_and_files(db, actor):
    keep = _tender("A", dt.datetime(2024, 1, 1))
    dupe = _tender("A", dt.datetime(2024, 1, 2))
    db.add_all([keep, dupe])
    await db.flush()
    db.add(Document(tender_id=dupe.id, filename="f", original_name="f", mime_type="text/plain", size=1, storage_key="tenders/x/f"))
    await log_activity(db, dupe.id, "tender_created", actor, {"title": "A"})
    await log_activity(db, keep.id, "tender_created", actor, {"title": "A"})
    await db.commit()

    storage = _RecordingStorage()
    assert await clear_duplicates(db, storage) == 1
    assert (await db.execute(select(Document))).scalars().all() == []
    remaining = (await db.execute(select(ActivityLog.tender_id))).scalars().all()
    assert remaining == [keep.id]
    assert storage.discarded == ["tenders/x/f"]


async def test_no_duplicates_is_a_no_op(db):
    db.add_all([_tender("A"), _tender("B")])
    await db.commit()
    assert await clear_duplicates(db) == 0
    assert await _titles(db) == ["A", "B"]


async def test_missed_sweep_moves_only_expired_unassigned_active(db):
    past = utcnow() - dt.timedelta(days=1)
    expired = _tender("expired", deadline=past)
    assigned = _tender("assigned", deadline=past, assigned_to="u-1", status=TenderStatus.ASSIGNED.value)
    won = _tender("won", deadline=past, status=TenderStatus.WON.value)
    upcoming = _tender("upcoming")
    db.add_all([expired, assigned, won, upcoming])
    await db.commit()

    missed = await process_missed_opportunities(db)
    assert [m["id"] for m in missed] == [expired.id]

    statuses = dict((await db.execute(select(Tender.title, Tender.status))).all())
    assert statuses == {
        "expired": "missed_opportunity",
        "assigned": "assigned",
        "won": "won",
        "upcoming": "active",
    }

    log = (await db.execute(select(ActivityLog).where(ActivityLog.tender_id == expired.id))).scalar_one()
    assert log.activity_type == "missed_opportunity"
    assert log.created_by == "System"
    assert log.details["source"] == "automated_check"
    assert log.details["previousStatus"] == "active"

    assert await process_missed_opportunities(db) == []


# ----------------------------------------------------------------------
# Repository rules
# ----------------------------------------------------------------------

async def test_create_rejects_past_deadline_unless_allowed(db):
    repo = TenderRepository(db)
    data = {"title": "T", "organization": "O", "value": 1, "deadline": utcnow() - dt.timedelta(hours=1)}
    with pytest.raises(ValidationError):
        await repo.create(data)
    tender_id = await repo.create(data, allow_past_deadline=True)
    assert (await repo.get_by_id(tender_id)).status == "active"


async def test_create_reports_every_missing_field(db):
    with pytest.raises(ValidationError) as exc:
        await TenderRepository(db).create({"title": "T"})
    fields = {d["field"] for d in exc.value.details}
    assert fields == {"organization", "value", "deadline"}


async def test_unknown_fields_and_statuses_are_rejected(db):
    repo = TenderRepository(db)
    tender_id = await repo.create({"title": "T", "organization": "O", "value": 1, "deadline": future()})
    with pytest.raises(ValidationError):
        await repo.update(tender_id, {"password": "x"})
    with pytest.raises(ValidationError):
        await repo.update(tender_id, {"status": "archived"})


async def test_update_reports_changes(db):
    repo = TenderRepository(db)
    tender_id = await repo.create({"title": "T", "organization": "O", "value": 1, "deadline": future()})
    change = await repo.update(tender_id, {"title": "T", "value": 5})
    assert change.changes == {"value": (1.0, 5.0)}
    assert not change.reactivated


async def test_extending_deadline_reactivates_missed_tender(db):
    repo = TenderRepository(db)
    tender_id = await repo.create(
        {"title": "T", "organization": "O", "value": 1, "deadline": future(1), "status": "missed_opportunity"}
    )
    change = await repo.update(tender_id, {"deadline": future(60)})
    assert change.reactivated
    assert change.tender.status == "active"


async def test_explicit_status_wins_over_reactivation(db):
    repo = TenderRepository(db)
    tender_id = await repo.create(
        {"title": "T", "organization": "O", "value": 1, "deadline": future(1), "status": "missed_opportunity"}
    )
    change = await repo.update(tender_id, {"deadline": future(60), "status": "not_relevant"})
    assert not change.reactivated
    assert change.tender.status == "not_relevant"


async def test_missing_tender_raises_not_found(db):
    repo = TenderRepository(db)
    with pytest.raises(NotFound):
        await repo.get_by_id("missing")
    with pytest.raises(NotFound):
        await repo.delete("missing")


# ----------------------------------------------------------------------
# Admin endpoints
# ----------------------------------------------------------------------

def test_maintenance_endpoints_are_admin_only(client, bidder_headers, admin_headers):
    assert client.post("/api/admin/maintenance/clear-duplicates", headers=bidder_headers).status_code == 403
    resp = client.post("/api/admin/maintenance/clear-duplicates", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "deleted": 0}

    resp = client.post("/api/admin/maintenance/missed-opportunities", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["processed"] == 0


async def test_delete_removes_documents_and_activity(db, actor):
    repo = TenderRepository(db)
    tender_id = await repo.create({"title": "T", "organization": "O", "value": 1, "deadline": future()})
    db.add(Document(tender_id=tender_id, filename="f", original_name="f", mime_type="text/plain", size=1, storage_key="k"))
    await log_activity(db, tender_id, "tender_created", actor, {"title": "T"})
    await db.commit()

    await repo.delete(tender_id)
    await db.commit()
    assert (await db.execute(select(Document))).scalars().all() == []
    assert (await db.execute(select(ActivityLog))).scalars().all() == []


# ----------------------------------------------------------------------
# Scheduler
# ----------------------------------------------------------------------

def test_scheduler_registers_the_sweep():
    scheduler = build_scheduler(None, sweep_minutes=15)
    jobs = scheduler.get_jobs()
    assert [j.name for j in jobs] == ["missed_opportunities"]
    assert jobs[0].trigger.interval == dt.timedelta(minutes=15)


async def test_sweep_job_opens_its_own_session():
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = build_sessionmaker(engine)
    async with maker() as db:
        db.add(_tender("late", deadline=utcnow() - dt.timedelta(hours=2)))
        await db.commit()

    assert await job_missed_opportunities(maker) == 1
    assert await job_missed_opportunities(maker) == 0
    await engine.dispose()
