import datetime as dt
from io import BytesIO

import pytest
from openpyxl import Workbook
from sqlalchemy import select

from bms.domain.models import ExcelUpload, Tender
from bms.errors import ValidationError
from bms.services.excel_import import (
    classify_sheet,
    import_workbook,
    keyword_score,
    parse_deadline,
    parse_value,
    sniff_columns,
)
from tests.conftest import future

HEADERS = ["S.No", "T247 ID", "Brief", "Organization", "Estimated Cost", "Deadline", "Location", "Reference No"]


def _workbook_bytes():
    wb = Workbook()
    gem = wb.active
    gem.title = "GeM Tenders"
    gem.append(HEADERS)
    gem.append([1, "5550001", "Software licence renewal", "NIC", "Rs. 1,50,000", future().strftime("%d-%m-%Y"), "Delhi", "GEM/2030/B/1"])
    gem.append([2, "", "abc", "NIC", 10, future().strftime("%d-%m-%Y"), "", ""])
    gem["C2"].hyperlink = "https://example.com/tenders/5550001"

    other = wb.create_sheet("Non GeM")
    other.append(HEADERS)
    other.append([1, "5550002", "Road resurfacing works", "PWD", 90000, future(), "Pune", ""])
    other.append([2, "5550003", "Old drainage contract", "PWD", 1000, dt.datetime(2020, 1, 1), "Pune", ""])

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_sniff_columns():
    cols = sniff_columns(HEADERS)
    assert cols == {
        "title": 2,
        "organization": 3,
        "value": 4,
        "deadline": 5,
        "location": 6,
        "reference": 7,
        "t247_id": 1,
    }


def test_sniff_columns_marks_absent_headers():
    cols = sniff_columns(["Title", None, "Value"])
    assert cols["title"] == 0
    assert cols["value"] == 2
    assert cols["organization"] == -1
    assert cols["t247_id"] == -1


def test_classify_sheet():
    assert classify_sheet("GeM Tenders") == "gem"
    assert classify_sheet("Non GeM") == "non_gem"
    assert classify_sheet("Sheet1") == "non_gem"


def test_parse_value():
    assert parse_value(None) == 0
    assert parse_value(12.6) == 13
    assert parse_value("Rs. 1,50,000") == 150000
    assert parse_value("2.5 lakh") == 2
    assert parse_value("n/a") == 0


def test_parse_deadline():
    default = dt.datetime(2030, 1, 1)
    assert parse_deadline("15-03-2030", default) == dt.datetime(2030, 3, 15)
    assert parse_deadline("15/03/2030 17:30", default) == dt.datetime(2030, 3, 15, 17, 30)
    assert parse_deadline(dt.date(2030, 3, 15), default) == dt.datetime(2030, 3, 15)
    assert parse_deadline("", default) == default
    assert parse_deadline("soon", default) == default
    aware = dt.datetime(2030, 3, 15, 12, tzinfo=dt.timezone(dt.timedelta(hours=5, minutes=30)))
    assert parse_deadline(aware, default) == dt.datetime(2030, 3, 15, 6, 30)


def test_keyword_score():
    assert keyword_score("Road construction") == 30
    assert keyword_score("Software development") == 45
    assert keyword_score("IT and web system") == 75
    assert keyword_score("Supply of kits") == 30
    assert keyword_score("software it technology digital system web mobile") == 85


async def test_import_workbook(db, actor):
    summary = await import_workbook(db, _workbook_bytes(), "export.xlsx", actor)

    assert summary.sheets_processed == 2
    assert summary.tenders_added == 3
    assert summary.gem_added == 1
    assert summary.non_gem_added == 2
    assert summary.duplicates == 0
    assert summary.errors == 0
    assert summary.missed == 1

    tenders = {t.title: t for t in (await db.execute(select(Tender))).scalars().all()}
    assert set(tenders) == {"Software licence renewal", "Road resurfacing works", "Old drainage contract"}

    software = tenders["Software licence renewal"]
    assert software.source == "gem"
    assert software.value == 150000
    assert software.link == "https://example.com/tenders/5550001"
    assert software.reference == "GEM/2030/B/1"
    assert software.ai_score == 45

    assert tenders["Old drainage contract"].status == "missed_opportunity"
    assert tenders["Road resurfacing works"].status == "active"

    upload = (await db.execute(select(ExcelUpload))).scalar_one()
    assert upload.tenders_added == 3
    assert upload.uploaded_by == actor.username


async def test_reimport_skips_duplicates(db, actor):
    data = _workbook_bytes()
    await import_workbook(db, data, "export.xlsx", actor)
    again = await import_workbook(db, data, "export.xlsx", actor)
    assert again.tenders_added == 0
    assert again.duplicates == 3


async def test_unreadable_file_is_rejected(db, actor):
    with pytest.raises(ValidationError):
        await import_workbook(db, b"definitely not a workbook", "bad.xlsx", actor)


def test_upload_endpoint(client, bidder_headers):
    files = {"file": ("export.xlsx", _workbook_bytes(), "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")}
    resp = client.post("/api/uploads/excel", files=files, headers=bidder_headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["tendersAdded"] == 3
    assert body["gemAdded"] == 1
    assert body["missedOpportunities"] == 1

    uploads = client.get("/api/tenders/excel-uploads", headers=bidder_headers).json()
    assert uploads[0]["fileName"] == "export.xlsx"
    assert uploads[0]["tendersAdded"] == 3


def test_upload_endpoint_rejects_other_extensions(client, bidder_headers):
    files = {"file": ("export.csv", b"a,b\n1,2\n", "text/csv")}
    resp = client.post("/api/uploads/excel", files=files, headers=bidder_headers)
    assert resp.status_code == 400


def test_upload_endpoint_requires_import_permission(client, finance_headers):
    files = {"file": ("export.xlsx", _workbook_bytes(), "application/octet-stream")}
    assert client.post("/api/uploads/excel", files=files, headers=finance_headers).status_code == 403
