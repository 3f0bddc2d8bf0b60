from bms.domain.models import Tender
from bms.services.dashboard import dashboard_stats, pipeline_data
from tests.conftest import future


def _tender(status, value=100.0, ai_score=None):
    return Tender(
        title=f"{status} tender",
        organization="Org",
        value=value,
        deadline=future(),
        status=status,
        source="non_gem",
        ai_score=ai_score,
        requirements=[],
    )


async def test_empty_dashboard(db):
    stats = await dashboard_stats(db)
    assert stats.total_tenders == 0
    assert stats.win_rate == 0
    assert stats.total_value == 0
    assert stats.ai_score == 0
    assert stats.status_counts == {}


async def test_dashboard_stats(db):
    db.add_all(
        [
            _tender("draft", 1000, ai_score=60),
            _tender("active", 2000, ai_score=30),
            _tender("in_progress", 500),
            _tender("submitted", 250.4),
            _tender("won", 100, ai_score=90),
            _tender("won", 100),
            _tender("missed_opportunity", 50),
        ]
    )
    await db.commit()

    stats = await dashboard_stats(db)
    assert stats.total_tenders == 7
    assert stats.active_tenders == 3
    assert stats.submitted_tenders == 3
    assert stats.won_tenders == 2
    assert stats.missed_opportunities == 1
    assert stats.win_rate == 67
    assert stats.total_value == 4000
    assert stats.ai_score == 26
    assert stats.status_counts["won"] == 2


async def test_pipeline(db):
    db.add_all([_tender("draft"), _tender("draft"), _tender("in_progress"), _tender("submitted"), _tender("won")])
    await db.commit()

    pipeline = await pipeline_data(db)
    assert (pipeline.prospecting, pipeline.proposal, pipeline.negotiation, pipeline.won) == (2, 1, 1, 1)
    assert pipeline.total_value == 500


def test_dashboard_endpoints(client, admin_headers, finance_headers):
    client.post(
        "/api/tenders",
        json={"title": "Data centre", "organization": "NIC", "value": 1200, "deadline": future().isoformat()},
        headers=admin_headers,
    )

    stats = client.get("/api/dashboard/stats", headers=finance_headers)
    assert stats.status_code == 200
    body = stats.json()
    assert body["totalTenders"] == 1
    assert body["activeTenders"] == 1
    assert body["totalValue"] == 1200
    assert body["statusCounts"] == {"active": 1}

    pipeline = client.get("/api/dashboard/pipeline", headers=finance_headers).json()
    assert pipeline == {"prospecting": 0, "proposal": 0, "negotiation": 0, "won": 0, "totalValue": 1200}


def test_dashboard_requires_login(client):
    assert client.get("/api/dashboard/stats").status_code == 401
    assert client.get("/api/dashboard/pipeline").status_code == 401
