import datetime as dt
import os

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from bms.auth import SessionUser
from bms.core.db import build_engine, build_sessionmaker
from bms.core.settings import get_settings
from bms.domain.models import Base, utcnow
from bms.main import create_app


@pytest.fixture
def settings(tmp_path):
    return get_settings(
        SECRET_KEY="test-secret",
        DB_URL="sqlite+aiosqlite://",
        LOCAL_UPLOAD_DIR=str(tmp_path / "uploads"),
        DOCS_BUCKET=None,
        RUN_DDL_ON_START=True,
        SEED_DEMO_USERS=True,
        START_SCHEDULER_WEB=False,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


def login(client, username, password):
    """Log in and return bearer headers; the cookie jar is cleared so auth stays explicit."""
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def admin_headers(client):
    return login(client, "admin", "admin123")


@pytest.fixture
def bidder_headers(client):
    return login(client, "senior_bidder", "bidder123")


@pytest.fixture
def finance_headers(client):
    return login(client, "finance_manager", "finance123")


def future(days=30):
    return utcnow() + dt.timedelta(days=days)


def tender_payload(**overrides):
    body = {
        "title": "Campus network upgrade",
        "organization": "City College",
        "value": 250000,
        "deadline": future().isoformat(),
    }
    body.update(overrides)
    return body


@pytest_asyncio.fixture
async def db():
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with build_sessionmaker(engine)() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def actor():
    return SessionUser(id="user-1", username="senior_bidder", email="bidder@example.com", role="senior_bidder", name="Rahul Kumar")
