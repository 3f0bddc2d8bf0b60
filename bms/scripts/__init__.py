"""Command-line maintenance entry points."""

from contextlib import asynccontextmanager

from bms.core.db import build_engine, build_sessionmaker
from bms.core.settings import get_settings
from bms.domain.models import Base


@asynccontextmanager
async def script_session():
    """Open a session against the configured database, creating tables first."""
    settings = get_settings()
    engine = build_engine(settings.DB_URL)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with build_sessionmaker(engine)() as db:
            yield db
    finally:
        await engine.dispose()
