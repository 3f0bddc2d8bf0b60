from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool


def build_engine(db_url: str | None, echo: bool = False) -> AsyncEngine:
    if not db_url:
        # Fail fast with a clear message instead of throwing from SQLAlchemy
        raise RuntimeError("DB_URL is not configured. Set it in environment or .env before starting the app.")

    engine_kwargs = {"echo": echo}

    # SQLite benefits from a single shared connection and longer busy timeout to avoid "database is locked".
    if db_url.startswith("sqlite"):
        engine_kwargs.update(
            {
                "connect_args": {"timeout": 30, "check_same_thread": False},
                "poolclass": StaticPool,
            }
        )
    else:
        engine_kwargs.update({"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True})

    return create_async_engine(db_url, **engine_kwargs)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield a session from the factory the running app was built with."""
    async with request.app.state.sessionmaker() as s:
        yield s
