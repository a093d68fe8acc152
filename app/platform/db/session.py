from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.platform.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    options = {"echo": False, "future": True, "pool_pre_ping": True}
    if not settings.DATABASE_URL.startswith("sqlite"):
        options.update(
            pool_recycle=1800,
            pool_size=20,
            max_overflow=30,  # (burst capacity)
            pool_timeout=30,
        )
    return create_async_engine(settings.DATABASE_URL, **options)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False, autocommit=False)


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """One session per request; the connection goes back to the pool on every exit path."""
    async with request.app.state.sessionmaker() as session:
        yield session


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a group of writes as one unit.

    Commits when the block exits normally. Any exception rolls everything back
    and is re-raised to the caller.

    Usage:
        async with transaction(db):
            await db.execute(delete(...))
            db.add(...)
    """
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
