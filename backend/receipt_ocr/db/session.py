"""
Async SQLAlchemy session factory.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from receipt_ocr.core.config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("postgresql"):
        return {"pool_size": 20, "max_overflow": 10, "pool_pre_ping": True}
    return {}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=(settings.APP_ENV == "development"),
    **_engine_options(settings.DATABASE_URL),
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Dependency that yields an async DB session."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def worker_session_factory() -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """
    Fresh engine + session factory for one Celery task run.

    Every task body runs under its own ``asyncio.run`` loop, and asyncpg
    connections cannot cross loops, so the module-level engine is never
    used from workers.
    """
    worker_engine = create_async_engine(settings.DATABASE_URL, echo=False)
    factory = async_sessionmaker(worker_engine, class_=AsyncSession, expire_on_commit=False)
    try:
        yield factory
    finally:
        await worker_engine.dispose()
