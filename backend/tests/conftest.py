"""
Shared pytest fixtures — file-backed SQLite (aiosqlite) + FastAPI TestClient.

Async code is driven with ``asyncio.run``; NullPool gives every event
loop its own connection to the same database file.
"""
import asyncio
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from receipt_ocr.api.deps import get_db, get_job_queue, get_session_factory
from receipt_ocr.core.config import settings
from receipt_ocr.db.models import Base
from receipt_ocr.jobs.models import JobPayload, RetryPolicy
from receipt_ocr.jobs.queue import JobQueue
from receipt_ocr.jobs.store import JobStore
from receipt_ocr.main import app
from receipt_ocr.repositories import receipts as receipt_repository

TODAY = date(2026, 1, 15)


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture()
def store(session_factory):
    return JobStore(session_factory)


@pytest.fixture()
def upload_dir(tmp_path, monkeypatch):
    path = tmp_path / "uploads"
    path.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(path))
    return path


@pytest.fixture()
def make_receipt(session_factory):
    """Create a placeholder receipt; returns its id."""

    def _make(image_url: str = "/uploads/test.png") -> str:
        async def _create():
            async with session_factory() as session:
                async with session.begin():
                    receipt = await receipt_repository.create_placeholder_receipt(session, image_url=image_url)
                return receipt.id

        return asyncio.run(_create())

    return _make


@pytest.fixture()
def make_job(store, make_receipt, upload_dir):
    """Write an upload file, a placeholder receipt and a waiting job row."""

    def _make(filename: str = "receipt.png", *, max_attempts: int = 3, write_file: bool = True):
        file_path = upload_dir / filename
        if write_file:
            file_path.write_bytes(b"fake image bytes")
        payload = JobPayload(
            file_ref=str(file_path),
            filename=filename,
            image_ref=f"/uploads/{filename}",
            record_id=make_receipt(f"/uploads/{filename}"),
        )
        job_id = f"job-{filename}"
        asyncio.run(store.create(job_id, payload.to_dict(), max_attempts=max_attempts))
        return job_id, payload

    return _make


@pytest.fixture()
def dispatched():
    """Messages the test queue would have published: (job_id, payload)."""
    return []


@pytest.fixture()
def client(session_factory, upload_dir, dispatched):
    async def _override_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def _override_queue():
        return JobQueue(
            JobStore(session_factory),
            lambda job_id, payload: dispatched.append((job_id, payload)),
            RetryPolicy(),
        )

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_job_queue] = _override_queue
    # Lifespan is not entered; tables come from session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()
