"""Shared dependencies for API routes."""

from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from receipt_ocr.core.config import settings
from receipt_ocr.db.session import async_session
from receipt_ocr.db.session import get_db as _get_db
from receipt_ocr.jobs.models import RetryPolicy
from receipt_ocr.jobs.queue import JobQueue
from receipt_ocr.jobs.store import JobStore


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session."""
    async for session in _get_db():
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for components that manage their own transactions."""
    return async_session


def get_job_store(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> JobStore:
    return JobStore(session_factory)


def get_job_queue(store: JobStore = Depends(get_job_store)) -> JobQueue:
    """Producer side of the OCR queue, publishing through Celery."""
    from receipt_ocr.tasks.ocr_tasks import dispatch_ocr_job

    return JobQueue(store, dispatch_ocr_job, RetryPolicy.from_settings(settings))
