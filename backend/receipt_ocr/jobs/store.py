"""
Job status store — the ``ocr_jobs`` table as seen by the queue, the
worker and pollers.

Every method opens its own short transaction on the injected session
factory; the API passes the app-wide factory, Celery tasks pass a
per-run one (see ``receipt_ocr.db.session.worker_session_factory``).
Only the worker mutates state after creation.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, delete, or_, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from receipt_ocr.core.constants import JobProgress, JobState
from receipt_ocr.core.logging import get_logger
from receipt_ocr.db.models.base import as_utc, utcnow
from receipt_ocr.db.models.ocr_job import OcrJob
from receipt_ocr.jobs.models import JobStatus

logger = get_logger(__name__)

_TERMINAL = (JobState.COMPLETED.value, JobState.FAILED.value)


class JobStore:
    """CRUD and state transitions for OCR jobs."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ── Creation / lookup ─────────────────────

    async def create(
        self,
        job_id: str,
        payload: dict[str, Any],
        *,
        max_attempts: int,
    ) -> OcrJob:
        """Insert a new ``waiting`` job."""
        job = OcrJob(
            id=job_id,
            payload=payload,
            state=JobState.WAITING.value,
            progress=0,
            max_attempts=max_attempts,
        )
        async with self._session_factory() as session:
            async with session.begin():
                session.add(job)
        logger.info("Job created", job_id=job_id)
        return job

    async def get(self, job_id: str) -> OcrJob | None:
        async with self._session_factory() as session:
            return await session.get(OcrJob, job_id)

    # ── Transitions (worker only) ─────────────

    async def _update(self, job_id: str, *conditions, **values: Any) -> bool:
        stmt = update(OcrJob).where(OcrJob.id == job_id, *conditions).values(**values)
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return result.rowcount > 0

    async def mark_active(self, job_id: str, attempt: int) -> bool:
        """Start attempt ``attempt`` (1-based).  No-op for terminal jobs."""
        return await self._update(
            job_id,
            OcrJob.state.notin_(_TERMINAL),
            state=JobState.ACTIVE.value,
            progress=0,
            attempts_made=attempt,
            available_at=None,
            processed_at=utcnow(),
        )

    async def set_progress(self, job_id: str, progress: int) -> bool:
        return await self._update(
            job_id,
            OcrJob.state == JobState.ACTIVE.value,
            progress=max(0, min(int(progress), 100)),
        )

    async def mark_completed(self, job_id: str, result: dict[str, Any]) -> bool:
        return await self._update(
            job_id,
            OcrJob.state.notin_(_TERMINAL),
            state=JobState.COMPLETED.value,
            progress=int(JobProgress.PERSISTED),
            result=result,
            failure_reason=None,
            finished_at=utcnow(),
        )

    async def mark_delayed(self, job_id: str, *, error: str, countdown: float) -> bool:
        """Park a job between attempts until its backoff elapses."""
        return await self._update(
            job_id,
            OcrJob.state.notin_(_TERMINAL),
            state=JobState.DELAYED.value,
            last_error=error,
            available_at=utcnow() + timedelta(seconds=countdown),
        )

    async def mark_failed(self, job_id: str, reason: str) -> bool:
        return await self._update(
            job_id,
            OcrJob.state.notin_(_TERMINAL),
            state=JobState.FAILED.value,
            result=None,
            failure_reason=reason,
            last_error=reason,
            available_at=None,
            finished_at=utcnow(),
        )

    # ── Polling ───────────────────────────────

    async def get_status(self, job_id: str, *, now: datetime | None = None) -> JobStatus | None:
        """
        Status snapshot for pollers, or None for an unknown job.

        A delayed job whose backoff has elapsed reports ``waiting``:
        it is eligible to run and only waits for a free worker slot.
        """
        job = await self.get(job_id)
        if job is None:
            return None

        now = now or utcnow()
        state = JobState(job.state)
        available_at = as_utc(job.available_at)
        if state is JobState.DELAYED and available_at is not None and available_at <= now:
            state = JobState.WAITING

        return JobStatus(
            id=job.id,
            state=state,
            progress=job.progress,
            result=job.result if state is JobState.COMPLETED else None,
            failure_reason=job.failure_reason if state is JobState.FAILED else None,
            created_at=as_utc(job.created_at),
        )

    # ── Retention ─────────────────────────────

    async def purge_expired(
        self,
        *,
        completed_ttl: float,
        failed_ttl: float,
        now: datetime | None = None,
    ) -> int:
        """Delete terminal jobs older than their retention window."""
        now = now or utcnow()
        stmt = delete(OcrJob).where(
            or_(
                and_(
                    OcrJob.state == JobState.COMPLETED.value,
                    OcrJob.finished_at <= now - timedelta(seconds=completed_ttl),
                ),
                and_(
                    OcrJob.state == JobState.FAILED.value,
                    OcrJob.finished_at <= now - timedelta(seconds=failed_ttl),
                ),
            )
        )
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
        purged = result.rowcount or 0
        if purged:
            logger.info("Purged expired jobs", count=purged)
        return purged

