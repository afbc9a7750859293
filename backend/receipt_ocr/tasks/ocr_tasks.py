"""
Celery tasks — receipt OCR.

``process_receipt`` is one delivery of one job; the Celery task id is the
job id.  Retries go back through the broker with ``self.retry`` so a
failing job never blocks a worker slot while it backs off.
"""

import asyncio
from typing import Any

import structlog

from receipt_ocr.core.config import settings
from receipt_ocr.core.errors import JobFailedError, JobRetryScheduled
from receipt_ocr.db.session import worker_session_factory
from receipt_ocr.extraction import ExtractionConfig
from receipt_ocr.jobs.models import RetryPolicy
from receipt_ocr.jobs.runner import JobRunner
from receipt_ocr.jobs.store import JobStore
from receipt_ocr.ocr.engine import get_adapter
from receipt_ocr.tasks import celery_app

logger = structlog.get_logger("tasks.ocr")


async def _run_attempt(job_id: str, payload: dict[str, Any], attempt: int) -> dict[str, Any] | None:
    """Build a runner on a fresh engine/session factory and run one attempt."""
    async with worker_session_factory() as session_factory:
        runner = JobRunner(
            JobStore(session_factory),
            get_adapter(),
            session_factory,
            upload_root=settings.UPLOAD_DIR,
            retry_policy=RetryPolicy.from_settings(settings),
            recognition_timeout=settings.OCR_RECOGNITION_TIMEOUT_SECONDS,
            extraction_config=ExtractionConfig.from_settings(settings),
        )
        return await runner.run_attempt(job_id, payload, attempt)


async def _purge_expired() -> int:
    async with worker_session_factory() as session_factory:
        return await JobStore(session_factory).purge_expired(
            completed_ttl=settings.OCR_COMPLETED_JOB_TTL_SECONDS,
            failed_ttl=settings.OCR_FAILED_JOB_TTL_SECONDS,
        )


@celery_app.task(
    bind=True,
    name="receipt_ocr.tasks.ocr_tasks.process_receipt",
    rate_limit=settings.OCR_RATE_LIMIT,
    max_retries=None,
)
def process_receipt(self, payload: dict[str, Any]):
    """
    Run the next attempt of an OCR job.

    The attempt budget lives on the job row (``max_attempts``), so Celery's
    own retry limit is disabled.
    """
    job_id = self.request.id
    attempt = self.request.retries + 1
    task_log = logger.bind(task_id=job_id, attempt=attempt)
    task_log.info("OCR task started")

    try:
        result = asyncio.run(_run_attempt(job_id, payload, attempt))
    except JobRetryScheduled as exc:
        raise self.retry(exc=exc, countdown=exc.countdown)
    except JobFailedError as exc:
        task_log.error("OCR task failed permanently", error=str(exc), attempts=exc.attempts)
        raise

    task_log.info("OCR task finished", skipped=result is None)
    return result


@celery_app.task(name="receipt_ocr.tasks.ocr_tasks.purge_expired_jobs")
def purge_expired_jobs() -> int:
    """Beat task: drop finished jobs past their retention window."""
    purged = asyncio.run(_purge_expired())
    logger.info("Expired OCR jobs purged", count=purged)
    return purged


def dispatch_ocr_job(job_id: str, payload: dict[str, Any]) -> None:
    """Publish a job to the OCR queue under its own id."""
    process_receipt.apply_async(
        args=[payload],
        task_id=job_id,
        queue=settings.OCR_QUEUE_NAME,
    )
