"""
Work queue producer.

``enqueue`` records a ``waiting`` job row first and only then hands the
message to the broker, so a worker can never pick up a job whose row
does not exist yet.  The job id doubles as the Celery task id.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from receipt_ocr.core.logging import get_logger
from receipt_ocr.db.models.base import generate_uuid
from receipt_ocr.jobs.models import JobPayload, RetryPolicy
from receipt_ocr.jobs.store import JobStore

logger = get_logger(__name__)

Dispatcher = Callable[[str, dict[str, Any]], None]


class JobQueue:
    """
    Args:
        store: Job status store the row is written to.
        dispatcher: ``(job_id, payload_dict) -> None``; publishes the message.
        retry_policy: Attempt budget stamped on each new job.
    """

    def __init__(self, store: JobStore, dispatcher: Dispatcher, retry_policy: RetryPolicy) -> None:
        self.store = store
        self._dispatch = dispatcher
        self.retry_policy = retry_policy

    async def enqueue(self, payload: JobPayload) -> str:
        """Persist and publish a job; returns immediately with its id."""
        job_id = generate_uuid()
        data = payload.to_dict()
        await self.store.create(job_id, data, max_attempts=self.retry_policy.max_attempts)

        try:
            self._dispatch(job_id, data)
        except Exception as exc:
            logger.error("Could not publish OCR job", job_id=job_id, error=str(exc))
            await self.store.mark_failed(job_id, f"Could not queue job: {exc}")
            raise

        logger.info("OCR job enqueued", job_id=job_id, receipt_id=payload.record_id)
        return job_id
