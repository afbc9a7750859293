"""
Job runner — executes one attempt of an OCR job.

Celery owns delivery, concurrency and rate limiting; this class owns
what happens inside an attempt:

    1. skip unknown / already-terminal jobs
    2. mark active, resolve the uploaded file             (progress 10)
    3. recognise under a wall-clock bound                 (progress 20 → 70)
    4. extract fields, replace the receipt's fields/items (progress 100)
    5. mark completed with the extracted data as result

On failure the upload is removed, then the job is either parked as
``delayed`` (JobRetryScheduled, carrying the backoff) or marked
``failed`` (JobFailedError).  The Celery task turns the former into
``self.retry(countdown=...)``.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import replace
from pathlib import Path
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from receipt_ocr.core.constants import JobProgress, JobState
from receipt_ocr.core.errors import (
    JobFailedError,
    JobRetryScheduled,
    PayloadVersionError,
    PersistenceError,
    RecognitionTimeoutError,
    UploadNotFoundError,
)
from receipt_ocr.core.logging import get_logger
from receipt_ocr.extraction import ExtractedData, ExtractionConfig, OcrResult, extract_receipt_data
from receipt_ocr.jobs.models import JobPayload, RetryPolicy
from receipt_ocr.jobs.store import JobStore
from receipt_ocr.ocr.engine import RecognitionAdapter
from receipt_ocr.repositories import receipts as receipt_repository

logger = get_logger(__name__)

# Retrying cannot fix these
NON_RETRYABLE_ERRORS = (PayloadVersionError,)


class JobRunner:
    """
    Args:
        store: Job status store.
        adapter: Recognition adapter (one per worker process).
        session_factory: Session factory for receipt persistence.
        upload_root: Directory uploads are stored in.
        retry_policy: Backoff policy; the job row's ``max_attempts`` wins.
        recognition_timeout: Wall-clock bound for one recognition, seconds.
        extraction_config: Layout constants for the extraction engine.
    """

    def __init__(
        self,
        store: JobStore,
        adapter: RecognitionAdapter,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        upload_root: str | Path,
        retry_policy: RetryPolicy,
        recognition_timeout: float,
        extraction_config: ExtractionConfig | None = None,
    ) -> None:
        self.store = store
        self.adapter = adapter
        self._session_factory = session_factory
        self.upload_root = Path(upload_root)
        self.retry_policy = retry_policy
        self.recognition_timeout = recognition_timeout
        self.extraction_config = extraction_config or ExtractionConfig()

    # ── File resolution ───────────────────────

    def upload_candidates(self, payload: JobPayload) -> list[Path]:
        """Literal path first, then the same name under the local upload root."""
        candidates = [
            Path(payload.file_ref),
            self.upload_root / os.path.basename(payload.file_ref),
            self.upload_root / payload.filename,
        ]
        unique: list[Path] = []
        for candidate in candidates:
            if candidate not in unique:
                unique.append(candidate)
        return unique

    def resolve_upload_path(self, payload: JobPayload) -> Path:
        candidates = self.upload_candidates(payload)
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        raise UploadNotFoundError(
            f"Uploaded file not found: {payload.filename}",
            candidates=[str(candidate) for candidate in candidates],
        )

    # ── Attempt ───────────────────────────────

    async def run_attempt(self, job_id: str, payload: dict[str, Any], attempt: int) -> dict[str, Any] | None:
        """
        Run attempt ``attempt`` (1-based) of ``job_id``.

        Returns:
            The stored result dict, or None when the job was skipped.

        Raises:
            JobRetryScheduled: Attempt failed, budget left.
            JobFailedError: Attempt failed, budget exhausted.
        """
        log = logger.bind(job_id=job_id, attempt=attempt)

        job = await self.store.get(job_id)
        if job is None:
            log.warning("Unknown OCR job, skipping")
            return None
        if JobState(job.state).is_terminal:
            log.info("OCR job already finished, skipping", state=job.state)
            return None

        await self.store.mark_active(job_id, attempt)
        log.info("OCR attempt started")

        job_payload: JobPayload | None = None
        try:
            job_payload = JobPayload.from_dict(payload)
            path = self.resolve_upload_path(job_payload)
            await self.store.set_progress(job_id, JobProgress.FILE_VERIFIED)

            await self.store.set_progress(job_id, JobProgress.RECOGNITION_STARTED)
            ocr = await self.recognize(path)
            await self.store.set_progress(job_id, JobProgress.RECOGNITION_COMPLETE)

            data = extract_receipt_data(ocr.text, ocr.words, self.extraction_config)
            if data.is_empty():
                log.warning("No receipt fields recognised", text_length=len(ocr.text))
            await self.persist(job_payload.record_id, data)

            result = {**data.to_dict(), "receiptId": job_payload.record_id}
            await self.store.mark_completed(job_id, result)
        except Exception as exc:
            if job_payload is not None:
                self.remove_upload(job_payload)
            raise await self._handle_failure(job_id, attempt, job.max_attempts, exc) from exc

        log.info(
            "OCR attempt completed",
            receipt_id=job_payload.record_id,
            store_name=data.store_name,
            items=len(data.items),
        )
        return result

    async def recognize(self, path: Path) -> OcrResult:
        """Run the blocking adapter in a thread, bounded by the recognition timeout."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.adapter.recognize, path),
                timeout=self.recognition_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise RecognitionTimeoutError(
                f"Recognition exceeded {self.recognition_timeout}s",
                timeout=self.recognition_timeout,
            ) from exc

    async def persist(self, receipt_id: str, data: ExtractedData) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await receipt_repository.replace_extracted_fields(session, receipt_id, data)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not save receipt {receipt_id}: {exc}") from exc

    def remove_upload(self, payload: JobPayload) -> None:
        for candidate in self.upload_candidates(payload):
            if not candidate.is_file():
                continue
            try:
                candidate.unlink()
                logger.info("Removed upload after failed attempt", path=str(candidate))
            except OSError as exc:
                logger.warning("Could not remove upload", path=str(candidate), error=str(exc))
            return

    async def _handle_failure(
        self,
        job_id: str,
        attempt: int,
        max_attempts: int,
        exc: Exception,
    ) -> JobRetryScheduled | JobFailedError:
        """Record the failed attempt and return the exception the task should see."""
        reason = str(exc) or exc.__class__.__name__
        log = logger.bind(job_id=job_id, attempt=attempt, error_type=exc.__class__.__name__)

        retryable = not isinstance(exc, NON_RETRYABLE_ERRORS)
        policy = self.retry_policy
        if max_attempts:
            policy = replace(policy, max_attempts=max_attempts)
        if retryable and policy.should_retry(attempt):
            countdown = policy.delay(attempt)
            await self.store.mark_delayed(job_id, error=reason, countdown=countdown)
            log.warning("OCR attempt failed, retry scheduled", error=reason, countdown=countdown)
            return JobRetryScheduled(
                f"Attempt {attempt} failed: {reason}",
                countdown=countdown,
                attempt=attempt,
                job_id=job_id,
            )

        await self.store.mark_failed(job_id, reason)
        log.error("OCR job failed", error=reason, attempts=attempt)
        return JobFailedError(
            f"OCR job {job_id} failed after {attempt} attempt(s): {reason}",
            attempts=attempt,
            job_id=job_id,
        )
