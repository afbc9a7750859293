"""
Value types shared by the queue producer, the worker and the status API.

Payloads and results travel through Redis (Celery's JSON serializer) and
the ``ocr_jobs`` table, so both carry an explicit version.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from receipt_ocr.core.constants import PAYLOAD_VERSION, JobState
from receipt_ocr.core.errors import PayloadVersionError


@dataclass(frozen=True)
class JobPayload:
    """
    What the worker needs to process one upload.

    Args:
        file_ref: Path of the stored upload, as the API saw it.
        filename: Stored file name (fallback lookup key).
        image_ref: Public URL of the image, persisted on the receipt.
        record_id: Placeholder receipt to fill in.
    """

    file_ref: str
    filename: str
    image_ref: str
    record_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": PAYLOAD_VERSION,
            "fileRef": self.file_ref,
            "filename": self.filename,
            "imageRef": self.image_ref,
            "recordId": self.record_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobPayload":
        version = data.get("version")
        if version != PAYLOAD_VERSION:
            raise PayloadVersionError(
                f"Unsupported job payload version {version!r}",
                details={"supported": PAYLOAD_VERSION},
            )
        try:
            return cls(
                file_ref=str(data["fileRef"]),
                filename=str(data["filename"]),
                image_ref=str(data["imageRef"]),
                record_id=str(data["recordId"]),
            )
        except KeyError as exc:
            raise PayloadVersionError(f"Job payload missing field {exc.args[0]!r}") from exc


@dataclass(frozen=True)
class JobStatus:
    """Snapshot returned to pollers."""

    id: str
    state: JobState
    progress: int
    result: dict[str, Any] | None
    failure_reason: str | None
    created_at: datetime

    @property
    def timestamp(self) -> int:
        """Creation time in epoch milliseconds."""
        return int(self.created_at.timestamp() * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "state": self.state.value,
            "progress": self.progress,
            "result": self.result,
            "failureReason": self.failure_reason,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget with exponential backoff.

    Attempt numbers are 1-based: after failed attempt ``n`` the next try
    waits ``base_delay * 2 ** (n - 1)`` seconds.
    """

    max_attempts: int = 3
    base_delay: float = 2.0

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    def delay(self, attempt: int) -> float:
        return self.base_delay * 2 ** (max(attempt, 1) - 1)

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.OCR_JOB_ATTEMPTS,
            base_delay=settings.OCR_BACKOFF_BASE_SECONDS,
        )
