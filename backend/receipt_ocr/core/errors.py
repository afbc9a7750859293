"""
Domain-specific exception hierarchy for the OCR pipeline.

All pipeline exceptions inherit from ReceiptOcrError so callers can
catch broadly or narrowly as needed.  Each exception carries structured
context (job ID, extra details) for logging/debugging.
"""

from __future__ import annotations


class ReceiptOcrError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        *,
        job_id: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.job_id = job_id
        self.details = details or {}
        super().__init__(message)


class EngineInitError(ReceiptOcrError):
    """The recognition engine could not be started."""
    pass


class RecognitionError(ReceiptOcrError):
    """A recognize() call failed (unreadable image or engine fault)."""
    pass


class UnreadableImageError(RecognitionError):
    """The image could not be decoded.  Not an engine fault."""
    pass


class RecognitionTimeoutError(RecognitionError):
    """Recognition exceeded its wall-clock bound."""

    def __init__(self, message: str, *, timeout: float | None = None, **kwargs) -> None:
        self.timeout = timeout
        super().__init__(message, **kwargs)


class UploadNotFoundError(ReceiptOcrError, FileNotFoundError):
    """The uploaded file referenced by a job is missing at execution time."""

    def __init__(self, message: str, *, candidates: list[str] | None = None, **kwargs) -> None:
        self.candidates = candidates or []
        super().__init__(message, **kwargs)


class PersistenceError(ReceiptOcrError):
    """Writing extraction results to the receipt store failed."""
    pass


class ReceiptNotFoundError(PersistenceError):
    """The placeholder receipt a job points at does not exist."""
    pass


class PayloadVersionError(ReceiptOcrError, ValueError):
    """A serialized payload/result carries an unsupported version."""
    pass


class JobRetryScheduled(ReceiptOcrError):
    """An attempt failed with retry budget left; the job is delayed."""

    def __init__(self, message: str, *, countdown: float, attempt: int, **kwargs) -> None:
        self.countdown = countdown
        self.attempt = attempt
        super().__init__(message, **kwargs)


class JobFailedError(ReceiptOcrError):
    """A job exhausted its attempt budget and is permanently failed."""

    def __init__(self, message: str, *, attempts: int = 0, **kwargs) -> None:
        self.attempts = attempts
        super().__init__(message, **kwargs)
