"""Shared constants and enums used across the application."""

from enum import IntEnum, StrEnum


class JobState(StrEnum):
    """Lifecycle state of an OCR job."""

    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


class JobProgress(IntEnum):
    """Progress milestones reported by the worker."""

    FILE_VERIFIED = 10
    RECOGNITION_STARTED = 20
    RECOGNITION_COMPLETE = 70
    PERSISTED = 100


ALLOWED_IMAGE_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
})

PAYLOAD_VERSION = 1
RESULT_VERSION = 1
