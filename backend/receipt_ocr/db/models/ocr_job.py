"""
OcrJob — status record for one unit of OCR work.

The row id is also the Celery task id, so a task can find its own row
from ``self.request.id``.  Lifecycle:

    waiting → active → completed
                    ↘ delayed → (waiting) → active → ...
                    ↘ failed

``result`` is set only when completed, ``failure_reason`` only when failed.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text

from receipt_ocr.core.constants import JobState
from receipt_ocr.db.models.base import Base, JSONType, generate_uuid, utcnow


class OcrJob(Base):
    """One row per enqueued receipt."""

    __tablename__ = "ocr_jobs"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    # ── Work description ─────────────────────
    payload = Column(JSONType, nullable=False)

    # ── Status / Progress ────────────────────
    state = Column(String(20), nullable=False, default=JobState.WAITING.value, index=True)
    progress = Column(Integer, nullable=False, default=0)

    # ── Outcome ───────────────────────────────
    result = Column(JSONType, nullable=True)
    failure_reason = Column(Text, nullable=True)
    last_error = Column(Text, nullable=True)

    # ── Retry bookkeeping ────────────────────
    attempts_made = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    available_at = Column(DateTime(timezone=True), nullable=True)

    # ── Timing (UTC) ─────────────────────────
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<OcrJob {self.id} state={self.state} progress={self.progress} attempts={self.attempts_made}/{self.max_attempts}>"
