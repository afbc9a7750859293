"""Job status response schema."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from receipt_ocr.core.constants import JobState


class JobStatusResponse(BaseModel):
    """Poll result for one OCR job; ``timestamp`` is creation time in epoch ms."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    state: JobState
    progress: int
    result: dict[str, Any] | None = None
    failure_reason: str | None = None
    timestamp: int
