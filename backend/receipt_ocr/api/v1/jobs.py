"""OCR job status endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from receipt_ocr.api.deps import get_job_store
from receipt_ocr.api.schemas.jobs import JobStatusResponse
from receipt_ocr.jobs.store import JobStore

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, store: JobStore = Depends(get_job_store)):
    """Poll one OCR job: state, progress, and result or failure reason."""
    job_status = await store.get_status(job_id)
    if job_status is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job_status.to_dict()
