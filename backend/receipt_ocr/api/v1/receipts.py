"""
Receipt endpoints — upload, browse, correct and delete.

Upload stores the image, creates a placeholder receipt and queues an OCR
job; it returns immediately.  Clients poll ``/jobs/{job_id}`` for progress.
"""

from __future__ import annotations

import os
import secrets
import time
from datetime import date
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from receipt_ocr.api.deps import get_db, get_job_queue
from receipt_ocr.api.schemas.receipts import ReceiptResponse, UpdateReceiptRequest, UploadResponse
from receipt_ocr.core.config import settings
from receipt_ocr.core.constants import ALLOWED_IMAGE_TYPES
from receipt_ocr.core.logging import get_logger
from receipt_ocr.extraction.models import LineItem
from receipt_ocr.jobs.models import JobPayload
from receipt_ocr.jobs.queue import JobQueue
from receipt_ocr.repositories import receipts as receipt_repository

logger = get_logger(__name__)

router = APIRouter(prefix="/receipts", tags=["Receipts"])


def _stored_filename(original: str | None) -> str:
    """``<epoch ms>-<random><ext>`` — unique and free of client-supplied path parts."""
    extension = Path(original or "").suffix.lower()[:10]
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{extension}"


# ─── Upload ───────────────────────────────────────────────
@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_202_ACCEPTED)
async def upload_receipt(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
):
    """
    Accept a receipt image and queue it for OCR.

    1. Validates type (JPEG/PNG/GIF/WebP) and size
    2. Saves the file under UPLOAD_DIR
    3. Creates a placeholder receipt (committed before the job exists)
    4. Enqueues the OCR job and returns its id
    """
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Only JPEG, PNG, GIF, and WebP images are allowed.",
        )

    content = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File size exceeds {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit.",
        )

    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    filename = _stored_filename(file.filename)
    file_path = upload_dir / filename
    file_path.write_bytes(content)
    image_url = f"{settings.UPLOAD_URL_PREFIX.rstrip('/')}/{filename}"

    receipt = await receipt_repository.create_placeholder_receipt(db, image_url=image_url)
    await db.commit()

    payload = JobPayload(
        file_ref=os.path.abspath(file_path),
        filename=filename,
        image_ref=image_url,
        record_id=receipt.id,
    )
    try:
        job_id = await queue.enqueue(payload)
    except Exception as exc:
        logger.error("Failed to queue OCR job", receipt_id=receipt.id, error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Receipt saved but OCR could not be queued",
        ) from exc

    logger.info("Receipt uploaded", receipt_id=receipt.id, job_id=job_id, size=len(content))
    return UploadResponse(
        job_id=job_id,
        receipt_id=receipt.id,
        status="processing",
        message="Receipt uploaded; OCR is running in the background",
    )


# ─── List / Detail ────────────────────────────────────────
@router.get("/", response_model=list[ReceiptResponse])
async def list_receipts(
    store_name: str | None = Query(default=None, alias="storeName"),
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List receipts, most recent purchase first."""
    return await receipt_repository.list_receipts(
        db,
        store_name=store_name,
        start_date=start_date,
        end_date=end_date,
        offset=offset,
        limit=limit,
    )


@router.get("/{receipt_id}", response_model=ReceiptResponse)
async def get_receipt(receipt_id: str, db: AsyncSession = Depends(get_db)):
    """Get one receipt with its items."""
    receipt = await receipt_repository.get_receipt(db, receipt_id)
    if receipt is None:
        raise HTTPException(status_code=404, detail="Receipt not found")
    return receipt


# ─── Corrections ──────────────────────────────────────────
@router.patch("/{receipt_id}", response_model=ReceiptResponse)
async def update_receipt(
    receipt_id: str,
    body: UpdateReceiptRequest,
    db: AsyncSession = Depends(get_db),
):
    """Apply a manual correction to extracted fields and/or items."""
    fields = body.model_dump(exclude_unset=True, exclude={"items"})
    items = None
    if body.items is not None:
        items = [LineItem(name=item.name, quantity=item.quantity, price=item.price) for item in body.items]

    receipt = await receipt_repository.update_receipt(db, receipt_id, items=items, **fields)
    if receipt is None:
        raise HTTPException(status_code=404, detail="Receipt not found")
    return await receipt_repository.get_receipt(db, receipt_id)


@router.delete("/{receipt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_receipt(receipt_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a receipt, its items and its stored image."""
    receipt = await receipt_repository.delete_receipt(db, receipt_id)
    if receipt is None:
        raise HTTPException(status_code=404, detail="Receipt not found")

    if receipt.image_url:
        image_path = Path(settings.UPLOAD_DIR) / os.path.basename(receipt.image_url)
        try:
            image_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not delete receipt image", path=str(image_path), error=str(exc))


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(item_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a single line item."""
    if not await receipt_repository.delete_item(db, item_id):
        raise HTTPException(status_code=404, detail="Item not found")
