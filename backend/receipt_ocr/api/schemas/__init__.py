"""API schema package."""

from receipt_ocr.api.schemas.jobs import JobStatusResponse
from receipt_ocr.api.schemas.receipts import (
    ItemInput,
    ItemResponse,
    ReceiptResponse,
    UpdateReceiptRequest,
    UploadResponse,
)

__all__ = [
    "ItemInput",
    "ItemResponse",
    "JobStatusResponse",
    "ReceiptResponse",
    "UpdateReceiptRequest",
    "UploadResponse",
]
