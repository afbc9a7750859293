"""
Models package — re-exports Base and all models.

Import models here so `Base.metadata.create_all` picks up every table.

When adding a new model:
    1. Create `receipt_ocr/db/models/<table_name>.py`
    2. Import it here
"""

from receipt_ocr.db.models.base import Base
from receipt_ocr.db.models.ocr_job import OcrJob
from receipt_ocr.db.models.receipt import Receipt, ReceiptItem

__all__ = [
    "Base",
    "OcrJob",
    "Receipt",
    "ReceiptItem",
]
