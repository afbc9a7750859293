"""
Extraction engine — turns noisy OCR output into structured receipt fields.

Pure functions only; safe to call from any process or thread.
"""

from receipt_ocr.extraction.extractor import extract_receipt_data
from receipt_ocr.extraction.models import ExtractedData, ExtractionConfig, LineItem, OcrResult, Word

__all__ = [
    "ExtractedData",
    "ExtractionConfig",
    "LineItem",
    "OcrResult",
    "Word",
    "extract_receipt_data",
]
