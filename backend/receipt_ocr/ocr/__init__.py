"""Recognition adapter and OCR engines."""

from receipt_ocr.ocr.engine import RecognitionAdapter, TesseractEngine, get_adapter, shutdown_adapter

__all__ = ["RecognitionAdapter", "TesseractEngine", "get_adapter", "shutdown_adapter"]
