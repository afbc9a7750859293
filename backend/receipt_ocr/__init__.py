"""Receipt OCR service: upload, background recognition, structured receipt data."""

__version__ = "0.1.0"
