"""
Receipt extraction engine — raw OCR output in, ExtractedData out.

Each field is resolved independently by an ordered tuple of strategy
functions over a ReceiptDocument.  The first strategy returning a value
wins; a field no strategy resolves stays ``None``.  Nothing here
performs I/O and nothing here raises.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date
from typing import Any, TypeVar

from receipt_ocr.core.logging import get_logger
from receipt_ocr.extraction.dates import PURCHASE_DATE_STRATEGIES
from receipt_ocr.extraction.document import ReceiptDocument
from receipt_ocr.extraction.items import LINE_ITEM_STRATEGIES
from receipt_ocr.extraction.models import ExtractedData, ExtractionConfig, Word
from receipt_ocr.extraction.store_name import STORE_NAME_STRATEGIES
from receipt_ocr.extraction.totals import TOTAL_AMOUNT_STRATEGIES

logger = get_logger(__name__)

T = TypeVar("T")


def resolve_field(
    field_name: str,
    strategies: Iterable[Callable[[ReceiptDocument], T | None]],
    doc: ReceiptDocument,
) -> T | None:
    """Run strategies in order; the first non-None result wins."""
    for strategy in strategies:
        try:
            value = strategy(doc)
        except Exception as exc:
            logger.warning(
                "Extraction strategy raised, skipping",
                field=field_name,
                strategy=strategy.__name__,
                error=str(exc),
            )
            continue
        if value is not None:
            logger.debug("Field resolved", field=field_name, strategy=strategy.__name__)
            return value
    return None


def _coerce_words(words: Iterable[Word | dict[str, Any]] | None) -> list[Word]:
    coerced: list[Word] = []
    for word in words or []:
        if isinstance(word, Word):
            coerced.append(word)
            continue
        try:
            coerced.append(Word.from_dict(word))
        except (KeyError, TypeError, ValueError, AttributeError):
            continue
    return coerced


def extract_receipt_data(
    text: str | None,
    words: Iterable[Word | dict[str, Any]] | None = None,
    config: ExtractionConfig | None = None,
    today: date | None = None,
) -> ExtractedData:
    """
    Derive store name, purchase date, total and line items from OCR output.

    Args:
        text: Raw recognised text (newline separated).
        words: Optional per-word geometry, as Word objects or dicts.
        config: Layout constants for geometry strategies.
        today: Reference date for the plausible-year window.

    Returns:
        ExtractedData; worst case every field is None and items is empty.
    """
    try:
        doc = ReceiptDocument.build(
            text if isinstance(text, str) else "",
            _coerce_words(words),
            config,
            today,
        )
    except Exception as exc:
        logger.warning("Could not prepare receipt document", error=str(exc))
        return ExtractedData()

    return ExtractedData(
        store_name=resolve_field("store_name", STORE_NAME_STRATEGIES, doc),
        purchase_date=resolve_field("purchase_date", PURCHASE_DATE_STRATEGIES, doc),
        total_amount=resolve_field("total_amount", TOTAL_AMOUNT_STRATEGIES, doc),
        items=resolve_field("items", LINE_ITEM_STRATEGIES, doc) or [],
    )
