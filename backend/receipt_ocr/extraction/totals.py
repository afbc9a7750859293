"""Total-amount strategy: labelled totals first, scanning from the bottom."""

from __future__ import annotations

import re

from receipt_ocr.extraction.document import ReceiptDocument
from receipt_ocr.extraction.patterns import CURRENCY_MARKS, TWO_DECIMAL_RE, parse_amount

MAX_FALLBACK_TOTAL = 100000.0

TOTAL_LABEL_RE = re.compile(
    r"(?<![A-Z])(?:GRAND\s+TOTAL|TOTAL(?:\s+(?:DUE|AMOUNT|AMT|PAYABLE))?|AMOUNT(?:\s+(?:DUE|PAYABLE))?|SUM)\b"
    r"(?!\s*(?:ITEMS?|QTY|QUANTITY|COUNT|UNITS|SAVINGS|DISCOUNT)\b)"
    rf"\s*[:=\-]?\s*(?:[A-Z]{{3}}\s*)?[{CURRENCY_MARKS}]?\s*"
    r"(?P<amount>\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:[.,]\d{1,2})?)(?![\d]|[.,]\d)"
    r"(?!\s*(?:ITEMS?|PCS|UNITS|QTY)\b)",
    re.IGNORECASE,
)
# A bare number on these lines is never the total.
NON_TOTAL_FALLBACK_RE = re.compile(
    r"\b(?:CHANGE|CASH|TENDERED|TAX|VAT|GST|DISCOUNT|SAVINGS|TIP)\b", re.IGNORECASE
)


def _labelled_amount(line: str) -> float | None:
    for match in TOTAL_LABEL_RE.finditer(line):
        amount = parse_amount(match.group("amount"))
        if amount is not None and amount > 0:
            return amount
    return None


def _standalone_amount(line: str) -> float | None:
    if NON_TOTAL_FALLBACK_RE.search(line):
        return None
    match = TWO_DECIMAL_RE.search(line)
    if match is None:
        return None
    amount = parse_amount(match.group(1))
    if amount is not None and 0 < amount < MAX_FALLBACK_TOTAL:
        return amount
    return None


def total_amount_from_lines(doc: ReceiptDocument) -> float | None:
    """Bottom-up scan: a labelled total, else a standalone 2-decimal number."""
    for line in reversed(doc.lines):
        amount = _labelled_amount(line)
        if amount is None:
            amount = _standalone_amount(line)
        if amount is not None:
            return round(amount, 2)
    return None


TOTAL_AMOUNT_STRATEGIES = (total_amount_from_lines,)
