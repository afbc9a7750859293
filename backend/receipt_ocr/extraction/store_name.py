"""
Store-name strategies.

Merchants print their legal name right under the tax identifier on most
receipts, so that is tried first; header geometry and plain first-lines
heuristics follow.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from receipt_ocr.extraction.document import ReceiptDocument
from receipt_ocr.extraction.patterns import (
    HAS_LETTER_RE,
    TAX_ID_MARKER_RE,
    is_date_line,
    is_footer_line,
    is_item_header,
    is_metadata_line,
    is_phone_line,
    is_tax_line,
    is_total_line,
)

STORE_KEYWORD_RE = re.compile(r"\b(?:STORE|MARKET|RESTAURANT|SHOP|SUPERMARKET|GROCERY)\b", re.IGNORECASE)
_DISALLOWED_CHARS_RE = re.compile(r"[^\w\s&'.\-]")
_WHITESPACE_RE = re.compile(r"\s+")

MIN_MARKER_NAME_LENGTH = 3
MAX_MARKER_NAME_LENGTH = 60
RAW_SCAN_LINES = 5


def clean_store_name(line: str) -> str | None:
    """Drop punctuation outside ``&'.-`` and collapse whitespace."""
    cleaned = _DISALLOWED_CHARS_RE.sub("", line)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip(" .-'")
    if not cleaned or not HAS_LETTER_RE.search(cleaned):
        return None
    return cleaned


def _is_excluded(line: str) -> bool:
    return (
        is_date_line(line)
        or is_total_line(line)
        or is_tax_line(line)
        or is_phone_line(line)
        or is_footer_line(line)
        or is_metadata_line(line)
        or is_item_header(line)
    )


def _name_after_marker(lines: Sequence[str]) -> str | None:
    for index, line in enumerate(lines[:-1]):
        if not TAX_ID_MARKER_RE.match(line):
            continue
        candidate = lines[index + 1].strip()
        if not MIN_MARKER_NAME_LENGTH <= len(candidate) <= MAX_MARKER_NAME_LENGTH:
            continue
        if _is_excluded(candidate):
            continue
        name = clean_store_name(candidate)
        if name:
            return name
    return None


# ── Strategies ────────────────────────────────────────────────

def store_name_from_tax_marker(doc: ReceiptDocument) -> str | None:
    """The line right after a TIN / Tax ID marker."""
    return _name_after_marker(doc.lines)


def store_name_from_top_region_marker(doc: ReceiptDocument) -> str | None:
    """Same marker search over lines rebuilt from the header band."""
    if not doc.top_lines:
        return None
    return _name_after_marker([line.text for line in doc.top_lines])


def store_name_from_top_lines(doc: ReceiptDocument) -> str | None:
    """First plausible header line, preferring confident or very top lines."""
    if not doc.top_lines:
        return None

    fallback: str | None = None
    for index, line in enumerate(doc.top_lines[: doc.config.top_line_count]):
        text = line.text
        if is_item_header(text):
            break
        if len(text) < MIN_MARKER_NAME_LENGTH or _is_excluded(text) or TAX_ID_MARKER_RE.match(text):
            continue
        name = clean_store_name(text)
        if not name:
            continue
        if line.mean_confidence > doc.config.confidence_threshold or index < 2:
            return name
        if fallback is None:
            fallback = name
    return fallback


def store_name_from_keywords(doc: ReceiptDocument) -> str | None:
    """Text-only fallback: a store keyword or a reasonably sized first line."""
    if doc.has_geometry:
        return None
    return _first_keyword_line(doc.lines[:RAW_SCAN_LINES])


def _first_keyword_line(lines: Iterable[str]) -> str | None:
    for line in lines:
        # The store name is printed above the item table
        if is_item_header(line):
            break
        if _is_excluded(line) or TAX_ID_MARKER_RE.match(line):
            continue
        if STORE_KEYWORD_RE.search(line) or 5 < len(line) < 50:
            name = clean_store_name(line)
            if name:
                return name
    return None


STORE_NAME_STRATEGIES = (
    store_name_from_tax_marker,
    store_name_from_top_region_marker,
    store_name_from_top_lines,
    store_name_from_keywords,
)
