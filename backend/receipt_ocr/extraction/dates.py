"""
Purchase-date strategy.

Numeric dates are read day-first (DD/MM/YYYY), which is what the
receipts this service sees print.  Anything outside
[2000, current year + 1] is treated as an OCR misread.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date

from receipt_ocr.extraction.document import ReceiptDocument
from receipt_ocr.extraction.patterns import MONTH_NAMES

MIN_YEAR = 2000

_TIME = r"(?:\s+\d{1,2}:\d{2}(?::\d{2})?\s*(?:[AaPp]\.?[Mm]\.?)?)?"
_LABEL = (
    r"(?:purchase\s+date|transaction\s+date|txn\s+date|invoice\s+date|sale\s+date|"
    r"bill\s+date|order\s+date|date(?:\s*/\s*time)?|dated)"
)

LABELLED_DATE_RE = re.compile(
    rf"\b{_LABEL}\s*[:.\-]?\s*"
    r"(?P<date>\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}|\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2})(?!\d)"
    + _TIME,
    re.IGNORECASE,
)
DAY_FIRST_RE = re.compile(r"(?<![\d/\-.])(?P<day>\d{1,2})([/\-])(?P<month>\d{1,2})\2(?P<year>\d{4}|\d{2})(?![\d/\-])" + _TIME)
YEAR_FIRST_RE = re.compile(r"(?<![\d/\-.])(?P<year>\d{4})([/\-])(?P<month>\d{1,2})\2(?P<day>\d{1,2})(?![\d/\-])" + _TIME)
MONTH_DAY_YEAR_RE = re.compile(
    rf"\b(?P<month>{MONTH_NAMES})\.?\s+(?P<day>\d{{1,2}})(?:st|nd|rd|th)?,?\s+(?P<year>\d{{4}}|\d{{2}})\b",
    re.IGNORECASE,
)
DAY_MONTH_YEAR_RE = re.compile(
    rf"\b(?P<day>\d{{1,2}})(?:st|nd|rd|th)?\s+(?P<month>{MONTH_NAMES})\.?,?\s+(?P<year>\d{{4}}|\d{{2}})\b",
    re.IGNORECASE,
)

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


def normalize_year(year: int) -> int:
    """Expand 2-digit years: <50 → 20xx, otherwise 19xx."""
    if year >= 100:
        return year
    return 2000 + year if year < 50 else 1900 + year


def build_date(year: int, month: int, day: int, today: date) -> date | None:
    """Validate and build a calendar date; None when implausible."""
    year = normalize_year(year)
    if not MIN_YEAR <= year <= today.year + 1:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _numeric(raw: str, today: date) -> date | None:
    parts = re.split(r"[/\-.]", raw)
    if len(parts) != 3:
        return None
    if len(parts[0]) == 4:
        year, month, day = parts
    else:
        day, month, year = parts
    return build_date(int(year), int(month), int(day), today)


def _from_labelled(match: re.Match, today: date) -> date | None:
    return _numeric(match.group("date"), today)


def _from_numeric_groups(match: re.Match, today: date) -> date | None:
    return build_date(int(match.group("year")), int(match.group("month")), int(match.group("day")), today)


def _from_month_name(match: re.Match, today: date) -> date | None:
    month = _MONTHS[match.group("month")[:3].lower()]
    return build_date(int(match.group("year")), month, int(match.group("day")), today)


DATE_PATTERNS: tuple[tuple[re.Pattern, Callable[[re.Match, date], date | None]], ...] = (
    (LABELLED_DATE_RE, _from_labelled),
    (DAY_FIRST_RE, _from_numeric_groups),
    (YEAR_FIRST_RE, _from_numeric_groups),
    (MONTH_DAY_YEAR_RE, _from_month_name),
    (DAY_MONTH_YEAR_RE, _from_month_name),
)


def find_date_in_line(line: str, today: date) -> date | None:
    """First valid date on a single line, trying each shape in order."""
    for pattern, convert in DATE_PATTERNS:
        for match in pattern.finditer(line):
            found = convert(match, today)
            if found is not None:
                return found
    return None


def purchase_date_from_lines(doc: ReceiptDocument) -> date | None:
    """First accepted date in document order."""
    for line in doc.lines:
        found = find_date_in_line(line, doc.today)
        if found is not None:
            return found
    return None


PURCHASE_DATE_STRATEGIES = (purchase_date_from_lines,)
