"""
Line-item strategies.

Item tables are the noisiest part of a receipt: column spacing varies,
header tokens get misread ("Oty" for "Qty") and totals/footer text bleed
into the table.  Parsing is layered from most to least structure-aware:

    1. single-line regex           name  qty  price
    2. column split on 2+ spaces   | name | qty | price | amount |
    3. loose token search          any integer + any decimal on the line

Each candidate is then validated; a bad quantity or price only drops
that field, but an item without a valid price is dropped entirely.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence

from receipt_ocr.extraction.document import ReceiptDocument
from receipt_ocr.extraction.models import LineItem
from receipt_ocr.extraction.patterns import (
    ADDRESS_RE,
    CURRENCY_MARKS,
    HAS_LETTER_RE,
    is_date_line,
    is_footer_line,
    is_item_header,
    is_metadata_line,
    is_phone_line,
    is_separator_line,
    parse_amount,
    TAX_ID_ANYWHERE_RE,
)

MIN_QUANTITY = 1
MAX_QUANTITY = 999
MAX_PRICE = 1_000_000
MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 100

# ── Terminators ───────────────────────────────────────────────
TERMINATOR_RE = re.compile(
    r"^\s*(?:GRAND\s+TOTAL|SUB\s*-?\s*TOTAL|TOTAL|TAX|VAT|SUM|CASH|CHANGE|BALANCE|AMOUNT\s+DUE|ITEMS?\s*#|ITEM\s+COUNT)\b",
    re.IGNORECASE,
)

# ── Per-line parsers ──────────────────────────────────────────
_PRICE = rf"[{CURRENCY_MARKS}]?\s*(?P<price>\d{{1,3}}(?:,\d{{3}})+(?:\.\d{{1,2}})?|\d+[.,]\d{{1,2}})"
SINGLE_LINE_ITEM_RE = re.compile(
    r"^(?P<name>.*?[A-Za-z].*?)\s+(?P<qty>\d{1,3})\s*[xX@*]?\s+"
    + _PRICE
    + rf"(?:\s+[{CURRENCY_MARKS}]?\s*\d+(?:,\d{{3}})*[.,]\d{{1,2}})?\s*[A-Za-z]?\s*$"
)
_COLUMN_SPLIT_RE = re.compile(r"\s{2,}|\t+")
_DECIMAL_COLUMN_RE = re.compile(rf"^[{CURRENCY_MARKS}]?\s*\d{{1,3}}(?:,\d{{3}})*[.,]\d{{1,2}}$|^[{CURRENCY_MARKS}]?\s*\d+[.,]\d{{1,2}}$")
_INTEGER_COLUMN_RE = re.compile(r"^(?P<qty>\d{1,3})\s*[xX]?$")
_LOOSE_QTY_RE = re.compile(r"(?<![\w.,])(?P<qty>\d{1,3})(?![\w.,])")
_LOOSE_PRICE_RE = re.compile(rf"[{CURRENCY_MARKS}]?\s*(?P<price>\d+(?:,\d{{3}})*[.,]\d{{1,2}})(?![\d])")
_NAME_SYMBOLS_RE = re.compile(rf"[^\w\s&'.\-/%]|(?<!\w)[xX@](?!\w)|[{CURRENCY_MARKS}]")
_WHITESPACE_RE = re.compile(r"\s+")

# ── Names that are never items ────────────────────────────────
METADATA_NAME_RE = re.compile(
    r"\b(?:DESCRIPTION|QTY|QUANTITY|PRICE|AMOUNT|UNIT\s+PRICE|"
    r"SUB\s*-?\s*TOTAL|TOTAL|TAX|VAT|GST|HST|TIN|CASH|CHANGE|BALANCE|TENDERED|"
    r"THANK|VISIT|RECEIPT|INVOICE|REFERENCE|REF\s*NO|ADDRESS|STREET|PHONE|TEL|"
    r"CASHIER|OPERATOR|WAITER|TABLE\s*NO|VISA|MASTERCARD|DEBIT|CREDIT|PAYMENT)\b",
    re.IGNORECASE,
)


ParsedLine = tuple[str | None, int | None, float | None]


def is_terminator(line: str) -> bool:
    return bool(TERMINATOR_RE.match(line)) or is_separator_line(line) or is_footer_line(line)


def is_non_item_line(line: str) -> bool:
    """Shapes that look tabular but are never purchased items."""
    return (
        is_separator_line(line)
        or ADDRESS_RE.search(line) is not None
        or is_phone_line(line)
        or TAX_ID_ANYWHERE_RE.search(line) is not None
        or is_date_line(line)
        or is_metadata_line(line)
    )


def _clean_name(raw: str) -> str:
    name = _NAME_SYMBOLS_RE.sub(" ", raw)
    return _WHITESPACE_RE.sub(" ", name).strip(" .-/")


def _to_quantity(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_single_line(line: str) -> ParsedLine | None:
    """``Milk 2 3.99`` (optionally followed by a line amount)."""
    match = SINGLE_LINE_ITEM_RE.match(line.strip())
    if match is None:
        return None
    return _clean_name(match.group("name")), _to_quantity(match.group("qty")), parse_amount(match.group("price"))


def parse_columns(line: str) -> ParsedLine | None:
    """Split on 2+ spaces/tabs; right-most decimal column is the price."""
    columns = [column.strip() for column in _COLUMN_SPLIT_RE.split(line.strip()) if column.strip()]
    if len(columns) < 2:
        return None

    price_index = None
    for index in range(len(columns) - 1, 0, -1):
        if _DECIMAL_COLUMN_RE.match(columns[index]):
            price_index = index
            break
    if price_index is None:
        return None

    name_end = price_index
    quantity = None
    qty_match = _INTEGER_COLUMN_RE.match(columns[price_index - 1])
    if price_index >= 2 and qty_match:
        quantity = _to_quantity(qty_match.group("qty"))
        name_end = price_index - 1

    name_columns = list(columns[:name_end])
    while name_columns and not HAS_LETTER_RE.search(name_columns[-1]):
        name_columns.pop()
    if not name_columns:
        return None

    return _clean_name(" ".join(name_columns)), quantity, parse_amount(columns[price_index])


def parse_loose(line: str) -> ParsedLine | None:
    """Find any decimal (price) and any bare 1–3 digit integer (quantity)."""
    price_match = _LOOSE_PRICE_RE.search(line)
    if price_match is None:
        return None

    remainder = line[: price_match.start()] + " " + line[price_match.end():]
    quantity = None
    qty_match = _LOOSE_QTY_RE.search(remainder)
    if qty_match is not None:
        quantity = _to_quantity(qty_match.group("qty"))
        remainder = remainder[: qty_match.start()] + " " + remainder[qty_match.end():]

    remainder = _LOOSE_PRICE_RE.sub(" ", remainder)
    name = _clean_name(remainder)
    if not HAS_LETTER_RE.search(name):
        return None
    return name, quantity, parse_amount(price_match.group("price"))


LINE_PARSERS: tuple[Callable[[str], ParsedLine | None], ...] = (
    parse_single_line,
    parse_columns,
    parse_loose,
)


def validate_item(name: str | None, quantity: int | None, price: float | None) -> LineItem | None:
    """Apply sanity bounds; returns None when the candidate is not an item."""
    if quantity is not None and not MIN_QUANTITY <= quantity <= MAX_QUANTITY:
        quantity = None
    if price is not None and not 0 < price < MAX_PRICE:
        price = None

    if not name or price is None:
        return None
    if not MIN_NAME_LENGTH <= len(name) < MAX_NAME_LENGTH:
        return None
    if METADATA_NAME_RE.search(name):
        return None
    return LineItem(name=name, quantity=quantity, price=round(price, 2))


def parse_item_line(line: str) -> LineItem | None:
    """Run the parser chain; the first parser that yields a valid item wins."""
    if is_non_item_line(line):
        return None
    for parser in LINE_PARSERS:
        parsed = parser(line)
        if parsed is None:
            continue
        item = validate_item(*parsed)
        if item is not None:
            return item
    return None


def _find_header(lines: Sequence[str]) -> int | None:
    for index, line in enumerate(lines):
        if is_item_header(line):
            return index
    return None


def items_from_table(doc: ReceiptDocument) -> list[LineItem] | None:
    """Items between the column header and the first terminator."""
    header_index = _find_header(doc.lines)
    if header_index is None:
        return None

    items: list[LineItem] = []
    for line in doc.lines[header_index + 1:]:
        if is_terminator(line):
            break
        item = parse_item_line(line)
        if item is not None:
            items.append(item)
    return items


def items_from_all_lines(doc: ReceiptDocument) -> list[LineItem] | None:
    """Header-less fallback: any line that yields both a name and a price."""
    if _find_header(doc.lines) is not None:
        return None

    items: list[LineItem] = []
    for line in doc.lines:
        if TERMINATOR_RE.match(line) or is_footer_line(line):
            continue
        item = parse_item_line(line)
        if item is not None:
            items.append(item)
    return items


LINE_ITEM_STRATEGIES = (items_from_table, items_from_all_lines)
