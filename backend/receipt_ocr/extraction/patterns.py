"""
Shared regexes and line classifiers used by the field strategies.

Receipts are noisy: every classifier here is case-insensitive and
deliberately loose.  Field modules import from here so that "what is a
date line" or "what is a footer" means the same thing everywhere.
"""

from __future__ import annotations

import re

# ── Numbers ─────────────────────────────────────────────────
CURRENCY_MARKS = "$€£¥₱₹"
AMOUNT_RE = re.compile(rf"[{CURRENCY_MARKS}]?\s*(\d{{1,3}}(?:,\d{{3}})+(?:\.\d{{1,2}})?|\d+(?:[.,]\d{{1,2}})?)")
TWO_DECIMAL_RE = re.compile(rf"(?<![\d.,])[{CURRENCY_MARKS}]?\s*(\d+\.\d{{2}})(?![\d.,])")

# ── Dates (shape only; dates.py does the real parsing) ──────
MONTH_NAMES = (
    r"Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|"
    r"Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?"
)
DATE_SHAPE_RE = re.compile(
    r"(?<!\d)\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}(?!\d)"
    r"|(?<!\d)\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}(?!\d)"
    rf"|\b(?:{MONTH_NAMES})\.?\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{2,4}}\b"
    rf"|\b\d{{1,2}}(?:st|nd|rd|th)?\s+(?:{MONTH_NAMES})\.?,?\s+\d{{2,4}}\b"
    r"|\bdate\b\s*[:.]",
    re.IGNORECASE,
)

# ── Tax identifiers ─────────────────────────────────────────
TAX_ID_MARKER_RE = re.compile(
    r"^\s*(?:T\.?\s?I\.?\s?N\.?|TAX\s*(?:ID|I\.D\.|PAYER\s*ID|REG(?:ISTRATION)?\.?\s*(?:NO|NUMBER|#))"
    r"|VAT\s*(?:REG(?:ISTRATION)?\.?\s*)?(?:NO|NUMBER|#|ID)|GSTIN|GST\s*(?:NO|#|REG)|ABN|EIN)(?![A-Za-z])\.?"
    r"[\s:#.\-]*[\d\s\-]*$",
    re.IGNORECASE,
)
TAX_ID_ANYWHERE_RE = re.compile(
    r"\b(?:T\.?I\.?N\.?|TAX\s*ID|VAT\s*(?:REG|NO|#)|GSTIN|ABN|EIN)\b", re.IGNORECASE
)

# ── Totals / tax / payment ──────────────────────────────────
TOTAL_WORD_RE = re.compile(
    r"\b(?:SUB\s*-?\s*TOTAL|GRAND\s+TOTAL|TOTAL|AMOUNT\s+DUE|BALANCE|CHANGE|CASH|TENDERED|SUM)\b",
    re.IGNORECASE,
)
TAX_WORD_RE = re.compile(r"\b(?:TAX(?:ABLE)?|VAT|GST|HST|PST)\b", re.IGNORECASE)

# ── Contact details ─────────────────────────────────────────
PHONE_RE = re.compile(
    r"\b(?:TEL|PHONE|PH|MOBILE|CELL|FAX)\b\.?\s*[:#.]"
    r"|\b(?:TEL|PHONE|MOBILE|FAX)\b\s*\+?\d"
    r"|\(?\b\d{3}\)?[\s.\-]\d{3}[\s.\-]\d{4}\b"
    r"|\+\d{1,3}[\s\-]?\d{2,4}[\s\-]?\d{3,4}[\s\-]?\d{3,4}\b",
    re.IGNORECASE,
)
ADDRESS_RE = re.compile(
    r"\b(?:ADDRESS|ADDR)\b"
    r"|\b\d+[A-Z]?\s+(?:[A-Z0-9.'\-]+\s+){0,4}"
    r"(?:STREET|AVENUE|ROAD|BOULEVARD|DRIVE|LANE|HIGHWAY|PLAZA)\b"
    # Abbreviated suffixes ("2 Dr Pepper") only end an address line
    r"|\b\d+[A-Z]?\s+(?:[A-Z0-9.'\-]+\s+){0,4}"
    r"(?:ST|AVE|RD|BLVD|DR|LN|HWY|WAY)\b\.?(?=\s*(?:,|$))"
    r"|\b(?:SUITE|STE|FLOOR|BLDG|BUILDING|P\.?O\.?\s*BOX)\b",
    re.IGNORECASE,
)

# ── Reference / staff / metadata ────────────────────────────
REFERENCE_RE = re.compile(
    r"^\s*(?:REF(?:ERENCE)?|RECEIPT|INVOICE|INV|ORDER|TXN|TRANS(?:ACTION)?|TABLE|GUESTS?|COVERS?|"
    r"POS|TERMINAL|TILL|REGISTER|CHECK|BILL|AUTH(?:ORI[SZ]ATION)?|APPROVAL|CARD|STAN|BATCH|TRACE)\b"
    r"\s*(?:[:#.]|NO\b|NUMBER\b|ID\b|CODE\b|\d)"
    r"|^\s*(?:OPERATOR|CASHIER|SERVER|SERVED\s+BY|WAITER|WAITRESS|STAFF|CLERK|ATTENDANT)\b",
    re.IGNORECASE,
)

# ── Footer / promotional phrases ────────────────────────────
FOOTER_RE = re.compile(
    r"\b(?:THANK\s*(?:YOU|S)|WELCOME|VISIT\s+(?:US|AGAIN)|COME\s+AGAIN|SEE\s+YOU|HAVE\s+A\s+NICE|"
    r"CUSTOMER\s+COPY|MERCHANT\s+COPY|RETURN\s+POLICY|NO\s+REFUND|EXCHANGE|FOLLOW\s+US|"
    r"SAVE\s+(?:UP|MORE)|SPECIAL\s+OFFER|PROMO(?:TION)?|LOYALTY|POINTS\s+EARNED|"
    r"THIS\s+SERVES\s+AS|OFFICIAL\s+RECEIPT|NOT\s+AN?\s+OFFICIAL)\b"
    r"|WWW\.|\.COM\b",
    re.IGNORECASE,
)

# ── Item table header ───────────────────────────────────────
_DESCRIPTION_TOKEN = r"(?:desc\w*|d[e3]scr\w*|items?|item\s*name|particulars|product|article)"
_QTY_TOKEN = r"(?:q[tf][yvj]\.?|[o0][tf][yvj]\.?|qnty|quantity|qty\.?|q'ty|pcs)"
_PRICE_TOKEN = r"(?:pr[il1|]ce|unit\s*pr[il1|]ce|u/?price|rate|each)"
_AMOUNT_TOKEN = r"(?:am[o0]unt|amt\.?|value|ext(?:ension)?)"

ITEM_HEADER_TOKENS = tuple(
    re.compile(rf"(?<![A-Za-z]){token}(?![A-Za-z])", re.IGNORECASE)
    for token in (_DESCRIPTION_TOKEN, _QTY_TOKEN, _PRICE_TOKEN, _AMOUNT_TOKEN)
)
_ANY_DECIMAL_RE = re.compile(r"\d+[.,]\d{2}")

SEPARATOR_RE = re.compile(r"^[\s\-=_*~.#]*[\-=_*~]{3,}[\s\-=_*~.#]*$")

HAS_LETTER_RE = re.compile(r"[A-Za-z]")


def split_lines(text: str) -> list[str]:
    """Split OCR text into trimmed, non-empty lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_amount(raw: str) -> float | None:
    """Convert '1,234.56', '$3.99' or '3,99' to a float; None if unparseable."""
    cleaned = raw.strip().lstrip(CURRENCY_MARKS).strip()
    if "," in cleaned and "." in cleaned:
        cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        if re.fullmatch(r"\d+,\d{1,2}", cleaned):
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    try:
        return float(cleaned)
    except ValueError:
        return None


def is_date_line(line: str) -> bool:
    return DATE_SHAPE_RE.search(line) is not None


def is_total_line(line: str) -> bool:
    return TOTAL_WORD_RE.search(line) is not None


def is_tax_line(line: str) -> bool:
    return TAX_WORD_RE.search(line) is not None or TAX_ID_ANYWHERE_RE.search(line) is not None


def is_phone_line(line: str) -> bool:
    return PHONE_RE.search(line) is not None


def is_footer_line(line: str) -> bool:
    return FOOTER_RE.search(line) is not None


def is_separator_line(line: str) -> bool:
    return SEPARATOR_RE.match(line) is not None


def is_metadata_line(line: str) -> bool:
    """Labels such as 'Cashier: Ann' or 'Receipt #123' that never name a store."""
    return REFERENCE_RE.search(line) is not None


def is_item_header(line: str) -> bool:
    """A column header has at least two of description/qty/price/amount and no prices."""
    if _ANY_DECIMAL_RE.search(line):
        return False
    hits = sum(1 for token in ITEM_HEADER_TOKENS if token.search(line))
    return hits >= 2
