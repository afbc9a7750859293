"""
Value types for the extraction engine.

These are the only shapes that cross the worker/API boundary, so the
serialised forms are explicit and versioned.  Everything here is plain
data — no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from receipt_ocr.core.constants import RESULT_VERSION
from receipt_ocr.core.errors import PayloadVersionError


# ═══════════════════════════════════════════════════════════
#  Word: one recognised token with its geometry
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Word:
    """
    A single OCR word.

    Accepts either ``left/top/width/height`` or ``x0/y0/x1/y1`` geometry
    via :meth:`from_dict`; internally everything is left/top/width/height.
    Confidence is on a 0–100 scale.
    """

    text: str
    left: float
    top: float
    width: float = 0.0
    height: float = 0.0
    confidence: float = 0.0

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Word":
        box = data.get("bbox") or data
        if "x0" in box and "y0" in box:
            left, top = float(box["x0"]), float(box["y0"])
            width = float(box.get("x1", left)) - left
            height = float(box.get("y1", top)) - top
        else:
            left, top = float(box["left"]), float(box["top"])
            width = float(box.get("width", 0))
            height = float(box.get("height", 0))

        confidence = data.get("confidence", data.get("conf", 0))
        return cls(
            text=str(data.get("text", "")),
            left=left,
            top=top,
            width=max(width, 0.0),
            height=max(height, 0.0),
            confidence=float(confidence),
        )


@dataclass
class OcrResult:
    """Raw recognition output: plain text plus per-word geometry."""

    text: str
    words: list[Word] = field(default_factory=list)


# ═══════════════════════════════════════════════════════════
#  LineItem / ExtractedData
# ═══════════════════════════════════════════════════════════

@dataclass
class LineItem:
    """One purchased item.  ``quantity`` and ``price`` may be absent."""

    name: str
    quantity: int | None = None
    price: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity, "price": self.price}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LineItem":
        return cls(
            name=data["name"],
            quantity=data.get("quantity"),
            price=data.get("price"),
        )


@dataclass
class ExtractedData:
    """Structured fields derived from one receipt.  Absent means unresolved."""

    store_name: str | None = None
    purchase_date: date | None = None
    total_amount: float | None = None
    items: list[LineItem] = field(default_factory=list)

    def is_empty(self) -> bool:
        return (
            self.store_name is None
            and self.purchase_date is None
            and self.total_amount is None
            and not self.items
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise for the job result column / status API."""
        return {
            "version": RESULT_VERSION,
            "storeName": self.store_name,
            "purchaseDate": self.purchase_date.isoformat() if self.purchase_date else None,
            "totalAmount": self.total_amount,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtractedData":
        version = data.get("version", RESULT_VERSION)
        if version > RESULT_VERSION:
            raise PayloadVersionError(
                f"Unsupported result version {version}",
                details={"supported": RESULT_VERSION},
            )
        raw_date = data.get("purchaseDate")
        return cls(
            store_name=data.get("storeName"),
            purchase_date=date.fromisoformat(raw_date) if raw_date else None,
            total_amount=data.get("totalAmount"),
            items=[LineItem.from_dict(item) for item in data.get("items", [])],
        )


# ═══════════════════════════════════════════════════════════
#  ExtractionConfig
# ═══════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ExtractionConfig:
    """
    Tunable layout constants for geometry-based strategies.

    Args:
        top_region_ratio: Fraction of page height treated as the header band.
        line_tolerance: Max vertical distance between words on the same line.
        top_line_count: How many reconstructed header lines to consider.
        confidence_threshold: Mean word confidence that marks a line as reliable.
    """

    top_region_ratio: float = 0.2
    line_tolerance: float = 10.0
    top_line_count: int = 5
    confidence_threshold: float = 80.0

    @classmethod
    def from_settings(cls, settings) -> "ExtractionConfig":
        return cls(
            top_region_ratio=settings.EXTRACTION_TOP_REGION_RATIO,
            line_tolerance=settings.EXTRACTION_LINE_TOLERANCE,
            top_line_count=settings.EXTRACTION_TOP_LINE_COUNT,
            confidence_threshold=settings.EXTRACTION_CONFIDENCE_THRESHOLD,
        )
