"""ReceiptDocument — the precomputed view every strategy reads from."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from receipt_ocr.extraction.layout import TextLine, top_region_lines
from receipt_ocr.extraction.models import ExtractionConfig, Word
from receipt_ocr.extraction.patterns import split_lines


@dataclass(frozen=True)
class ReceiptDocument:
    """
    Immutable input to the field strategies.

    Built once per extraction so each strategy stays a pure function of
    the document: raw lines, optional word geometry, and the header
    lines reconstructed from that geometry.
    """

    text: str
    lines: tuple[str, ...]
    words: tuple[Word, ...] = ()
    top_lines: tuple[TextLine, ...] = ()
    config: ExtractionConfig = field(default_factory=ExtractionConfig)
    today: date = field(default_factory=date.today)

    @property
    def has_geometry(self) -> bool:
        return bool(self.words)

    @classmethod
    def build(
        cls,
        text: str,
        words: list[Word] | None = None,
        config: ExtractionConfig | None = None,
        today: date | None = None,
    ) -> "ReceiptDocument":
        config = config or ExtractionConfig()
        words = [word for word in (words or []) if word.text.strip()]
        top_lines = (
            top_region_lines(words, config.top_region_ratio, config.line_tolerance)
            if words
            else []
        )
        return cls(
            text=text,
            lines=tuple(split_lines(text)),
            words=tuple(words),
            top_lines=tuple(top_lines),
            config=config,
            today=today or date.today(),
        )
