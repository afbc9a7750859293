"""Rebuild text lines from word geometry."""

from __future__ import annotations

from dataclasses import dataclass, field

from receipt_ocr.extraction.models import Word


@dataclass
class TextLine:
    """Words that share a baseline, ordered left-to-right."""

    words: list[Word] = field(default_factory=list)

    @property
    def text(self) -> str:
        return " ".join(word.text for word in self.words).strip()

    @property
    def top(self) -> float:
        return min(word.top for word in self.words)

    @property
    def mean_confidence(self) -> float:
        if not self.words:
            return 0.0
        return sum(word.confidence for word in self.words) / len(self.words)


def cluster_lines(words: list[Word], tolerance: float) -> list[TextLine]:
    """
    Group words into lines by vertical position.

    A word joins the current line when its ``top`` is within ``tolerance``
    of the line's first word; lines come out top-to-bottom and words
    within a line left-to-right.
    """
    ordered = sorted(
        (word for word in words if word.text.strip()),
        key=lambda word: (word.top, word.left),
    )

    lines: list[TextLine] = []
    anchor_top: float | None = None
    for word in ordered:
        if anchor_top is None or abs(word.top - anchor_top) > tolerance:
            lines.append(TextLine())
            anchor_top = word.top
        lines[-1].words.append(word)

    for line in lines:
        line.words.sort(key=lambda word: word.left)
    return lines


def top_region_lines(words: list[Word], ratio: float, tolerance: float) -> list[TextLine]:
    """Lines whose words start within the top ``ratio`` of the page."""
    visible = [word for word in words if word.text.strip()]
    if not visible:
        return []

    page_height = max(word.bottom for word in visible)
    cutoff = page_height * ratio
    header_words = [word for word in visible if word.top <= cutoff]
    return cluster_lines(header_words, tolerance)
