"""
Recognition adapter — a process-local, lazily started OCR engine.

The engine behind the adapter is Tesseract (via pytesseract).  Starting
it means probing the binary and language packs, which is slow enough
that concurrent first callers must share a single start-up instead of
racing.  After an engine fault the adapter drops the engine so the next
call starts a fresh one; a bad image is the caller's problem and keeps
the engine.

Celery's prefork pool gives every worker slot its own process, so each
slot owns exactly one adapter (see :func:`get_adapter`).
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Protocol

import pytesseract
from PIL import Image, UnidentifiedImageError

from receipt_ocr.core.config import settings
from receipt_ocr.core.errors import (
    EngineInitError,
    RecognitionError,
    RecognitionTimeoutError,
    UnreadableImageError,
)
from receipt_ocr.core.logging import get_logger
from receipt_ocr.extraction.models import OcrResult, Word

logger = get_logger(__name__)


class OcrEngine(Protocol):
    """What the adapter needs from a concrete engine."""

    def recognize(self, image_path: str | Path) -> OcrResult: ...

    def terminate(self) -> None: ...


# ═══════════════════════════════════════════════════════════
#  Tesseract
# ═══════════════════════════════════════════════════════════

class TesseractEngine:
    """
    pytesseract-backed engine.

    Construction verifies the tesseract binary and the language pack and
    raises EngineInitError when either is missing.

    Args:
        lang: Tesseract language code(s), e.g. ``"eng"`` or ``"eng+deu"``.
        config: Extra tesseract CLI flags.
        timeout: Per-call wall-clock limit in seconds (0 disables).
        tesseract_cmd: Optional path to the tesseract binary.
    """

    def __init__(
        self,
        lang: str = "eng",
        config: str = "",
        timeout: float = 0,
        tesseract_cmd: str = "",
    ) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

        try:
            version = pytesseract.get_tesseract_version()
            installed = set(pytesseract.get_languages(config=""))
        except pytesseract.TesseractNotFoundError as exc:
            raise EngineInitError(
                "Tesseract binary not found",
                details={"tesseract_cmd": pytesseract.pytesseract.tesseract_cmd},
            ) from exc
        except (pytesseract.TesseractError, OSError) as exc:
            raise EngineInitError(f"Tesseract failed to start: {exc}") from exc

        missing = [code for code in lang.split("+") if code not in installed]
        if missing:
            raise EngineInitError(
                f"Tesseract language pack(s) not installed: {', '.join(missing)}",
                details={"installed": sorted(installed)},
            )

        self.lang = lang
        self.config = config
        self.timeout = timeout
        self._closed = False
        logger.info("Tesseract engine started", version=str(version), lang=lang)

    def recognize(self, image_path: str | Path) -> OcrResult:
        if self._closed:
            raise RecognitionError("Tesseract engine has been terminated")

        try:
            with Image.open(image_path) as image:
                image.load()
                prepared = image.convert("RGB") if image.mode not in ("RGB", "L") else image.copy()
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise UnreadableImageError(
                f"Could not read image: {exc}",
                details={"path": str(image_path)},
            ) from exc

        try:
            data = pytesseract.image_to_data(
                prepared,
                lang=self.lang,
                config=self.config,
                output_type=pytesseract.Output.DICT,
                timeout=self.timeout,
            )
        except RuntimeError as exc:
            # pytesseract signals its own timeout with a bare RuntimeError
            if "timeout" in str(exc).lower():
                raise RecognitionTimeoutError(
                    f"Tesseract timed out after {self.timeout}s",
                    timeout=self.timeout,
                ) from exc
            raise RecognitionError(f"Tesseract failed: {exc}") from exc
        except pytesseract.TesseractError as exc:
            raise RecognitionError(f"Tesseract failed: {exc}") from exc
        finally:
            prepared.close()

        return build_ocr_result(data)

    def terminate(self) -> None:
        self._closed = True


def build_ocr_result(data: dict[str, list[Any]]) -> OcrResult:
    """
    Turn pytesseract's ``image_to_data`` DICT output into an OcrResult.

    Words with empty text or ``conf == -1`` (layout rows) are dropped.
    Plain text is rebuilt one line per (block, paragraph, line) triple,
    in reading order.
    """
    words: list[Word] = []
    lines: dict[tuple[int, int, int], list[str]] = {}

    texts = data.get("text", [])
    missing = [0] * len(texts)
    blocks = data.get("block_num", missing)
    paragraphs = data.get("par_num", missing)
    line_numbers = data.get("line_num", missing)

    for index, raw_text in enumerate(texts):
        text = (raw_text or "").strip()
        try:
            confidence = float(data["conf"][index])
        except (KeyError, IndexError, TypeError, ValueError):
            continue
        if not text or confidence < 0:
            continue

        words.append(Word(
            text=text,
            left=float(data["left"][index]),
            top=float(data["top"][index]),
            width=float(data["width"][index]),
            height=float(data["height"][index]),
            confidence=confidence,
        ))
        key = (int(blocks[index]), int(paragraphs[index]), int(line_numbers[index]))
        lines.setdefault(key, []).append(text)

    text = "\n".join(" ".join(tokens) for tokens in lines.values())
    return OcrResult(text=text, words=words)


# ═══════════════════════════════════════════════════════════
#  Adapter
# ═══════════════════════════════════════════════════════════

class RecognitionAdapter:
    """
    Lifecycle wrapper around one OCR engine.

    ``initialize`` is single-flight: the first caller builds the engine
    while concurrent callers block on the same pending Future and share
    its outcome.  ``recognize`` calls are serialized on a second lock.
    """

    def __init__(self, engine_factory: Callable[[], OcrEngine]) -> None:
        self._engine_factory = engine_factory
        self._engine: OcrEngine | None = None
        self._pending: Future | None = None
        self._state_lock = threading.Lock()
        self._recognize_lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return self._engine is not None

    def initialize(self) -> OcrEngine:
        """Start the engine if needed; safe to call from many threads."""
        with self._state_lock:
            if self._engine is not None:
                return self._engine
            pending = self._pending
            is_owner = pending is None
            if is_owner:
                pending = self._pending = Future()

        if not is_owner:
            return pending.result()

        try:
            engine = self._engine_factory()
        except Exception as exc:
            error = exc if isinstance(exc, EngineInitError) else EngineInitError(
                f"OCR engine failed to start: {exc}"
            )
            with self._state_lock:
                self._pending = None
            pending.set_exception(error)
            logger.error("OCR engine initialization failed", error=str(error))
            if error is exc:
                raise
            raise error from exc

        with self._state_lock:
            self._engine = engine
            self._pending = None
        pending.set_result(engine)
        logger.info("OCR engine ready")
        return engine

    def recognize(self, image_path: str | Path) -> OcrResult:
        """Recognize one image, starting the engine on first use."""
        engine = self.initialize()
        with self._recognize_lock:
            try:
                return engine.recognize(image_path)
            except UnreadableImageError:
                raise
            except RecognitionError as exc:
                self._discard(engine, reason=str(exc))
                raise
            except Exception as exc:
                self._discard(engine, reason=str(exc))
                raise RecognitionError(f"OCR engine fault: {exc}") from exc

    def terminate(self) -> None:
        """Release the engine.  Idempotent."""
        with self._state_lock:
            engine, self._engine = self._engine, None
        if engine is not None:
            self._close(engine)
            logger.info("OCR engine terminated")

    def _discard(self, engine: OcrEngine, *, reason: str) -> None:
        with self._state_lock:
            if self._engine is engine:
                self._engine = None
        logger.warning("Discarding faulted OCR engine", reason=reason)
        self._close(engine)

    @staticmethod
    def _close(engine: OcrEngine) -> None:
        try:
            engine.terminate()
        except Exception as exc:
            logger.warning("OCR engine terminate failed", error=str(exc))


# ─── Process-local adapter ────────────────────
_adapter: RecognitionAdapter | None = None
_adapter_lock = threading.Lock()


def _tesseract_from_settings() -> TesseractEngine:
    return TesseractEngine(
        lang=settings.OCR_LANGUAGE,
        config=settings.OCR_TESSERACT_CONFIG,
        timeout=settings.OCR_RECOGNITION_TIMEOUT_SECONDS,
        tesseract_cmd=settings.OCR_TESSERACT_CMD,
    )


def get_adapter() -> RecognitionAdapter:
    """Return this process's adapter, creating it on first use."""
    global _adapter
    with _adapter_lock:
        if _adapter is None:
            _adapter = RecognitionAdapter(_tesseract_from_settings)
        return _adapter


def shutdown_adapter() -> None:
    """Terminate this process's adapter, if one was ever created."""
    global _adapter
    with _adapter_lock:
        adapter, _adapter = _adapter, None
    if adapter is not None:
        adapter.terminate()
