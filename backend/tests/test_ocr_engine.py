"""
Unit tests for the recognition adapter lifecycle and the Tesseract
output parsing.  No tesseract binary is needed.
"""
import threading
import time

import pytest
import pytesseract

from receipt_ocr.core.errors import EngineInitError, RecognitionError, UnreadableImageError
from receipt_ocr.extraction import OcrResult
from receipt_ocr.ocr.engine import RecognitionAdapter, TesseractEngine, build_ocr_result


class FakeEngine:
    def __init__(self, *, error=None, delay=0.0):
        self.error = error
        self.delay = delay
        self.terminated = False
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def recognize(self, image_path):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return OcrResult(text=f"text of {image_path}")
        finally:
            with self._lock:
                self.in_flight -= 1

    def terminate(self):
        self.terminated = True


class CountingFactory:
    def __init__(self, *engines, delay=0.0, error=None):
        self.engines = list(engines)
        self.delay = delay
        self.error = error
        self.calls = 0
        self.built = []

    def __call__(self):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        engine = self.engines.pop(0) if self.engines else FakeEngine()
        self.built.append(engine)
        return engine


def _run_threads(target, count=8):
    results, errors = [], []

    def _worker():
        try:
            results.append(target())
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=_worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results, errors


# =====================================================================
# Initialization
# =====================================================================
class TestInitialize:
    def test_single_flight(self):
        factory = CountingFactory(delay=0.1)
        adapter = RecognitionAdapter(factory)

        results, errors = _run_threads(adapter.initialize)

        assert errors == []
        assert factory.calls == 1
        assert len(results) == 8
        assert all(engine is factory.built[0] for engine in results)

    def test_idempotent(self):
        factory = CountingFactory()
        adapter = RecognitionAdapter(factory)
        first = adapter.initialize()
        assert adapter.initialize() is first
        assert factory.calls == 1
        assert adapter.is_ready

    def test_failure_is_shared_then_retried(self):
        factory = CountingFactory(delay=0.1, error=RuntimeError("no tesseract"))
        adapter = RecognitionAdapter(factory)

        results, errors = _run_threads(adapter.initialize, count=4)

        assert results == []
        assert len(errors) == 4
        assert all(isinstance(error, EngineInitError) for error in errors)
        assert factory.calls == 1

        factory.error = None
        adapter.initialize()
        assert factory.calls == 2
        assert adapter.is_ready


# =====================================================================
# Recognition
# =====================================================================
class TestRecognize:
    def test_lazy_initialize(self):
        factory = CountingFactory()
        adapter = RecognitionAdapter(factory)
        assert adapter.recognize("a.png").text == "text of a.png"
        assert factory.calls == 1

    def test_calls_are_serialized(self):
        engine = FakeEngine(delay=0.05)
        adapter = RecognitionAdapter(CountingFactory(engine))

        results, errors = _run_threads(lambda: adapter.recognize("a.png"), count=4)

        assert errors == []
        assert len(results) == 4
        assert engine.max_in_flight == 1

    def test_engine_fault_discards_engine(self):
        broken = FakeEngine(error=RuntimeError("segfault-ish"))
        healthy = FakeEngine()
        factory = CountingFactory(broken, healthy)
        adapter = RecognitionAdapter(factory)

        with pytest.raises(RecognitionError):
            adapter.recognize("a.png")
        assert broken.terminated
        assert not adapter.is_ready

        assert adapter.recognize("b.png").text == "text of b.png"
        assert factory.calls == 2

    def test_unreadable_image_keeps_engine(self):
        engine = FakeEngine(error=UnreadableImageError("not an image"))
        factory = CountingFactory(engine)
        adapter = RecognitionAdapter(factory)

        with pytest.raises(UnreadableImageError):
            adapter.recognize("a.png")
        assert adapter.is_ready
        assert not engine.terminated
        assert factory.calls == 1


# =====================================================================
# Termination
# =====================================================================
class TestTerminate:
    def test_never_initialized(self):
        RecognitionAdapter(CountingFactory()).terminate()

    def test_idempotent(self):
        factory = CountingFactory()
        adapter = RecognitionAdapter(factory)
        adapter.initialize()
        adapter.terminate()
        adapter.terminate()
        assert factory.built[0].terminated
        assert not adapter.is_ready

    def test_reinitializes_after_terminate(self):
        factory = CountingFactory()
        adapter = RecognitionAdapter(factory)
        adapter.initialize()
        adapter.terminate()
        adapter.recognize("a.png")
        assert factory.calls == 2


# =====================================================================
# Tesseract
# =====================================================================
class TestTesseract:
    def test_missing_binary(self, monkeypatch):
        def _missing():
            raise pytesseract.TesseractNotFoundError()

        monkeypatch.setattr(pytesseract, "get_tesseract_version", _missing)
        with pytest.raises(EngineInitError):
            TesseractEngine(lang="eng")

    def test_missing_language(self, monkeypatch):
        monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
        monkeypatch.setattr(pytesseract, "get_languages", lambda config="": ["eng", "osd"])
        with pytest.raises(EngineInitError, match="deu"):
            TesseractEngine(lang="eng+deu")

    def test_unreadable_image(self, monkeypatch, tmp_path):
        monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
        monkeypatch.setattr(pytesseract, "get_languages", lambda config="": ["eng"])
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"definitely not a png")

        engine = TesseractEngine(lang="eng")
        with pytest.raises(UnreadableImageError):
            engine.recognize(bad)

    def test_build_ocr_result(self):
        data = {
            "block_num": [1, 1, 1, 1, 1, 2],
            "par_num": [1, 1, 1, 1, 1, 1],
            "line_num": [0, 1, 1, 2, 2, 1],
            "text": ["", "Fresh", "Mart", "Milk", "3.99", "TOTAL"],
            "conf": ["-1", "96.5", 91, 88, 90, 95],
            "left": [0, 10, 80, 10, 200, 10],
            "top": [0, 10, 11, 40, 40, 480],
            "width": [300, 60, 50, 40, 40, 60],
            "height": [500, 12, 12, 12, 12, 12],
        }
        result = build_ocr_result(data)
        assert result.text == "Fresh Mart\nMilk 3.99\nTOTAL"
        assert [word.text for word in result.words] == ["Fresh", "Mart", "Milk", "3.99", "TOTAL"]
        assert result.words[0].confidence == pytest.approx(96.5)
