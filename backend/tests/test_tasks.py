"""
Celery wiring — publishing under the job id and retry hand-off.

Tasks run eagerly with ``Task.apply``; the attempt itself is stubbed.
"""
import pytest

from receipt_ocr.core.config import Settings, settings
from receipt_ocr.core.errors import JobFailedError, JobRetryScheduled
from receipt_ocr.tasks import celery_app, ocr_tasks


@pytest.fixture()
def attempts(monkeypatch):
    """Stub ``_run_attempt``; set ``.outcomes`` to exceptions/results per attempt."""

    class Recorder:
        def __init__(self):
            self.calls = []
            self.outcomes = []

    recorder = Recorder()

    async def _fake_run_attempt(job_id, payload, attempt):
        recorder.calls.append((job_id, attempt))
        outcome = recorder.outcomes[len(recorder.calls) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(ocr_tasks, "_run_attempt", _fake_run_attempt)
    return recorder


def test_dispatch_uses_job_id_as_task_id(monkeypatch):
    sent = {}
    monkeypatch.setattr(ocr_tasks.process_receipt, "apply_async", lambda **kwargs: sent.update(kwargs))

    ocr_tasks.dispatch_ocr_job("job-1", {"version": 1})

    assert sent == {"args": [{"version": 1}], "task_id": "job-1", "queue": settings.OCR_QUEUE_NAME}


def test_task_returns_result(attempts):
    attempts.outcomes = [{"version": 1, "storeName": "Corner Market"}]

    result = ocr_tasks.process_receipt.apply(args=[{"version": 1}], task_id="job-1")

    assert result.get() == {"version": 1, "storeName": "Corner Market"}
    assert attempts.calls == [("job-1", 1)]


def test_retry_increments_attempt(attempts):
    attempts.outcomes = [
        JobRetryScheduled("boom", countdown=2.0, attempt=1),
        JobRetryScheduled("boom", countdown=4.0, attempt=2),
        {"version": 1},
    ]

    result = ocr_tasks.process_receipt.apply(args=[{"version": 1}], task_id="job-1")

    assert result.get() == {"version": 1}
    assert attempts.calls == [("job-1", 1), ("job-1", 2), ("job-1", 3)]


def test_permanent_failure(attempts):
    attempts.outcomes = [JobFailedError("gave up", attempts=3)]

    result = ocr_tasks.process_receipt.apply(args=[{"version": 1}], task_id="job-1")

    assert result.failed()
    with pytest.raises(JobFailedError):
        result.get()


def test_rate_limit_from_settings():
    assert ocr_tasks.process_receipt.rate_limit == settings.OCR_RATE_LIMIT
    assert ocr_tasks.process_receipt.max_retries is None


def test_worker_pool_limits():
    conf = celery_app.conf
    assert conf.worker_concurrency == settings.OCR_MAX_CONCURRENCY
    assert conf.worker_prefetch_multiplier == 1
    assert conf.worker_pool == "prefork"
    assert conf.task_acks_late is True


def test_default_concurrency_is_two():
    assert Settings.model_fields["OCR_MAX_CONCURRENCY"].default == 2
