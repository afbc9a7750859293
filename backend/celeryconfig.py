"""
Celery configuration for the receipt OCR worker.

Loaded by `celery_app.config_from_object("celeryconfig")` in receipt_ocr/tasks/__init__.py.
Broker/result-backend URLs and the OCR worker limits come from
receipt_ocr.core.config.Settings (environment variables / .env),
defaulting to localhost for local dev.
"""

from receipt_ocr.core.config import settings

# ═══════════════════════════════════════════════════════════
#  Broker & Result Backend
# ═══════════════════════════════════════════════════════════

broker_url = settings.CELERY_BROKER_URL
result_backend = settings.CELERY_RESULT_BACKEND

# ═══════════════════════════════════════════════════════════
#  Serialization: JSON only
# ═══════════════════════════════════════════════════════════

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

# ═══════════════════════════════════════════════════════════
#  Timezone
# ═══════════════════════════════════════════════════════════

timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Task Execution
# ═══════════════════════════════════════════════════════════

# Ack after the attempt finishes; a killed worker redelivers the job
task_acks_late = True
task_reject_on_worker_lost = True

# One reserved message per worker process
# A slow recognition must not hold queued receipts hostage
worker_prefetch_multiplier = 1

# At most this many receipts are recognised at once (one engine per process)
worker_concurrency = settings.OCR_MAX_CONCURRENCY
worker_pool = "prefork"

# Recognition itself is bounded by OCR_RECOGNITION_TIMEOUT_SECONDS;
# these only catch a wedged task
task_soft_time_limit = 120    # raises SoftTimeLimitExceeded
task_time_limit = 150         # hard kill

# ═══════════════════════════════════════════════════════════
#  Retry Policy
# ═══════════════════════════════════════════════════════════
# Attempts and backoff are owned by the job row (OCR_JOB_ATTEMPTS,
# OCR_BACKOFF_BASE_SECONDS); see receipt_ocr.jobs.runner.

task_default_retry_delay = settings.OCR_BACKOFF_BASE_SECONDS

# ═══════════════════════════════════════════════════════════
#  Result Expiry: job status lives in the ocr_jobs table
# ═══════════════════════════════════════════════════════════

result_expires = settings.OCR_FAILED_JOB_TTL_SECONDS

# ═══════════════════════════════════════════════════════════
#  Worker Settings
# ═══════════════════════════════════════════════════════════

# Restart worker processes periodically (Tesseract/Pillow buffers)
worker_max_tasks_per_child = 50

# Task events are off by default
# Enable with: celery -A receipt_ocr.tasks worker -E
worker_send_task_events = False
task_send_sent_event = False

# ═══════════════════════════════════════════════════════════
#  Task Routes
# ═══════════════════════════════════════════════════════════
# Run the OCR worker against its own queue:
#   celery -A receipt_ocr.tasks worker -Q ocr-processing
#   celery -A receipt_ocr.tasks beat

task_routes = {
    "receipt_ocr.tasks.ocr_tasks.*": {"queue": settings.OCR_QUEUE_NAME},
}

task_default_queue = "default"

# ═══════════════════════════════════════════════════════════
#  Beat Schedule (periodic tasks)
# ═══════════════════════════════════════════════════════════

beat_schedule = {
    "purge-expired-ocr-jobs": {
        "task": "receipt_ocr.tasks.ocr_tasks.purge_expired_jobs",
        "schedule": float(settings.OCR_PURGE_INTERVAL_SECONDS),
    },
}
