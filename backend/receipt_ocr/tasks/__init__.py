"""
Celery application factory.
"""

from celery import Celery
from celery.signals import worker_process_init, worker_process_shutdown

from receipt_ocr.core.config import settings
from receipt_ocr.core.logging import setup_logging
from receipt_ocr.ocr.engine import shutdown_adapter

celery_app = Celery("receipt_ocr")
celery_app.config_from_object("celeryconfig")

# Auto-discover tasks in these modules
celery_app.autodiscover_tasks([
    "receipt_ocr.tasks.ocr_tasks",
])


@worker_process_init.connect
def _init_worker_process(**kwargs) -> None:
    setup_logging("DEBUG" if settings.APP_ENV == "development" else "INFO")


@worker_process_shutdown.connect
def _shutdown_worker_process(**kwargs) -> None:
    shutdown_adapter()
