"""
Pydantic Settings — centralized configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database ─────────────────────────────
    POSTGRES_USER: str = "receipts_user"
    POSTGRES_PASSWORD: str = "receipts_pass"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "receipts_db"
    DATABASE_URL_OVERRIDE: str = ""

    @property
    def DATABASE_URL(self) -> str:
        """Async URL for app runtime (asyncpg)."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # ── Redis / Celery ────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # ── Uploads ───────────────────────────────
    UPLOAD_DIR: str = "uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # ── OCR engine ───────────────────────────
    OCR_LANGUAGE: str = "eng"
    OCR_TESSERACT_CMD: str = ""
    OCR_TESSERACT_CONFIG: str = "--psm 6"
    OCR_RECOGNITION_TIMEOUT_SECONDS: float = 30.0

    # ── OCR queue / worker ───────────────────
    OCR_QUEUE_NAME: str = "ocr-processing"
    OCR_MAX_CONCURRENCY: int = 2
    OCR_RATE_LIMIT_MAX: int = 5
    OCR_RATE_LIMIT_WINDOW_SECONDS: int = 60
    OCR_JOB_ATTEMPTS: int = 3
    OCR_BACKOFF_BASE_SECONDS: float = 2.0
    OCR_COMPLETED_JOB_TTL_SECONDS: int = 3600
    OCR_FAILED_JOB_TTL_SECONDS: int = 24 * 3600
    OCR_PURGE_INTERVAL_SECONDS: int = 900

    # ── Extraction geometry ──────────────────
    EXTRACTION_TOP_REGION_RATIO: float = 0.2
    EXTRACTION_LINE_TOLERANCE: float = 10.0
    EXTRACTION_TOP_LINE_COUNT: int = 5
    EXTRACTION_CONFIDENCE_THRESHOLD: float = 80.0

    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    FRONTEND_URL: str = "http://localhost:3000"

    model_config = {"env_file": ["../.env", ".env"], "extra": "ignore"}

    @property
    def OCR_RATE_LIMIT(self) -> str:
        """Celery rate-limit string for job starts per window."""
        per_minute = self.OCR_RATE_LIMIT_MAX * 60 / self.OCR_RATE_LIMIT_WINDOW_SECONDS
        return f"{per_minute:g}/m"


settings = Settings()
