"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from receipt_ocr.api.v1 import jobs, receipts
from receipt_ocr.core.config import settings
from receipt_ocr.core.logging import get_logger, setup_logging
from receipt_ocr.db.models import Base
from receipt_ocr.db.session import engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle hooks."""
    setup_logging("DEBUG" if settings.APP_ENV == "development" else "INFO")
    logger = get_logger("startup")

    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Application starting", env=settings.APP_ENV, upload_dir=settings.UPLOAD_DIR)
    yield
    logger.info("Application shutting down")
    await engine.dispose()


app = FastAPI(
    title="Receipt OCR API",
    description="Receipt upload, background OCR and structured receipt data",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API_PREFIX = "/api/v1"
app.include_router(receipts.router, prefix=API_PREFIX)
app.include_router(jobs.router, prefix=API_PREFIX)

app.mount(
    settings.UPLOAD_URL_PREFIX,
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads",
)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Public health-check endpoint."""
    return {"status": "ok", "env": settings.APP_ENV}
