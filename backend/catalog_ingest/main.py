"""Catalog ingest operator API -- FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from catalog_ingest import __version__
from catalog_ingest.api.v1.router import api_v1_router
from catalog_ingest.config import settings
from catalog_ingest.core.logging import configure_logging
from catalog_ingest.db.seed import seed_categories
from catalog_ingest.db.session import async_session_factory, init_db
from catalog_ingest.scrapers.scheduler import SyncScheduler

configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    logger.info("api_starting", environment=settings.ENVIRONMENT, debug=settings.DEBUG)

    try:
        await init_db()
        await seed_categories(async_session_factory)
        logger.info("database_ready")
    except Exception as e:
        logger.error("database_init_failed", error=str(e), exc_info=True)

    # Sweep scheduler (only in non-test environments)
    app.state.scheduler = None
    if settings.ENVIRONMENT != "test":
        scheduler = SyncScheduler(async_session_factory)
        scheduler.start()
        scheduler.add_sweep_job()
        app.state.scheduler = scheduler
    else:
        logger.info("scheduler_disabled", reason="test environment")

    yield

    logger.info("api_shutting_down")
    if app.state.scheduler is not None:
        app.state.scheduler.stop()


app = FastAPI(
    title="Catalog Ingest API",
    description="Operator API for brand catalog ingestion runs",
    version=__version__,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Catalog Ingest API",
        "version": __version__,
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
