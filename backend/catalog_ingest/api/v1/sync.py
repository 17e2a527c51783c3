"""Manual sync trigger endpoint."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from catalog_ingest.config import settings
from catalog_ingest.core.exceptions import NotFoundError
from catalog_ingest.db.store import CatalogStore
from catalog_ingest.dependencies import get_store
from catalog_ingest.schemas import ApiResponse, SweepSummaryResponse
from catalog_ingest.scrapers.sync_service import SyncService

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/{slug}", response_model=ApiResponse[SweepSummaryResponse])
async def trigger_sync(
    slug: str,
    dry_run: bool = Query(False, description="Fetch and normalize without writing"),
    new_only: bool = Query(False, description="Only recently published products"),
    store: CatalogStore = Depends(get_store),
):
    """Run a sync for one brand (or "all") and return its summary.

    The request waits for the sync to finish.
    """
    since_days = settings.NEW_ARRIVALS_DAYS if new_only else None
    logger.info("manual_sync_requested", target=slug, dry_run=dry_run, new_only=new_only)

    try:
        summary = await SyncService(store).sync_target(slug, since_days=since_days, dry_run=dry_run)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    return ApiResponse(data=SweepSummaryResponse.from_summary(summary))
