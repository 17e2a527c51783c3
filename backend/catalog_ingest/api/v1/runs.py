"""Scrape run log endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from catalog_ingest.db.store import CatalogStore
from catalog_ingest.dependencies import get_store
from catalog_ingest.schemas import ApiResponse, ScrapeRunResponse

router = APIRouter()


@router.get("", response_model=ApiResponse[list[ScrapeRunResponse]])
async def list_runs(
    brand: Optional[str] = Query(None, description="Filter by brand slug"),
    limit: int = Query(20, ge=1, le=200, description="Maximum runs to return"),
    store: CatalogStore = Depends(get_store),
):
    """List recent scrape runs, newest first."""
    runs = await store.list_runs(brand_slug=brand, limit=limit)
    return ApiResponse(data=[ScrapeRunResponse.from_run(run) for run in runs])
