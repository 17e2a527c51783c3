"""Sync trigger schemas."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from catalog_ingest.scrapers.sync_service import BrandSyncResult, SweepSummary


class BrandSyncResponse(BaseModel):
    """Outcome of one brand's sync."""

    brand_slug: str
    status: str
    added: int
    updated: int
    failed: int
    execution_time_seconds: float
    error_message: Optional[str] = None
    run_id: Optional[UUID] = None
    remote_dataset_id: Optional[str] = None
    dry_run: bool = False

    @classmethod
    def from_result(cls, result: BrandSyncResult) -> "BrandSyncResponse":
        return cls(
            brand_slug=result.brand_slug,
            status=result.status.value,
            added=result.added,
            updated=result.updated,
            failed=result.failed,
            execution_time_seconds=result.execution_time_seconds,
            error_message=result.error_message,
            run_id=result.run_id,
            remote_dataset_id=result.remote_dataset_id,
            dry_run=result.dry_run,
        )


class SweepSummaryResponse(BaseModel):
    """Totals across every brand in a sync invocation."""

    results: list[BrandSyncResponse]
    total_added: int
    total_updated: int
    total_failed: int
    failed_brands: list[str]

    @classmethod
    def from_summary(cls, summary: SweepSummary) -> "SweepSummaryResponse":
        return cls(
            results=[BrandSyncResponse.from_result(r) for r in summary.results],
            total_added=summary.total_added,
            total_updated=summary.total_updated,
            total_failed=summary.total_failed,
            failed_brands=summary.failed_brands,
        )
