"""Scrape run schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from catalog_ingest.models import ScrapeRun


class ScrapeRunResponse(BaseModel):
    """One row of the run log."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    brand_id: UUID
    brand_slug: Optional[str] = None
    status: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    execution_time_seconds: Optional[Decimal] = None
    products_added: int = 0
    products_updated: int = 0
    products_failed: int = 0
    error_message: Optional[str] = None
    remote_dataset_id: Optional[str] = None

    @classmethod
    def from_run(cls, run: ScrapeRun) -> "ScrapeRunResponse":
        response = cls.model_validate(run)
        response.brand_slug = run.brand.slug if run.brand is not None else None
        return response
