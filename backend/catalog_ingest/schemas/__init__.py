"""Pydantic schemas for the operator API."""

from catalog_ingest.schemas.common import ApiResponse, ErrorDetail, ErrorResponse
from catalog_ingest.schemas.health import HealthCheckResponse
from catalog_ingest.schemas.run import ScrapeRunResponse
from catalog_ingest.schemas.sync import BrandSyncResponse, SweepSummaryResponse

__all__ = [
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    "HealthCheckResponse",
    "ScrapeRunResponse",
    "BrandSyncResponse",
    "SweepSummaryResponse",
]
