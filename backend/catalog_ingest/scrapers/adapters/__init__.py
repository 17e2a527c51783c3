"""Source adapters, one per brand source_kind."""

from catalog_ingest.scrapers.adapters.brand_api import BrandApiAdapter, BRAND_API_CLIENTS
from catalog_ingest.scrapers.adapters.generic_listing import GenericListingAdapter
from catalog_ingest.scrapers.adapters.native_catalog import NativeCatalogAdapter
from catalog_ingest.scrapers.adapters.remote_scrape import RemoteScrapeAdapter

__all__ = [
    "BrandApiAdapter",
    "BRAND_API_CLIENTS",
    "GenericListingAdapter",
    "NativeCatalogAdapter",
    "RemoteScrapeAdapter",
]
