"""SQLAlchemy models for the catalog store.

All models are imported here so metadata.create_all sees every table.
"""

from catalog_ingest.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from catalog_ingest.models.brand import Brand
from catalog_ingest.models.category import Category, ProductCategory
from catalog_ingest.models.product import Product
from catalog_ingest.models.scrape_run import ScrapeRun

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Brand",
    "Category",
    "ProductCategory",
    "Product",
    "ScrapeRun",
]
