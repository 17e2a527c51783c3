"""Catalog ingestion pipeline.

Pulls product catalogs from brand storefronts and remote scraping jobs,
normalizes and classifies them, and upserts them into the shared catalog.
"""

__version__ = "0.1.0"
