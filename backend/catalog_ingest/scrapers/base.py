"""Base source adapter interface and the normalized product structure.

All source adapters inherit from BaseSourceAdapter and implement
fetch_all(), returning raw records in one of the shapes the record
normalizer understands.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import httpx
import structlog

from catalog_ingest.config import settings
from catalog_ingest.core.exceptions import AdapterError
from catalog_ingest.scrapers.utils.retry import send_with_retry

RawRecord = dict[str, Any]


@dataclass
class ProductVariant:
    """One purchasable variant; prices are integer minor units."""

    id: Optional[str] = None
    title: Optional[str] = None
    sku: Optional[str] = None
    price_current: Optional[int] = None
    price_previous: Optional[int] = None
    stock_status: Optional[str] = None


@dataclass
class NormalizedProduct:
    """Product in the common shape produced by the record normalizer."""

    brand_id: uuid.UUID
    external_id: str
    name: str
    price: Decimal
    image_url: str
    product_url: str
    description: Optional[str] = None
    sale_price: Optional[Decimal] = None
    currency: str = "USD"
    additional_images: list[str] = field(default_factory=list)
    variants: list[ProductVariant] = field(default_factory=list)
    is_available: bool = True
    product_type: Optional[str] = None  # Classification hint from the source
    taxonomy_id: Optional[str] = None
    taxonomy_category_name: Optional[str] = None
    taxonomy_full_path: Optional[str] = None
    taxonomy_level: Optional[int] = None
    last_checked_at: Optional[datetime] = None


class BaseSourceAdapter(ABC):
    """Abstract base class for all product sources.

    Adapters share one httpx.AsyncClient, either injected (tests, the sync
    service) or created lazily and closed in cleanup().
    """

    source_kind: str = ""  # 'native', 'remote-scrape', 'brand-api', 'generic-html'

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.http_client = http_client
        self._owns_client = http_client is None
        self.remote_dataset_id: Optional[str] = None
        self.logger = structlog.get_logger(adapter=self.source_kind)

    @abstractmethod
    async def fetch_all(self, brand: Any, since_days: Optional[int] = None) -> list[RawRecord]:
        """Fetch every raw product record the source exposes for a brand.

        Args:
            brand: Brand row (slug, website_url, source_config)
            since_days: Only return products published within this many days

        Returns:
            List of raw records; an empty list is a valid empty catalog

        Raises:
            AdapterError: If the source cannot be read at all
            PreconditionError: If the brand is not configured for this source
        """

    def _client(self) -> httpx.AsyncClient:
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(
                timeout=settings.HTTP_TIMEOUT_SECONDS,
                follow_redirects=True,
                headers={"User-Agent": settings.USER_AGENT},
            )
            self._owns_client = True
        return self.http_client

    async def _get(self, url: str, **kwargs) -> httpx.Response:
        self.logger.debug("http_get", url=url)
        return await send_with_retry(self._client(), "GET", url, **kwargs)

    async def _get_json(self, url: str, headers: Optional[dict] = None, **kwargs) -> Any:
        headers = {"Accept": "application/json", **(headers or {})}
        response = await self._get(url, headers=headers, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise AdapterError(self.source_kind, f"Invalid JSON from {url}") from e

    async def _get_text(self, url: str, **kwargs) -> str:
        response = await self._get(url, **kwargs)
        return response.text

    @staticmethod
    async def _delay(seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def cleanup(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self.http_client is not None and self._owns_client:
            await self.http_client.aclose()
            self.http_client = None
