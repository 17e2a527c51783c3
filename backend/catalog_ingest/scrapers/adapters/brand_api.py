"""Adapters for brands that expose their own product listing APIs.

Each brand client knows one API and converts its payload into
structured-data records (``name`` + ``offers``). The client is picked by
``source_config.api_name``, falling back to the brand slug.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from catalog_ingest.core.exceptions import AdapterError, PreconditionError
from catalog_ingest.scrapers.base import BaseSourceAdapter, RawRecord
from catalog_ingest.scrapers.utils.normalizer import PriceNormalizer, absolute_url, clean_text


class BrandApiClient(ABC):
    """One brand-specific listing API."""

    name: str = ""

    def __init__(self, adapter: BaseSourceAdapter):
        self.adapter = adapter

    @abstractmethod
    async def fetch(self, brand: Any, config: dict) -> list[RawRecord]:
        ...


class ZaraApiClient(BrandApiClient):
    """Zara category products endpoint; prices are integer cents."""

    name = "zara"

    BASE_URL = "https://www.zara.com"
    DEFAULT_CATEGORY_ID = "1180"  # Women / New In
    DEFAULT_LOCALE = "us/en"

    async def fetch(self, brand: Any, config: dict) -> list[RawRecord]:
        category_id = config.get("category_id", self.DEFAULT_CATEGORY_ID)
        locale = config.get("locale", self.DEFAULT_LOCALE)
        url = f"{self.BASE_URL}/{locale}/category/{category_id}/products"
        data = await self.adapter._get_json(url, params={"ajax": "true"})

        records = []
        for group in (data or {}).get("productGroups") or []:
            for product in group.get("products") or []:
                records.append(self.to_record(product))
        return records

    def to_record(self, product: dict) -> RawRecord:
        seo = product.get("seo") or {}
        keyword = seo.get("keyword") or ""
        images = []
        if (product.get("image") or {}).get("url"):
            images.append(product["image"]["url"])
        images.extend(img.get("url") for img in product.get("images") or [] if img.get("url"))

        return {
            "name": product.get("name"),
            "sku": keyword or product.get("id"),
            "productID": product.get("id"),
            "description": product.get("description") or "",
            "offers": {
                "price": PriceNormalizer.from_minor_units(product.get("price")),
                "priceCurrency": "USD",
                "availability": "https://schema.org/InStock",
            },
            "image": images,
            "url": absolute_url(keyword, self.BASE_URL) if keyword else None,
            "category": product.get("familyName") or "",
        }


class HMApiClient(BrandApiClient):
    """H&M product listing endpoint; prices are decimals, redPrice is the sale price."""

    name = "hm"

    BASE_URL = "https://www2.hm.com"
    DEFAULT_LISTING_PATH = "/en_us/women/new-arrivals"

    async def fetch(self, brand: Any, config: dict) -> list[RawRecord]:
        listing = config.get("listing_path", self.DEFAULT_LISTING_PATH).rstrip("/")
        url = f"{self.BASE_URL}{listing}/_jcr_content/main/productlisting.display.json"
        data = await self.adapter._get_json(
            url,
            params={"page": 0, "page-size": config.get("max_items", 100)},
            headers={"Referer": f"{self.BASE_URL}{listing}.html"},
        )
        return [self.to_record(p) for p in (data or {}).get("products") or []]

    def to_record(self, product: dict) -> RawRecord:
        price = product.get("price")
        red_price = product.get("redPrice") or {}
        code = product.get("articleCode") or product.get("code")
        images = [img.get("url") for img in product.get("image") or [] if isinstance(img, dict)]
        if not images and product.get("imageUrl"):
            images = [product["imageUrl"]]

        return {
            "name": product.get("title") or product.get("name"),
            "sku": code,
            "description": product.get("description") or "",
            "offers": {
                "price": price.get("value") if isinstance(price, dict) else price,
                "salePrice": red_price.get("value"),
                "priceCurrency": (price.get("currency") if isinstance(price, dict) else None) or "USD",
                "availability": "https://schema.org/PreOrder" if product.get("comingSoon") else "https://schema.org/InStock",
            },
            "image": [absolute_url(i, self.BASE_URL) for i in images if i],
            "url": absolute_url(product.get("link") or product.get("url"), self.BASE_URL),
            "category": clean_text(product.get("categoryName")),
        }


BRAND_API_CLIENTS: dict[str, type[BrandApiClient]] = {
    ZaraApiClient.name: ZaraApiClient,
    HMApiClient.name: HMApiClient,
    "h-m": HMApiClient,
}


class BrandApiAdapter(BaseSourceAdapter):
    """Dispatches to the brand's own API client."""

    source_kind = "brand-api"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None, clients: Optional[dict] = None):
        super().__init__(http_client)
        self.clients = BRAND_API_CLIENTS if clients is None else clients

    async def fetch_all(self, brand: Any, since_days: Optional[int] = None) -> list[RawRecord]:
        config = brand.source_config or {}
        api_name = (config.get("api_name") or brand.slug).lower()
        client_class = self.clients.get(api_name)
        if client_class is None:
            raise PreconditionError(f"No brand API client registered for '{api_name}'")

        try:
            records = await client_class(self).fetch(brand, config)
        except httpx.HTTPError as e:
            self.logger.error("brand_api_fetch_failed", brand=brand.slug, api=api_name, error=str(e))
            raise AdapterError(api_name, str(e)) from e

        self.logger.info("brand_api_fetched", brand=brand.slug, api=api_name, count=len(records))
        return records
