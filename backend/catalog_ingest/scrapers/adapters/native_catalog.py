"""Native storefront adapter for Shopify-style catalogs.

Tries three public endpoints in order:

1. ``/products.json?limit=N&page=P`` (bulk, paginated)
2. ``/collections/{handle}/products.json`` (named collection)
3. ``/sitemap_products_1.xml`` plus one ``{product_url}.json`` per entry

A strategy that errors or finds nothing falls through to the next one.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup

from catalog_ingest.config import settings
from catalog_ingest.core.exceptions import AdapterError
from catalog_ingest.scrapers.base import BaseSourceAdapter, RawRecord
from catalog_ingest.scrapers.utils.normalizer import PriceNormalizer, absolute_url

DEFAULT_COLLECTION_PATH = "/collections/new-arrivals"


class NativeCatalogAdapter(BaseSourceAdapter):
    """Reads a brand's own storefront catalog JSON."""

    source_kind = "native"

    async def fetch_all(self, brand: Any, since_days: Optional[int] = None) -> list[RawRecord]:
        base_url = brand.website_url.rstrip("/")
        config = brand.source_config or {}
        currency = config.get("currency", "USD")

        strategies = [
            ("products_api", lambda: self._fetch_products_api(base_url)),
            (
                "collection_api",
                lambda: self._fetch_collection(base_url, config.get("new_arrivals_path") or DEFAULT_COLLECTION_PATH),
            ),
            ("sitemap", lambda: self._fetch_sitemap(base_url)),
        ]

        errors = []
        products: list[dict] = []
        for name, strategy in strategies:
            try:
                products = await strategy()
            except (httpx.HTTPError, AdapterError, ValueError) as e:
                self.logger.warning("native_strategy_failed", brand=brand.slug, strategy=name, error=str(e))
                errors.append(f"{name}: {e}")
                continue
            if products:
                self.logger.info("native_strategy_succeeded", brand=brand.slug, strategy=name, count=len(products))
                break
            self.logger.info("native_strategy_empty", brand=brand.slug, strategy=name)

        if not products and len(errors) == len(strategies):
            raise AdapterError(self.source_kind, "; ".join(errors))

        if since_days is not None:
            before = len(products)
            products = filter_recent(products, since_days)
            self.logger.info("native_recent_filter", brand=brand.slug, days=since_days, kept=len(products), dropped=before - len(products))

        return [to_catalog_record(p, base_url, currency) for p in products]

    async def _fetch_products_api(self, base_url: str) -> list[dict]:
        page_size = settings.NATIVE_PAGE_SIZE
        products: list[dict] = []

        for page in range(1, settings.NATIVE_MAX_PAGES + 1):
            if page > 1:
                await self._delay(settings.PAGE_DELAY_SECONDS)
            data = await self._get_json(f"{base_url}/products.json", params={"limit": page_size, "page": page})
            batch = (data.get("products") or []) if isinstance(data, dict) else []
            self.logger.debug("native_page_fetched", page=page, count=len(batch))
            products.extend(batch)
            if len(batch) < page_size:
                break

        return products

    async def _fetch_collection(self, base_url: str, collection_path: str) -> list[dict]:
        handle = [part for part in collection_path.split("/") if part][-1]
        data = await self._get_json(
            f"{base_url}/collections/{handle}/products.json",
            params={"limit": settings.NATIVE_PAGE_SIZE},
        )
        return (data.get("products") or []) if isinstance(data, dict) else []

    async def _fetch_sitemap(self, base_url: str) -> list[dict]:
        xml = await self._get_text(f"{base_url}/sitemap_products_1.xml")
        urls = extract_product_urls(xml)[: settings.NATIVE_SITEMAP_MAX_PRODUCTS]

        products = []
        for index, url in enumerate(urls):
            if index:
                await self._delay(settings.SITEMAP_REQUEST_DELAY_SECONDS)
            json_url = re.sub(r"\.html?$", "", url) + ".json"
            try:
                data = await self._get_json(json_url)
            except (httpx.HTTPError, AdapterError) as e:
                self.logger.warning("native_product_fetch_failed", url=json_url, error=str(e))
                continue
            if isinstance(data, dict) and data.get("product"):
                products.append(data["product"])

        return products


def extract_product_urls(xml: str) -> list[str]:
    """Product URLs listed in a storefront sitemap."""
    soup = BeautifulSoup(xml, "html.parser")
    urls = [loc.get_text(strip=True) for loc in soup.find_all("loc")]
    return [u for u in urls if "/products/" in u]


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def filter_recent(products: list[dict], since_days: int) -> list[dict]:
    """Keep products published (or created) within the last since_days days."""
    cutoff = datetime.now(timezone.utc) - timedelta(days=since_days)
    recent = []
    for product in products:
        published = _parse_timestamp(product.get("published_at") or product.get("created_at"))
        if published and published >= cutoff:
            recent.append(product)
    return recent


def to_catalog_record(product: dict, base_url: str, currency: str = "USD") -> RawRecord:
    """Convert a storefront product into the native catalog record shape.

    Storefront prices are decimal strings; catalog records carry integer
    minor units. compare_at_price becomes the previous price only when it
    is above the selling price.
    """
    variants = []
    for v in product.get("variants") or []:
        current = PriceNormalizer.to_minor_units(v.get("price")) or 0
        compare_at = PriceNormalizer.to_minor_units(v.get("compare_at_price")) or 0
        variants.append({
            "id": v.get("id"),
            "title": v.get("title"),
            "sku": v.get("sku") or "",
            "options": [o for o in (v.get("option1"), v.get("option2"), v.get("option3")) if o],
            "price": {
                "current": current,
                "previous": compare_at if compare_at > current else 0,
                "stockStatus": "InStock" if v.get("available", True) else "OutOfStock",
            },
        })

    handle = product.get("handle")
    product_url = f"{base_url}/products/{handle}" if handle else None

    return {
        "id": product.get("id"),
        "title": product.get("title"),
        "description": product.get("body_html") or "",
        "productType": product.get("product_type") or "",
        "vendor": product.get("vendor") or "",
        "tags": product.get("tags") or [],
        "variants": variants,
        "medias": [
            {"url": absolute_url(img.get("src"), base_url)}
            for img in product.get("images") or []
            if isinstance(img, dict) and img.get("src")
        ],
        "source": {
            "id": str(product["id"]) if product.get("id") is not None else None,
            "canonicalUrl": product_url,
            "currency": currency,
        },
        "published_at": product.get("published_at"),
        "created_at": product.get("created_at"),
    }
