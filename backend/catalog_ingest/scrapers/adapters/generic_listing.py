"""Last-resort adapter that scrapes a rendered listing page."""

import json
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup, Tag

from catalog_ingest.core.exceptions import AdapterError
from catalog_ingest.scrapers.base import BaseSourceAdapter, RawRecord
from catalog_ingest.scrapers.utils.normalizer import PriceNormalizer, absolute_url, clean_text, normalize_url

DEFAULT_LISTING_PATH = "/new-arrivals"

# Tried in order; the first selector with any match is used alone
CARD_SELECTORS = (
    ".product-item",
    ".product-card",
    ".product",
    "[data-product-id]",
    ".grid-item",
)
TITLE_SELECTOR = ".product-title, .product-name, h2, h3, [data-product-title]"
PRICE_SELECTOR = ".price, .product-price, [data-price]"


class GenericListingAdapter(BaseSourceAdapter):
    """Extracts product cards from one HTML listing page."""

    source_kind = "generic-html"

    async def fetch_all(self, brand: Any, since_days: Optional[int] = None) -> list[RawRecord]:
        config = brand.source_config or {}
        path = config.get("listing_path") or config.get("new_arrivals_path") or DEFAULT_LISTING_PATH
        base_url = brand.website_url.rstrip("/")
        url = absolute_url(path, base_url)

        try:
            html = await self._get_text(url)
        except httpx.HTTPError as e:
            self.logger.error("listing_fetch_failed", brand=brand.slug, url=url, error=str(e))
            raise AdapterError(self.source_kind, f"{url}: {e}") from e

        records = parse_listing(html, base_url)
        if records is None:
            records = parse_json_ld(html, base_url)
            self.logger.info("listing_json_ld_fallback", brand=brand.slug, count=len(records))
        else:
            self.logger.info("listing_parsed", brand=brand.slug, count=len(records))
        return records


def parse_listing(html: str, base_url: str) -> Optional[list[RawRecord]]:
    """Parse product cards; None when no selector matches at all."""
    soup = BeautifulSoup(html, "html.parser")

    for selector in CARD_SELECTORS:
        cards = soup.select(selector)
        if not cards:
            continue
        records = []
        for card in cards:
            record = card_to_record(card, base_url)
            if record is not None:
                records.append(record)
        return records

    return None


def _card_id(card: Tag) -> Optional[str]:
    value = card.get("data-product-id") or card.get("data-id")
    if not value:
        inner = card.select_one("[data-product-id]")
        value = inner.get("data-product-id") if inner else None
    return value or None


def card_to_record(card: Tag, base_url: str) -> Optional[RawRecord]:
    """Map one product card to a structured-data record.

    Cards with neither a name nor an image are skipped.
    """
    title_el = card.select_one(TITLE_SELECTOR)
    name = clean_text(title_el.get_text()) if title_el else ""

    img = card.find("img")
    image = None
    if img is not None:
        image = img.get("src") or img.get("data-src") or img.get("data-srcset", "").split(" ")[0] or None

    if not name and not image:
        return None

    price_el = card.select_one(PRICE_SELECTOR)
    price_text = None
    if price_el is not None:
        price_text = price_el.get("data-price") or price_el.get_text()

    link = card if card.name == "a" else card.find("a", href=True)
    href = link.get("href") if link is not None else None
    url = normalize_url(absolute_url(href, base_url)) if href else None

    product_id = _card_id(card)
    return {
        "name": name,
        "sku": product_id,
        "offers": {
            "price": PriceNormalizer.clean_price_string(price_text),
            "priceCurrency": "USD",
        },
        "image": [absolute_url(image, base_url)] if image else [],
        "url": url,
    }


def parse_json_ld(html: str, base_url: str) -> list[RawRecord]:
    """Collect schema.org Product objects from JSON-LD script blocks."""
    soup = BeautifulSoup(html, "html.parser")
    records = []

    for script in soup.find_all("script", type="application/ld+json"):
        try:
            payload = json.loads(script.string or "")
        except ValueError:
            continue
        for node in _walk_json_ld(payload):
            if node.get("name") and node.get("offers"):
                record = dict(node)
                if record.get("url"):
                    record["url"] = absolute_url(record["url"], base_url)
                records.append(record)

    return records


def _walk_json_ld(payload: Any):
    if isinstance(payload, list):
        for item in payload:
            yield from _walk_json_ld(item)
    elif isinstance(payload, dict):
        node_type = payload.get("@type")
        types = node_type if isinstance(node_type, list) else [node_type]
        if "Product" in types:
            yield payload
        for key in ("@graph", "itemListElement", "item"):
            if key in payload:
                yield from _walk_json_ld(payload[key])
