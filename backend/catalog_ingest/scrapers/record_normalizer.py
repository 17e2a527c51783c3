"""Format detection and normalization of raw source records.

Adapters emit one of two record shapes:

- native catalog: ``title`` plus a ``variants`` list whose prices are
  integer minor units (``variants[].price.current/previous/stockStatus``,
  ``medias[].url``, ``source.{id,canonicalUrl,currency}``)
- structured data: schema.org style ``name`` plus ``offers``

Anything else is rejected per record.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlparse

import structlog

from catalog_ingest.core.exceptions import MissingFieldError, UnrecognizedFormatError
from catalog_ingest.scrapers.base import NormalizedProduct, ProductVariant, RawRecord
from catalog_ingest.scrapers.utils.normalizer import PriceNormalizer, absolute_url, clean_text, slugify

logger = structlog.get_logger(__name__)

IN_STOCK = "InStock"
OUT_OF_STOCK = "OutOfStock"
MIN_NAME_LENGTH = 2


class RecordFormat(str, Enum):
    NATIVE_CATALOG = "native-catalog"
    STRUCTURED_DATA = "structured-data"
    UNKNOWN = "unknown"


def detect_format(raw: Any) -> RecordFormat:
    """Classify a raw record by its shape."""
    if not isinstance(raw, dict):
        return RecordFormat.UNKNOWN
    if raw.get("title") and isinstance(raw.get("variants"), list):
        return RecordFormat.NATIVE_CATALOG
    if raw.get("name") and raw.get("offers"):
        return RecordFormat.STRUCTURED_DATA
    return RecordFormat.UNKNOWN


def synthesize_external_id(raw: RawRecord) -> str:
    """Derive a stable identifier for a structured-data record.

    Priority: SKU-like fields, then the last two path segments of the
    product URL, then a slug of the product name.
    """
    props = _as_dict(raw.get("additionalProperties"))
    for candidate in (raw.get("mpn"), props.get("sku"), raw.get("sku"), raw.get("productID")):
        if candidate not in (None, ""):
            return str(candidate)

    url = raw.get("url") or raw.get("productUrl")
    url = url if isinstance(url, str) else ""
    if url:
        path = urlparse(url.split("?")[0]).path if "://" in url else url.split("?")[0]
        segments = [s for s in path.split("/") if s]
        if segments:
            return "-".join(segments[-2:])

    return f"name-{slugify(str(raw.get('name') or ''))}"


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _image_url(item: Any) -> Optional[str]:
    if isinstance(item, dict):
        return item.get("url") or item.get("src") or item.get("contentUrl")
    if isinstance(item, str):
        return item
    return None


def split_images(items: Any, base_url: Optional[str] = None) -> tuple[Optional[str], list[str]]:
    """Return (primary, additional) keeping source order; the primary is never repeated."""
    urls = []
    for item in _as_list(items):
        url = absolute_url(_image_url(item), base_url)
        if url and url not in urls:
            urls.append(url)
    if not urls:
        return None, []
    return urls[0], urls[1:]


class ProductNormalizer:
    """Maps raw records onto NormalizedProduct."""

    def normalize(
        self,
        raw: RawRecord,
        brand_id: uuid.UUID,
        base_url: Optional[str] = None,
    ) -> NormalizedProduct:
        """Normalize one raw record.

        Raises:
            UnrecognizedFormatError: If the record shape is unknown
            MissingFieldError: If name, price, image or product URL is missing
        """
        record_format = detect_format(raw)
        if record_format is RecordFormat.NATIVE_CATALOG:
            product = self._from_native_catalog(raw, brand_id, base_url)
        elif record_format is RecordFormat.STRUCTURED_DATA:
            product = self._from_structured_data(raw, brand_id, base_url)
        else:
            preview = str(raw)[:200]
            raise UnrecognizedFormatError(f"Unknown product format: {preview}")

        self.validate(product)
        return product

    @staticmethod
    def validate(product: NormalizedProduct) -> None:
        missing = []
        if len(product.name or "") < MIN_NAME_LENGTH:
            missing.append("name")
        if product.price is None or product.price <= 0:
            missing.append("price")
        if not product.image_url:
            missing.append("image_url")
        if not product.product_url:
            missing.append("product_url")
        if not product.external_id:
            missing.append("external_id")
        if missing:
            raise MissingFieldError(missing, product.name or "")

    def _from_native_catalog(
        self, raw: RawRecord, brand_id: uuid.UUID, base_url: Optional[str]
    ) -> NormalizedProduct:
        source = _as_dict(raw.get("source"))
        raw_variants = [v for v in raw.get("variants") or [] if isinstance(v, dict)]

        variants = []
        for v in raw_variants:
            price = _as_dict(v.get("price"))
            variants.append(
                ProductVariant(
                    id=str(v["id"]) if v.get("id") is not None else None,
                    title=v.get("title"),
                    sku=v.get("sku") or "",
                    price_current=_minor(price.get("current")),
                    price_previous=_minor(price.get("previous")),
                    stock_status=price.get("stockStatus") or OUT_OF_STOCK,
                )
            )

        first = variants[0] if variants else None
        current = first.price_current if first and first.price_current else 0
        previous = first.price_previous if first and first.price_previous else 0

        image_url, additional = split_images(raw.get("medias"), base_url)
        external_id = source.get("id") or raw.get("id")

        return NormalizedProduct(
            brand_id=brand_id,
            external_id=str(external_id) if external_id is not None else "",
            name=clean_text(raw.get("title")),
            description=clean_text(raw.get("description")) or None,
            price=PriceNormalizer.from_minor_units(current),
            sale_price=PriceNormalizer.from_minor_units(previous) if previous > 0 else None,
            currency=source.get("currency") or "USD",
            image_url=image_url or "",
            additional_images=additional,
            product_url=absolute_url(source.get("canonicalUrl") or raw.get("url"), base_url) or "",
            variants=variants,
            is_available=any(v.stock_status == IN_STOCK for v in variants),
            product_type=raw.get("productType") or raw.get("type") or None,
            last_checked_at=datetime.now(timezone.utc),
        )

    def _from_structured_data(
        self, raw: RawRecord, brand_id: uuid.UUID, base_url: Optional[str]
    ) -> NormalizedProduct:
        offers = raw.get("offers")
        if isinstance(offers, list):
            offers = offers[0] if offers else {}
        if not isinstance(offers, dict):
            offers = {}
        props = _as_dict(raw.get("additionalProperties"))

        images = _as_list(raw.get("image") or raw.get("imageUrl")) + _as_list(props.get("images"))
        image_url, additional = split_images(images, base_url)

        sale = offers.get("salePrice")
        availability = str(offers.get("availability") or "")

        variants = []
        for v in props.get("variants") or []:
            if not isinstance(v, dict):
                continue
            price = _as_dict(v.get("price"))
            variants.append(
                ProductVariant(
                    id=str(v["id"]) if v.get("id") is not None else None,
                    title=v.get("title"),
                    sku=v.get("sku") or "",
                    price_current=_minor(price.get("current")),
                    price_previous=_minor(price.get("previous")),
                    stock_status=price.get("stockStatus"),
                )
            )

        return NormalizedProduct(
            brand_id=brand_id,
            external_id=synthesize_external_id(raw),
            name=clean_text(raw.get("name")),
            description=clean_text(raw.get("description")) or None,
            price=PriceNormalizer.clean_price_string(offers.get("price") or raw.get("price")),
            sale_price=PriceNormalizer.clean_price_string(sale) if sale else None,
            currency=offers.get("priceCurrency") or "USD",
            image_url=image_url or "",
            additional_images=additional,
            product_url=absolute_url(raw.get("url") or raw.get("productUrl"), base_url) or "",
            variants=variants,
            is_available=OUT_OF_STOCK not in availability,
            product_type=raw.get("category") or raw.get("productType") or None,
            last_checked_at=datetime.now(timezone.utc),
        )


def _minor(value: Any) -> Optional[int]:
    amount = PriceNormalizer.clean_price_string(value)
    return int(amount) if amount is not None else None


def product_values(product: NormalizedProduct) -> dict[str, Any]:
    """Column values for the product row, JSON-ready."""
    return {
        "brand_id": product.brand_id,
        "external_id": product.external_id,
        "name": product.name,
        "description": product.description,
        "price": product.price,
        "sale_price": product.sale_price,
        "currency": product.currency,
        "image_url": product.image_url,
        "additional_images": list(product.additional_images),
        "product_url": product.product_url,
        "variants": [
            {
                "id": v.id,
                "title": v.title,
                "sku": v.sku,
                "price": {
                    "current": v.price_current,
                    "previous": v.price_previous,
                    "stockStatus": v.stock_status,
                },
            }
            for v in product.variants
        ],
        "is_available": product.is_available,
        "taxonomy_id": product.taxonomy_id,
        "taxonomy_category_name": product.taxonomy_category_name,
        "taxonomy_full_path": product.taxonomy_full_path,
        "taxonomy_level": product.taxonomy_level,
        "last_checked_at": product.last_checked_at,
    }


__all__ = [
    "RecordFormat",
    "ProductNormalizer",
    "detect_format",
    "product_values",
    "split_images",
    "synthesize_external_id",
]
