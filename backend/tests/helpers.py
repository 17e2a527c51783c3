"""Record builders and fakes shared by the test modules."""

from typing import Any, Callable, Optional

import httpx

from catalog_ingest.scrapers.base import BaseSourceAdapter, RawRecord


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def native_record(
    external_id: Any,
    title: str,
    current: int = 8900,
    previous: int = 0,
    handle: Optional[str] = None,
    stock_status: str = "InStock",
    product_type: str = "",
) -> RawRecord:
    """Native catalog record with one variant."""
    handle = handle or f"product-{external_id}"
    return {
        "id": external_id,
        "title": title,
        "description": "",
        "productType": product_type,
        "variants": [
            {
                "id": f"{external_id}-v1",
                "title": "Default",
                "sku": f"SKU-{external_id}",
                "price": {"current": current, "previous": previous, "stockStatus": stock_status},
            }
        ],
        "medias": [{"url": f"https://cdn.acme.example/{handle}.jpg"}],
        "source": {
            "id": str(external_id),
            "canonicalUrl": f"https://acme.example/products/{handle}",
            "currency": "USD",
        },
    }


def structured_record(name: str, price: Any = "49.00", url: Optional[str] = None, **extra) -> RawRecord:
    """Schema.org style record."""
    record = {
        "name": name,
        "offers": {"price": price, "priceCurrency": "USD"},
        "image": ["https://cdn.acme.example/a.jpg"],
        "url": url or f"https://acme.example/shop/{name.lower().replace(' ', '-')}",
    }
    record.update(extra)
    return record


def static_adapter(records: list[RawRecord], kind: str = "static", error: Optional[Exception] = None):
    """Build an adapter class returning fixed records (or raising error)."""

    class StaticAdapter(BaseSourceAdapter):
        source_kind = kind

        async def fetch_all(self, brand, since_days=None):
            self.last_since_days = since_days
            if error is not None:
                raise error
            return list(records)

    return StaticAdapter
