"""Tests for source adapters and the adapter factory."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest

from catalog_ingest.core.exceptions import AdapterError, PreconditionError
from catalog_ingest.scrapers.adapters import (
    BrandApiAdapter,
    GenericListingAdapter,
    NativeCatalogAdapter,
    RemoteScrapeAdapter,
)
from catalog_ingest.scrapers.adapters.generic_listing import parse_listing
from catalog_ingest.scrapers.adapters.native_catalog import extract_product_urls, to_catalog_record
from catalog_ingest.scrapers.factory import AdapterFactory
from catalog_ingest.scrapers.record_normalizer import RecordFormat, detect_format
from catalog_ingest.scrapers.remote_proxy import RemoteScrapeClient

from helpers import mock_client


def _brand(slug="acme", website_url="https://acme.example", **config):
    return SimpleNamespace(slug=slug, website_url=website_url, source_config=config)


def storefront_product(pid: int, days_old: int = 1, price: str = "89.00", compare_at: str = None) -> dict:
    published = datetime.now(timezone.utc) - timedelta(days=days_old)
    return {
        "id": pid,
        "title": f"Product {pid}",
        "handle": f"product-{pid}",
        "body_html": "<p>Nice</p>",
        "product_type": "Dresses",
        "published_at": published.isoformat(),
        "variants": [
            {"id": pid * 10, "title": "S", "sku": f"S-{pid}", "price": price,
             "compare_at_price": compare_at, "available": True},
        ],
        "images": [{"src": f"https://cdn.acme.example/{pid}.jpg"}],
    }


# ============================================================================
# NATIVE CATALOG
# ============================================================================

class TestNativeCatalogAdapter:
    async def test_paginates_until_short_page(self, monkeypatch, fast_settings):
        monkeypatch.setattr(fast_settings, "NATIVE_PAGE_SIZE", 3)
        pages = {1: [storefront_product(i) for i in (1, 2, 3)], 2: [storefront_product(4)]}
        seen_pages = []

        def handler(request):
            assert request.url.path == "/products.json"
            page = int(request.url.params["page"])
            seen_pages.append(page)
            return httpx.Response(200, json={"products": pages.get(page, [])})

        records = await NativeCatalogAdapter(mock_client(handler)).fetch_all(_brand())

        assert seen_pages == [1, 2]
        assert [r["source"]["id"] for r in records] == ["1", "2", "3", "4"]
        assert all(detect_format(r) is RecordFormat.NATIVE_CATALOG for r in records)

    async def test_falls_back_to_collection(self):
        def handler(request):
            if request.url.path == "/products.json":
                return httpx.Response(404)
            if request.url.path == "/collections/spring-drop/products.json":
                return httpx.Response(200, json={"products": [storefront_product(7)]})
            return httpx.Response(500)

        adapter = NativeCatalogAdapter(mock_client(handler))
        records = await adapter.fetch_all(_brand(new_arrivals_path="/collections/spring-drop"))

        assert [r["title"] for r in records] == ["Product 7"]

    async def test_falls_back_to_sitemap(self):
        sitemap = """<?xml version="1.0"?>
        <urlset>
          <url><loc>https://acme.example/products/product-8</loc></url>
          <url><loc>https://acme.example/pages/about</loc></url>
          <url><loc>https://acme.example/products/product-9</loc></url>
        </urlset>"""

        def handler(request):
            path = request.url.path
            if path in ("/products.json", "/collections/new-arrivals/products.json"):
                return httpx.Response(200, json={"products": []})
            if path == "/sitemap_products_1.xml":
                return httpx.Response(200, text=sitemap)
            if path == "/products/product-8.json":
                return httpx.Response(200, json={"product": storefront_product(8)})
            return httpx.Response(404)

        records = await NativeCatalogAdapter(mock_client(handler)).fetch_all(_brand())

        # product-9 detail fetch failed and was skipped
        assert [r["source"]["id"] for r in records] == ["8"]

    async def test_all_strategies_failing_raises(self):
        adapter = NativeCatalogAdapter(mock_client(lambda request: httpx.Response(403)))

        with pytest.raises(AdapterError):
            await adapter.fetch_all(_brand())

    async def test_empty_catalog_is_not_an_error(self):
        def handler(request):
            if request.url.path.endswith(".xml"):
                return httpx.Response(200, text="<urlset></urlset>")
            return httpx.Response(200, json={"products": []})

        assert await NativeCatalogAdapter(mock_client(handler)).fetch_all(_brand()) == []

    async def test_since_days_filters_old_products(self):
        products = [storefront_product(1, days_old=2), storefront_product(2, days_old=90)]
        adapter = NativeCatalogAdapter(mock_client(lambda request: httpx.Response(200, json={"products": products})))

        records = await adapter.fetch_all(_brand(), since_days=30)

        assert [r["source"]["id"] for r in records] == ["1"]

    async def test_transient_errors_are_retried(self):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            if calls["n"] == 1:
                return httpx.Response(503)
            return httpx.Response(200, json={"products": [storefront_product(1)]})

        records = await NativeCatalogAdapter(mock_client(handler)).fetch_all(_brand())

        assert len(records) == 1
        assert calls["n"] == 2

    def test_record_prices_are_minor_units(self):
        record = to_catalog_record(storefront_product(1, price="89.00", compare_at="120.00"), "https://acme.example")

        price = record["variants"][0]["price"]
        assert price == {"current": 8900, "previous": 12000, "stockStatus": "InStock"}
        assert record["source"]["canonicalUrl"] == "https://acme.example/products/product-1"

    def test_compare_at_below_price_is_dropped(self):
        record = to_catalog_record(storefront_product(1, price="89.00", compare_at="50.00"), "https://acme.example")
        assert record["variants"][0]["price"]["previous"] == 0

    def test_extract_product_urls(self):
        xml = "<urlset><url><loc>https://a.example/products/x</loc></url><url><loc>https://a.example/</loc></url></urlset>"
        assert extract_product_urls(xml) == ["https://a.example/products/x"]


# ============================================================================
# GENERIC LISTING
# ============================================================================

LISTING_HTML = """
<html><body>
  <div class="product-card" data-product-id="p-1">
    <a href="/products/linen-shirt?utm_source=ig"><h3 class="product-title">Linen Shirt</h3></a>
    <img src="//cdn.acme.example/linen.jpg">
    <span class="price">$45.00</span>
  </div>
  <div class="product-card">
    <a href="/products/mystery"></a>
  </div>
  <div class="product-card">
    <h3>Image Only Name</h3>
    <span class="price">$10</span>
  </div>
  <div class="product">
    <h2>Ignored because product-card matched first</h2>
  </div>
</body></html>
"""

JSON_LD_HTML = """
<html><head>
<script type="application/ld+json">
{"@context": "https://schema.org", "@graph": [
  {"@type": "Product", "name": "Wrap Dress", "sku": "WD-1", "url": "/products/wrap-dress",
   "image": "https://cdn.acme.example/wrap.jpg", "offers": {"price": "120.00", "priceCurrency": "USD"}},
  {"@type": "Organization", "name": "Acme"}
]}
</script>
<script type="application/ld+json">not json</script>
</head><body><p>No cards here</p></body></html>
"""


class TestGenericListingAdapter:
    def test_parses_cards_with_first_matching_selector(self):
        records = parse_listing(LISTING_HTML, "https://acme.example")

        assert len(records) == 2
        first = records[0]
        assert first["name"] == "Linen Shirt"
        assert first["sku"] == "p-1"
        assert first["url"] == "https://acme.example/products/linen-shirt"
        assert first["image"] == ["https://cdn.acme.example/linen.jpg"]
        assert str(first["offers"]["price"]) == "45.00"
        assert records[1]["name"] == "Image Only Name"

    def test_no_selector_match_returns_none(self):
        assert parse_listing("<html><p>empty</p></html>", "https://acme.example") is None

    async def test_json_ld_fallback(self):
        adapter = GenericListingAdapter(mock_client(lambda request: httpx.Response(200, text=JSON_LD_HTML)))

        records = await adapter.fetch_all(_brand(listing_path="/shop/new"))

        assert len(records) == 1
        assert records[0]["name"] == "Wrap Dress"
        assert records[0]["url"] == "https://acme.example/products/wrap-dress"

    async def test_uses_listing_path(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, text=LISTING_HTML)

        await GenericListingAdapter(mock_client(handler)).fetch_all(_brand(listing_path="/collections/latest"))

        assert seen == ["/collections/latest"]

    async def test_fetch_failure_raises_adapter_error(self):
        adapter = GenericListingAdapter(mock_client(lambda request: httpx.Response(404)))

        with pytest.raises(AdapterError):
            await adapter.fetch_all(_brand())


# ============================================================================
# BRAND API
# ============================================================================

class TestBrandApiAdapter:
    async def test_zara_client(self):
        payload = {
            "productGroups": [
                {"products": [
                    {"id": 1001, "name": "SATIN MIDI DRESS", "price": 5990,
                     "seo": {"keyword": "satin-midi-dress-p1001.html"},
                     "image": {"url": "https://static.zara.example/1.jpg"},
                     "familyName": "DRESSES"},
                ]},
            ]
        }
        seen = []

        def handler(request):
            seen.append(request.url)
            return httpx.Response(200, json=payload)

        records = await BrandApiAdapter(mock_client(handler)).fetch_all(_brand("zara", "https://www.zara.com"))

        assert seen[0].path == "/us/en/category/1180/products"
        assert seen[0].params["ajax"] == "true"
        assert records[0]["name"] == "SATIN MIDI DRESS"
        assert str(records[0]["offers"]["price"]) == "59.90"
        assert records[0]["sku"] == "satin-midi-dress-p1001.html"

    async def test_hm_client_sale_price(self):
        payload = {"products": [
            {"articleCode": "0991", "title": "Ribbed Tank Top", "link": "/en_us/productpage.0991.html",
             "price": {"value": 12.99, "currency": "USD"}, "redPrice": {"value": 8.99},
             "image": [{"url": "//image.hm.example/0991.jpg"}]},
        ]}
        adapter = BrandApiAdapter(mock_client(lambda request: httpx.Response(200, json=payload)))

        records = await adapter.fetch_all(_brand("h-m", "https://www2.hm.com"))

        offers = records[0]["offers"]
        assert offers["price"] == 12.99
        assert offers["salePrice"] == 8.99
        assert records[0]["url"] == "https://www2.hm.com/en_us/productpage.0991.html"

    async def test_api_name_overrides_slug(self):
        adapter = BrandApiAdapter(mock_client(lambda request: httpx.Response(200, json={"products": []})))
        assert await adapter.fetch_all(_brand("hm-us", api_name="hm")) == []

    async def test_unknown_brand_api_is_precondition_error(self):
        adapter = BrandApiAdapter(mock_client(lambda request: httpx.Response(200)))

        with pytest.raises(PreconditionError):
            await adapter.fetch_all(_brand("unknown-brand"))

    async def test_http_failure_is_adapter_error(self):
        adapter = BrandApiAdapter(mock_client(lambda request: httpx.Response(403)))

        with pytest.raises(AdapterError):
            await adapter.fetch_all(_brand("zara"))


# ============================================================================
# REMOTE SCRAPE
# ============================================================================

class TestRemoteScrapeAdapter:
    def _adapter(self, handler) -> RemoteScrapeAdapter:
        client = mock_client(handler)
        remote = RemoteScrapeClient(http_client=client, base_url="https://remote.example/v2", token="t")
        return RemoteScrapeAdapter(http_client=client, remote_client=remote)

    async def test_default_actor_with_start_urls(self):
        bodies = []

        def handler(request):
            path = request.url.path
            if request.method == "POST":
                bodies.append((path, request.read()))
                return httpx.Response(201, json={"data": {"id": "r1", "status": "SUCCEEDED", "defaultDatasetId": "d1"}})
            if path == "/v2/datasets/d1/items":
                return httpx.Response(200, json=[{"name": "Row", "offers": {"price": 1}}])
            return httpx.Response(404)

        adapter = self._adapter(handler)
        rows = await adapter.fetch_all(_brand(max_items=10))

        path, body = bodies[0]
        assert path == "/v2/acts/apify~e-commerce-scraping-tool/runs"
        assert b'"maxItems":10' in body.replace(b" ", b"")
        assert b"https://acme.example/shop/whats-new/" in body
        assert rows == [{"name": "Row", "offers": {"price": 1}}]
        assert adapter.remote_dataset_id == "d1"

    async def test_existing_run_is_imported(self):
        def handler(request):
            assert request.method == "GET"
            if request.url.path == "/v2/actor-runs/r9":
                return httpx.Response(200, json={"data": {"id": "r9", "status": "SUCCEEDED", "defaultDatasetId": "d9"}})
            return httpx.Response(200, json=[])

        adapter = self._adapter(handler)

        assert await adapter.fetch_all(_brand(run_id="r9")) == []
        assert adapter.remote_dataset_id == "d9"

    async def test_use_latest_run_requires_job_id(self):
        adapter = self._adapter(lambda request: httpx.Response(500))

        with pytest.raises(PreconditionError):
            await adapter.fetch_all(_brand(use_latest_run=True))

    async def test_unclean_run_without_rows_fails(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(201, json={"data": {"id": "r2", "status": "FAILED", "defaultDatasetId": "d2"}})
            return httpx.Response(200, json=[])

        with pytest.raises(AdapterError):
            await self._adapter(handler).fetch_all(_brand(job_id="user~task"))

    async def test_unclean_run_with_rows_is_imported(self):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(201, json={"data": {"id": "r3", "status": "ABORTED", "defaultDatasetId": "d3"}})
            return httpx.Response(200, json=[{"name": "Partial", "offers": {"price": 5}}])

        rows = await self._adapter(handler).fetch_all(_brand(job_id="user~task"))

        assert len(rows) == 1


# ============================================================================
# FACTORY
# ============================================================================

class TestAdapterFactory:
    def test_lookup_by_source_kind(self):
        factory = AdapterFactory()

        assert factory.adapter_class_for("native") is NativeCatalogAdapter
        assert factory.adapter_class_for("remote-scrape") is RemoteScrapeAdapter
        assert factory.adapter_class_for("brand-api") is BrandApiAdapter
        assert set(factory.get_registered_kinds()) == {"native", "remote-scrape", "brand-api", "generic-html"}

    def test_unconfigured_brand_gets_generic_listing(self):
        assert AdapterFactory().adapter_class_for(None) is GenericListingAdapter

    def test_unknown_kind_is_precondition_error(self):
        with pytest.raises(PreconditionError):
            AdapterFactory().adapter_class_for("carrier-pigeon")

    def test_register_rejects_non_adapters(self):
        with pytest.raises(ValueError):
            AdapterFactory().register_adapter("bogus", dict)
