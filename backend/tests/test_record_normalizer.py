"""Tests for raw record format detection and normalization."""

import uuid
from decimal import Decimal

import pytest

from catalog_ingest.core.exceptions import MissingFieldError, UnrecognizedFormatError
from catalog_ingest.scrapers.record_normalizer import (
    ProductNormalizer,
    RecordFormat,
    detect_format,
    product_values,
    split_images,
    synthesize_external_id,
)
from catalog_ingest.scrapers.utils.normalizer import PriceNormalizer, normalize_url

from helpers import native_record, structured_record

BRAND_ID = uuid.uuid4()


@pytest.fixture
def normalizer() -> ProductNormalizer:
    return ProductNormalizer()


class TestDetectFormat:
    def test_native_catalog(self):
        assert detect_format(native_record(1, "Tee")) is RecordFormat.NATIVE_CATALOG

    def test_structured_data(self):
        assert detect_format(structured_record("Tee")) is RecordFormat.STRUCTURED_DATA

    def test_unknown(self):
        assert detect_format({"foo": "bar"}) is RecordFormat.UNKNOWN
        assert detect_format({"title": "No variants"}) is RecordFormat.UNKNOWN
        assert detect_format(["not", "a", "dict"]) is RecordFormat.UNKNOWN


class TestNativeCatalog:
    def test_prices_are_minor_units(self, normalizer):
        product = normalizer.normalize(native_record(42, "Silk Dress", current=8900, previous=12000), BRAND_ID)

        assert product.price == Decimal("89.00")
        assert product.sale_price == Decimal("120.00")
        assert product.external_id == "42"
        assert product.brand_id == BRAND_ID
        assert product.currency == "USD"

    def test_no_previous_price_means_no_sale_price(self, normalizer):
        product = normalizer.normalize(native_record(1, "Tee", current=2500), BRAND_ID)

        assert product.price == Decimal("25.00")
        assert product.sale_price is None

    def test_variants_and_availability(self, normalizer):
        raw = native_record(7, "Knit Sweater", stock_status="OutOfStock")

        product = normalizer.normalize(raw, BRAND_ID)

        assert product.is_available is False
        assert len(product.variants) == 1
        assert product.variants[0].price_current == 8900
        assert product.variants[0].sku == "SKU-7"

    def test_images_split_primary_and_additional(self, normalizer):
        raw = native_record(3, "Tote Bag", handle="tote")
        raw["medias"].append({"url": "https://cdn.acme.example/tote-back.jpg"})
        raw["medias"].append({"url": "https://cdn.acme.example/tote.jpg"})

        product = normalizer.normalize(raw, BRAND_ID)

        assert product.image_url == "https://cdn.acme.example/tote.jpg"
        assert product.additional_images == ["https://cdn.acme.example/tote-back.jpg"]

    def test_product_url_from_canonical(self, normalizer):
        product = normalizer.normalize(native_record(9, "Belt", handle="belt"), BRAND_ID)
        assert product.product_url == "https://acme.example/products/belt"

    def test_zero_price_is_rejected(self, normalizer):
        with pytest.raises(MissingFieldError) as exc_info:
            normalizer.normalize(native_record(5, "Free Thing", current=0), BRAND_ID)
        assert "price" in exc_info.value.fields

    def test_missing_image_is_rejected(self, normalizer):
        raw = native_record(5, "No Image")
        raw["medias"] = []

        with pytest.raises(MissingFieldError) as exc_info:
            normalizer.normalize(raw, BRAND_ID)
        assert exc_info.value.fields == ["image_url"]

    def test_one_character_name_is_rejected(self, normalizer):
        with pytest.raises(MissingFieldError) as exc_info:
            normalizer.normalize(native_record(5, "X"), BRAND_ID)
        assert exc_info.value.fields == ["name"]

    def test_scalar_variant_price_is_a_missing_price(self, normalizer):
        raw = native_record(6, "Mini Dress")
        raw["variants"][0]["price"] = "89.00"
        raw["source"] = "shopify"

        with pytest.raises(MissingFieldError) as exc_info:
            normalizer.normalize(raw, BRAND_ID)

        assert "price" in exc_info.value.fields
        assert "product_url" in exc_info.value.fields


class TestStructuredData:
    def test_basic_fields(self, normalizer):
        raw = structured_record("Wide Leg Trouser", price="$59.50", sku="WLT-1", description="<p>Soft &amp; light</p>")

        product = normalizer.normalize(raw, BRAND_ID)

        assert product.name == "Wide Leg Trouser"
        assert product.price == Decimal("59.50")
        assert product.external_id == "WLT-1"
        assert product.description == "Soft & light"
        assert product.is_available is True

    def test_offers_list_and_sale_price(self, normalizer):
        raw = structured_record("Coat")
        raw["offers"] = [{"price": "200", "salePrice": "150", "priceCurrency": "EUR"}]

        product = normalizer.normalize(raw, BRAND_ID)

        assert product.price == Decimal("200")
        assert product.sale_price == Decimal("150")
        assert product.currency == "EUR"

    def test_out_of_stock_availability(self, normalizer):
        raw = structured_record("Scarf")
        raw["offers"]["availability"] = "https://schema.org/OutOfStock"

        assert normalizer.normalize(raw, BRAND_ID).is_available is False

    def test_relative_urls_resolved_against_brand(self, normalizer):
        raw = structured_record("Cap", url="/products/cap")
        raw["image"] = ["/img/cap.jpg"]

        product = normalizer.normalize(raw, BRAND_ID, base_url="https://acme.example")

        assert product.product_url == "https://acme.example/products/cap"
        assert product.image_url == "https://acme.example/img/cap.jpg"

    def test_category_becomes_type_hint(self, normalizer):
        raw = structured_record("The Weekender", category="Jackets")
        assert normalizer.normalize(raw, BRAND_ID).product_type == "Jackets"

    def test_missing_fields_are_listed(self, normalizer):
        raw = {"name": "Ghost", "offers": {"price": None}}

        with pytest.raises(MissingFieldError) as exc_info:
            normalizer.normalize(raw, BRAND_ID)

        assert exc_info.value.fields == ["price", "image_url", "product_url"]


class TestUnknownFormat:
    def test_unrecognized_record_raises(self, normalizer):
        with pytest.raises(UnrecognizedFormatError):
            normalizer.normalize({"headline": "not a product"}, BRAND_ID)


class TestSynthesizeExternalId:
    def test_sku_like_fields_have_priority(self):
        raw = {"name": "x", "mpn": "MPN-1", "sku": "SKU-1", "additionalProperties": {"sku": "PROP-1"}}
        assert synthesize_external_id(raw) == "MPN-1"

        raw.pop("mpn")
        assert synthesize_external_id(raw) == "PROP-1"

        raw.pop("additionalProperties")
        assert synthesize_external_id(raw) == "SKU-1"

    def test_url_segments(self):
        raw = {"name": "x", "url": "https://brand.example/shop/abc/xyz?ref=1"}
        assert synthesize_external_id(raw) == "abc-xyz"

    def test_url_id_is_stable_across_query_strings(self):
        first = synthesize_external_id({"url": "https://brand.example/shop/abc/xyz?ref=1"})
        second = synthesize_external_id({"url": "https://brand.example/shop/abc/xyz?utm_source=mail"})
        assert first == second

    def test_non_dict_properties_are_ignored(self):
        raw = {"name": "x", "additionalProperties": "n/a", "url": {"href": "/a"}}
        assert synthesize_external_id(raw) == "name-x"

    def test_name_slug_fallback(self):
        assert synthesize_external_id({"name": "Silk Cami"}) == "name-silk-cami"


class TestHelpers:
    def test_minor_unit_conversion(self):
        assert PriceNormalizer.from_minor_units(8900) == Decimal("89.00")
        assert PriceNormalizer.from_minor_units(12000) == Decimal("120.00")
        assert PriceNormalizer.to_minor_units("89.00") == 8900

    def test_clean_price_string(self):
        assert PriceNormalizer.clean_price_string("$1,234.50 USD") == Decimal("1234.50")
        assert PriceNormalizer.clean_price_string("free") is None

    def test_split_images_dedupes(self):
        primary, extra = split_images(["a.jpg", {"url": "b.jpg"}, "a.jpg"], "https://x.example/")
        assert primary == "https://x.example/a.jpg"
        assert extra == ["https://x.example/b.jpg"]

    def test_normalize_url_strips_tracking(self):
        url = normalize_url("https://acme.example/p/1?utm_source=mail&color=red")
        assert url == "https://acme.example/p/1?color=red"

    def test_product_values_are_json_ready(self, normalizer):
        product = normalizer.normalize(native_record(1, "Tee"), BRAND_ID)

        values = product_values(product)

        assert values["variants"][0]["price"] == {"current": 8900, "previous": 0, "stockStatus": "InStock"}
        assert values["additional_images"] == []
