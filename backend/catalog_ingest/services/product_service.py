"""Product dedup and upsert engine.

Resolves a normalized product to an existing catalog row or creates one,
keeping at most one row per (brand, product) across re-runs.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import structlog

from catalog_ingest.core.exceptions import StoreError, UniqueViolationError
from catalog_ingest.db.store import CatalogStore
from catalog_ingest.models import Product
from catalog_ingest.scrapers.base import NormalizedProduct
from catalog_ingest.scrapers.record_normalizer import product_values
from catalog_ingest.services.taxonomy import TaxonomyClassifier, ancestor_ids, get_classifier

logger = structlog.get_logger(__name__)

# Identity columns are never rewritten by an update
IDENTITY_FIELDS = ("brand_id", "external_id", "name")


@dataclass
class UpsertResult:
    created: bool
    product_id: UUID


class ProductService:
    """Sole writer of product rows and their category associations."""

    def __init__(self, store: CatalogStore):
        """Initialize product service.

        Args:
            store: Catalog store used for every read and write
        """
        self.store = store
        self.logger = logger.bind(service="product_service")

    async def resolve(self, product: NormalizedProduct) -> tuple[Optional[Product], Optional[str]]:
        """Find the existing row for a product.

        Returns:
            (row, match) where match is 'external_id', 'name' or None
        """
        existing = await self.store.find_by_brand_and_external_id(product.brand_id, product.external_id)
        if existing:
            return existing, "external_id"

        existing = await self.store.find_by_brand_and_name(product.brand_id, product.name)
        if existing:
            # Two distinct products sharing a name inside one brand would merge here
            self.logger.debug(
                "product_matched",
                match="name",
                product_id=str(existing.id),
                external_id=product.external_id,
                existing_external_id=existing.external_id,
            )
            return existing, "name"

        return None, None

    async def upsert(self, product: NormalizedProduct) -> UpsertResult:
        """Insert or update one product.

        1. look up by (brand_id, external_id), then by (brand_id, name)
        2. found: update mutable fields
        3. not found: insert; a unique conflict is resolved by name (then
           external id) and turned into an update

        Category associations are replaced on every call.

        Raises:
            StoreError: If the store fails, or a conflict cannot be resolved
        """
        values = product_values(product)
        existing, match = await self.resolve(product)

        if existing:
            await self._update(existing.id, values)
            result = UpsertResult(created=False, product_id=existing.id)
        else:
            result = await self._insert_or_recover(product, values)

        await self._replace_categories(result.product_id, product.taxonomy_id)

        self.logger.debug(
            "product_upserted",
            product_id=str(result.product_id),
            created=result.created,
            match=match,
            external_id=product.external_id,
        )
        return result

    async def _insert_or_recover(self, product: NormalizedProduct, values: dict) -> UpsertResult:
        try:
            row = await self.store.insert(values)
            return UpsertResult(created=True, product_id=row.id)
        except UniqueViolationError as conflict:
            self.logger.info(
                "insert_conflict",
                brand_id=str(product.brand_id),
                external_id=product.external_id,
            )
            existing = await self.store.find_by_brand_and_name(product.brand_id, product.name)
            if existing is None:
                existing = await self.store.find_by_brand_and_external_id(
                    product.brand_id, product.external_id
                )
            if existing is None:
                raise StoreError(
                    f"Conflict on {product.external_id!r} but no matching row was found"
                ) from conflict

            await self._update(existing.id, values)
            return UpsertResult(created=False, product_id=existing.id)

    async def _update(self, product_id: UUID, values: dict) -> None:
        mutable = {k: v for k, v in values.items() if k not in IDENTITY_FIELDS}
        await self.store.update(product_id, mutable)

    async def _replace_categories(self, product_id: UUID, taxonomy_id: Optional[str]) -> None:
        category_ids = await self.store.find_category_ids(ancestor_ids(taxonomy_id or ""))
        await self.store.replace_category_associations(product_id, category_ids)

    async def reclassify_all(
        self,
        classifier: Optional[TaxonomyClassifier] = None,
        brand_id: Optional[UUID] = None,
    ) -> dict[str, int]:
        """Re-run classification over stored products.

        Returns:
            Dict with 'checked', 'changed' and 'unclassified' counts
        """
        classifier = classifier or get_classifier()
        stats = {"checked": 0, "changed": 0, "unclassified": 0}

        for row in await self.store.list_products(brand_id):
            stats["checked"] += 1
            category = classifier.classify(row.name, None, row.description)
            taxonomy_id = category.id if category else None
            if category is None:
                stats["unclassified"] += 1
            if taxonomy_id == row.taxonomy_id:
                continue

            await self.store.update_classification(
                row.id,
                {
                    "taxonomy_id": taxonomy_id,
                    "taxonomy_category_name": category.name if category else None,
                    "taxonomy_full_path": category.full_path if category else None,
                    "taxonomy_level": category.level if category else None,
                    "last_checked_at": datetime.now(timezone.utc),
                },
            )
            await self._replace_categories(row.id, taxonomy_id)
            stats["changed"] += 1

        self.logger.info("reclassify_complete", **stats)
        return stats
