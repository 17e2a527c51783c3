"""Catalog store interface and its SQLAlchemy implementation.

The pipeline talks to persistence only through CatalogStore. Every method
of SqlCatalogStore opens its own session and commits before returning, so
each upsert step is an independent transaction.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from catalog_ingest.core.exceptions import StoreError, UniqueViolationError
from catalog_ingest.models import Brand, Category, Product, ProductCategory, ScrapeRun

logger = structlog.get_logger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(exc: IntegrityError) -> bool:
    """Check whether an IntegrityError came from a unique constraint."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(orig if orig is not None else exc).lower()
    return "unique constraint" in message or "duplicate key" in message


class CatalogStore(ABC):
    """Persistence operations used by the ingestion pipeline."""

    # Products

    @abstractmethod
    async def find_by_brand_and_external_id(
        self, brand_id: uuid.UUID, external_id: str
    ) -> Optional[Product]:
        ...

    @abstractmethod
    async def find_by_brand_and_name(self, brand_id: uuid.UUID, name: str) -> Optional[Product]:
        ...

    @abstractmethod
    async def insert(self, values: dict[str, Any]) -> Product:
        """Insert a product row.

        Raises:
            UniqueViolationError: If (brand_id, external_id) already exists
        """

    @abstractmethod
    async def update(self, product_id: uuid.UUID, values: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def replace_category_associations(
        self, product_id: uuid.UUID, category_ids: Iterable[uuid.UUID]
    ) -> None:
        ...

    @abstractmethod
    async def find_category_ids(self, taxonomy_ids: Iterable[str]) -> list[uuid.UUID]:
        ...

    @abstractmethod
    async def list_products(self, brand_id: Optional[uuid.UUID] = None) -> list[Product]:
        ...

    @abstractmethod
    async def update_classification(self, product_id: uuid.UUID, values: dict[str, Any]) -> None:
        ...

    # Brands

    @abstractmethod
    async def get_brand(self, slug: str) -> Optional[Brand]:
        ...

    @abstractmethod
    async def list_active_brands(self) -> list[Brand]:
        ...

    @abstractmethod
    async def mark_brand_synced(self, brand_id: uuid.UUID, synced_at: datetime) -> None:
        ...

    # Run log

    @abstractmethod
    async def create_run(self, brand_id: uuid.UUID, started_at: datetime) -> ScrapeRun:
        ...

    @abstractmethod
    async def finish_run(self, run_id: uuid.UUID, **fields: Any) -> None:
        ...

    @abstractmethod
    async def list_runs(self, brand_slug: Optional[str] = None, limit: int = 20) -> list[ScrapeRun]:
        ...


class SqlCatalogStore(CatalogStore):
    """CatalogStore backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.logger = logger.bind(service="catalog_store")

    async def find_by_brand_and_external_id(
        self, brand_id: uuid.UUID, external_id: str
    ) -> Optional[Product]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Product).where(
                    Product.brand_id == brand_id,
                    Product.external_id == external_id,
                )
            )
            return result.scalar_one_or_none()

    async def find_by_brand_and_name(self, brand_id: uuid.UUID, name: str) -> Optional[Product]:
        """Return the earliest-created product with this exact name."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(Product)
                .where(Product.brand_id == brand_id, Product.name == name)
                .order_by(Product.created_at.asc(), Product.id.asc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def insert(self, values: dict[str, Any]) -> Product:
        product = Product(**values)
        async with self.session_factory() as db:
            db.add(product)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                if is_unique_violation(e):
                    raise UniqueViolationError(
                        f"Product {values.get('external_id')!r} already exists for brand {values.get('brand_id')}"
                    ) from e
                raise StoreError(f"Insert failed: {e.orig}") from e
            except SQLAlchemyError as e:
                await db.rollback()
                raise StoreError(f"Insert failed: {e}") from e
            await db.refresh(product)
            return product

    async def update(self, product_id: uuid.UUID, values: dict[str, Any]) -> None:
        async with self.session_factory() as db:
            try:
                await db.execute(update(Product).where(Product.id == product_id).values(**values))
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise StoreError(f"Update of product {product_id} failed: {e}") from e

    async def replace_category_associations(
        self, product_id: uuid.UUID, category_ids: Iterable[uuid.UUID]
    ) -> None:
        """Delete every association of the product, then insert the given set."""
        async with self.session_factory() as db:
            try:
                await db.execute(delete(ProductCategory).where(ProductCategory.product_id == product_id))
                for category_id in dict.fromkeys(category_ids):
                    db.add(ProductCategory(product_id=product_id, category_id=category_id))
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                raise StoreError(f"Category associations for {product_id} failed: {e}") from e

    async def find_category_ids(self, taxonomy_ids: Iterable[str]) -> list[uuid.UUID]:
        wanted = [t for t in taxonomy_ids if t]
        if not wanted:
            return []
        async with self.session_factory() as db:
            result = await db.execute(select(Category.id).where(Category.taxonomy_id.in_(wanted)))
            return list(result.scalars().all())

    async def list_products(self, brand_id: Optional[uuid.UUID] = None) -> list[Product]:
        query = select(Product).order_by(Product.created_at.asc())
        if brand_id is not None:
            query = query.where(Product.brand_id == brand_id)
        async with self.session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def update_classification(self, product_id: uuid.UUID, values: dict[str, Any]) -> None:
        await self.update(product_id, values)

    async def get_brand(self, slug: str) -> Optional[Brand]:
        async with self.session_factory() as db:
            result = await db.execute(select(Brand).where(Brand.slug == slug))
            return result.scalar_one_or_none()

    async def list_active_brands(self) -> list[Brand]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Brand).where(Brand.is_active == True).order_by(Brand.name.asc())  # noqa: E712
            )
            return list(result.scalars().all())

    async def mark_brand_synced(self, brand_id: uuid.UUID, synced_at: datetime) -> None:
        async with self.session_factory() as db:
            await db.execute(update(Brand).where(Brand.id == brand_id).values(last_synced_at=synced_at))
            await db.commit()

    async def create_run(self, brand_id: uuid.UUID, started_at: datetime) -> ScrapeRun:
        run = ScrapeRun(brand_id=brand_id, status="running", started_at=started_at)
        async with self.session_factory() as db:
            db.add(run)
            await db.commit()
            await db.refresh(run)
            return run

    async def finish_run(self, run_id: uuid.UUID, **fields: Any) -> None:
        async with self.session_factory() as db:
            await db.execute(update(ScrapeRun).where(ScrapeRun.id == run_id).values(**fields))
            await db.commit()
        self.logger.debug("scrape_run_finalized", run_id=str(run_id), status=fields.get("status"))

    async def list_runs(self, brand_slug: Optional[str] = None, limit: int = 20) -> list[ScrapeRun]:
        query = (
            select(ScrapeRun)
            .options(selectinload(ScrapeRun.brand))
            .order_by(ScrapeRun.started_at.desc())
            .limit(limit)
        )
        if brand_slug:
            query = query.join(Brand, ScrapeRun.brand_id == Brand.id).where(Brand.slug == brand_slug)
        async with self.session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())
