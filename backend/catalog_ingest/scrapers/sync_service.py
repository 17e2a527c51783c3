"""Sync orchestration service.

Drives fetch -> normalize -> classify -> upsert for one brand or a sweep
of brands, and records one ScrapeRun per brand per invocation.

Per brand: Pending -> Running -> Success | Partial | Failed.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional
from uuid import UUID

import httpx
import structlog

from catalog_ingest.config import settings
from catalog_ingest.core.exceptions import NotFoundError, RecordError
from catalog_ingest.db.store import CatalogStore
from catalog_ingest.models import Brand
from catalog_ingest.scrapers.base import NormalizedProduct, RawRecord
from catalog_ingest.scrapers.factory import AdapterFactory, get_adapter_factory
from catalog_ingest.scrapers.record_normalizer import ProductNormalizer
from catalog_ingest.services.product_service import ProductService
from catalog_ingest.services.taxonomy import TaxonomyClassifier, get_classifier

logger = structlog.get_logger(__name__)

CANCELLED_MESSAGE = "cancelled"


class RunStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class BrandSyncResult:
    """Outcome of one brand's sync."""

    brand_slug: str
    status: RunStatus
    added: int = 0
    updated: int = 0
    failed: int = 0
    execution_time_seconds: float = 0.0
    error_message: Optional[str] = None
    run_id: Optional[UUID] = None
    remote_dataset_id: Optional[str] = None
    dry_run: bool = False


@dataclass
class SweepSummary:
    """Totals and per-brand status across a sweep."""

    results: list[BrandSyncResult] = field(default_factory=list)

    @property
    def total_added(self) -> int:
        return sum(r.added for r in self.results)

    @property
    def total_updated(self) -> int:
        return sum(r.updated for r in self.results)

    @property
    def total_failed(self) -> int:
        return sum(r.failed for r in self.results)

    @property
    def failed_brands(self) -> list[str]:
        return [r.brand_slug for r in self.results if r.status is RunStatus.FAILED]

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_brands)

    def status_counts(self) -> dict[str, int]:
        counts = {s.value: 0 for s in (RunStatus.SUCCESS, RunStatus.PARTIAL, RunStatus.FAILED)}
        for r in self.results:
            counts[r.status.value] = counts.get(r.status.value, 0) + 1
        return counts


@dataclass
class _Counters:
    added: int = 0
    updated: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def committed(self) -> int:
        return self.added + self.updated


class SyncService:
    """Runs brand syncs against a catalog store.

    Brands in a sweep are processed one after another. Records inside one
    brand are processed concurrently, bounded by SYNC_RECORD_CONCURRENCY.
    Setting cancel_event stops work at the next record boundary; the run
    is still finalized.
    """

    def __init__(
        self,
        store: CatalogStore,
        adapter_factory: Optional[AdapterFactory] = None,
        normalizer: Optional[ProductNormalizer] = None,
        classifier: Optional[TaxonomyClassifier] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.store = store
        self.product_service = ProductService(store)
        self.adapter_factory = adapter_factory or get_adapter_factory()
        self.normalizer = normalizer or ProductNormalizer()
        self.classifier = classifier or get_classifier()
        self.http_client = http_client
        self.cancel_event = cancel_event or asyncio.Event()
        self.logger = logger.bind(service="sync_service")

    def cancel(self) -> None:
        self.cancel_event.set()

    async def sync_target(
        self,
        target: str,
        since_days: Optional[int] = None,
        dry_run: bool = False,
    ) -> SweepSummary:
        """Sync "all" active brands or a single brand by slug.

        Raises:
            NotFoundError: If target is a slug with no brand
        """
        if target == "all":
            return await self.sync_all(since_days=since_days, dry_run=dry_run)

        brand = await self.store.get_brand(target)
        if brand is None:
            raise NotFoundError("Brand", target)
        return await self.sync_brands([brand], since_days=since_days, dry_run=dry_run)

    async def sync_all(self, since_days: Optional[int] = None, dry_run: bool = False) -> SweepSummary:
        brands = await self.store.list_active_brands()
        self.logger.info("sweep_loaded_brands", count=len(brands))
        return await self.sync_brands(brands, since_days=since_days, dry_run=dry_run)

    async def sync_brands(
        self,
        brands: Iterable[Brand],
        since_days: Optional[int] = None,
        dry_run: bool = False,
    ) -> SweepSummary:
        """Sync brands sequentially with a fixed delay between them."""
        summary = SweepSummary()

        for index, brand in enumerate(brands):
            if self.cancel_event.is_set():
                self.logger.warning("sweep_cancelled", remaining_from=brand.slug)
                break
            if index and settings.SYNC_BRAND_DELAY_SECONDS > 0:
                await asyncio.sleep(settings.SYNC_BRAND_DELAY_SECONDS)

            try:
                result = await self.sync_brand(brand, since_days=since_days, dry_run=dry_run)
            except Exception as e:
                # Run log writes themselves failed; keep the sweep going
                self.logger.error("brand_sync_crashed", brand=brand.slug, error=str(e), exc_info=True)
                result = BrandSyncResult(brand_slug=brand.slug, status=RunStatus.FAILED, error_message=str(e))
            summary.results.append(result)

        self.logger.info(
            "sweep_complete",
            brands=len(summary.results),
            added=summary.total_added,
            updated=summary.total_updated,
            failed=summary.total_failed,
            **{f"brands_{status}": count for status, count in summary.status_counts().items()},
        )
        return summary

    async def sync_brand(
        self,
        brand: Brand,
        since_days: Optional[int] = None,
        dry_run: bool = False,
    ) -> BrandSyncResult:
        """Sync one brand and finalize its ScrapeRun.

        A dry run fetches, normalizes and classifies but writes nothing,
        and reports would-be added/updated counts.
        """
        started = time.monotonic()
        run_id = None
        if not dry_run:
            run = await self.store.create_run(brand.id, datetime.now(timezone.utc))
            run_id = run.id

        self.logger.info("brand_sync_started", brand=brand.slug, run_id=str(run_id) if run_id else None, dry_run=dry_run)

        result = BrandSyncResult(brand_slug=brand.slug, status=RunStatus.RUNNING, run_id=run_id, dry_run=dry_run)
        counters = _Counters()
        inflight: set[asyncio.Task] = set()

        try:
            records = await self._fetch(brand, since_days, result)
            if records:
                await self._process_records(brand, records, counters, inflight, dry_run)
        except asyncio.CancelledError:
            if inflight:
                await asyncio.gather(*inflight, return_exceptions=True)
            result.status = RunStatus.PARTIAL if counters.committed else RunStatus.FAILED
            result.error_message = CANCELLED_MESSAGE
            await asyncio.shield(self._finalize(brand, result, counters, started))
            raise
        except Exception as e:
            result.status = RunStatus.PARTIAL if counters.committed else RunStatus.FAILED
            result.error_message = str(e)
            self.logger.error("brand_sync_aborted", brand=brand.slug, error=str(e), exc_info=True)

        if result.status is RunStatus.RUNNING:
            if self.cancel_event.is_set() and counters.skipped:
                result.status = RunStatus.PARTIAL if counters.committed else RunStatus.FAILED
                result.error_message = CANCELLED_MESSAGE
            elif counters.failed == 0:
                result.status = RunStatus.SUCCESS
            else:
                result.status = RunStatus.PARTIAL

        await self._finalize(brand, result, counters, started)
        return result

    async def _fetch(self, brand: Brand, since_days: Optional[int], result: BrandSyncResult) -> list[RawRecord]:
        """Fetch raw records; precondition or adapter failures mark the result Failed."""
        if not brand.is_active:
            result.status = RunStatus.FAILED
            result.error_message = f"Brand {brand.slug} is inactive"
            self.logger.warning("brand_inactive", brand=brand.slug)
            return []

        adapter = None
        try:
            adapter = self.adapter_factory.create_adapter(brand.source_kind, http_client=self.http_client)
            records = await adapter.fetch_all(brand, since_days=since_days)
            result.remote_dataset_id = adapter.remote_dataset_id
        except Exception as e:
            result.status = RunStatus.FAILED
            result.error_message = str(e)
            self.logger.error(
                "brand_fetch_failed",
                brand=brand.slug,
                source_kind=brand.source_kind,
                error=str(e),
                exc_info=True,
            )
            return []
        finally:
            if adapter is not None:
                await adapter.cleanup()

        self.logger.info("records_fetched", brand=brand.slug, count=len(records))
        return records

    async def _process_records(
        self,
        brand: Brand,
        records: list[RawRecord],
        counters: _Counters,
        inflight: set,
        dry_run: bool,
    ) -> None:
        semaphore = asyncio.Semaphore(max(1, settings.SYNC_RECORD_CONCURRENCY))

        async def worker(raw: RawRecord) -> None:
            async with semaphore:
                if self.cancel_event.is_set():
                    counters.skipped += 1
                    return

                product = self._prepare(brand, raw, counters)
                if product is None:
                    return

                if dry_run:
                    await self._preview(product, counters)
                    return

                # The write runs to completion even if this worker is cancelled
                task = asyncio.ensure_future(self._upsert(product, counters))
                inflight.add(task)
                task.add_done_callback(inflight.discard)
                await asyncio.shield(task)

        outcomes = await asyncio.gather(*(worker(raw) for raw in records), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                counters.failed += 1
                self.logger.error("record_worker_failed", brand=brand.slug, error=str(outcome))

    def _prepare(self, brand: Brand, raw: RawRecord, counters: _Counters) -> Optional[NormalizedProduct]:
        try:
            product = self.normalizer.normalize(raw, brand.id, brand.website_url)
        except RecordError as e:
            counters.failed += 1
            self.logger.warning("record_rejected", brand=brand.slug, error=str(e))
            return None
        except Exception as e:
            counters.failed += 1
            self.logger.warning("record_malformed", brand=brand.slug, error=str(e), exc_info=True)
            return None

        try:
            self.classifier.apply(product)
        except Exception as e:
            self.logger.warning("classification_failed", brand=brand.slug, product=product.name[:60], error=str(e))
        return product

    async def _upsert(self, product: NormalizedProduct, counters: _Counters) -> None:
        try:
            upserted = await self.product_service.upsert(product)
        except Exception as e:
            counters.failed += 1
            self.logger.error(
                "record_upsert_failed",
                external_id=product.external_id,
                product=product.name[:60],
                error=str(e),
                exc_info=True,
            )
            return
        if upserted.created:
            counters.added += 1
        else:
            counters.updated += 1

    async def _preview(self, product: NormalizedProduct, counters: _Counters) -> None:
        try:
            existing, _ = await self.product_service.resolve(product)
        except Exception as e:
            counters.failed += 1
            self.logger.error("record_preview_failed", external_id=product.external_id, error=str(e))
            return
        if existing is None:
            counters.added += 1
        else:
            counters.updated += 1

    async def _finalize(
        self,
        brand: Brand,
        result: BrandSyncResult,
        counters: _Counters,
        started: float,
    ) -> None:
        result.added = counters.added
        result.updated = counters.updated
        result.failed = counters.failed
        result.execution_time_seconds = round(time.monotonic() - started, 2)
        now = datetime.now(timezone.utc)

        if not result.dry_run:
            await self.store.finish_run(
                result.run_id,
                status=result.status.value,
                completed_at=now,
                execution_time_seconds=Decimal(str(result.execution_time_seconds)),
                products_added=result.added,
                products_updated=result.updated,
                products_failed=result.failed,
                error_message=result.error_message,
                remote_dataset_id=result.remote_dataset_id,
            )
            if result.status in (RunStatus.SUCCESS, RunStatus.PARTIAL):
                await self.store.mark_brand_synced(brand.id, now)

        log = self.logger.warning if result.status is RunStatus.FAILED else self.logger.info
        log(
            "brand_sync_complete",
            brand=brand.slug,
            status=result.status.value,
            added=result.added,
            updated=result.updated,
            failed=result.failed,
            skipped=counters.skipped,
            execution_time_seconds=result.execution_time_seconds,
            error=result.error_message,
            dry_run=result.dry_run,
        )
