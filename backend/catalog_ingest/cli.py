"""Command line entry point for catalog ingestion.

Usage:
    catalog-ingest sync all
    catalog-ingest sync acme --new-only
    catalog-ingest sync acme --dry-run
    catalog-ingest runs --brand acme --limit 10
    catalog-ingest reclassify
    catalog-ingest init-db
    catalog-ingest schedule --now
"""

import argparse
import asyncio
import signal
import sys
from typing import Optional

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_ingest import __version__
from catalog_ingest.config import settings
from catalog_ingest.core.exceptions import CatalogIngestError, NotFoundError
from catalog_ingest.core.logging import configure_logging
from catalog_ingest.db.store import SqlCatalogStore
from catalog_ingest.scrapers.sync_service import SweepSummary, SyncService
from catalog_ingest.services.product_service import ProductService

logger = structlog.get_logger(__name__)

RULE = "=" * 70


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-ingest",
        description="Ingest and normalize brand product catalogs",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Sync one brand or all active brands")
    sync.add_argument("target", help='Brand slug, or "all"')
    sync.add_argument(
        "--new-only",
        action="store_true",
        help=f"Only products published in the last {settings.NEW_ARRIVALS_DAYS} days",
    )
    sync.add_argument("--dry-run", action="store_true", help="Fetch and normalize without writing")

    runs = subparsers.add_parser("runs", help="Show recent scrape runs")
    runs.add_argument("--brand", default=None, help="Filter by brand slug")
    runs.add_argument("--limit", type=int, default=20)

    subparsers.add_parser("reclassify", help="Re-run taxonomy classification over stored products")
    subparsers.add_parser("init-db", help="Create database tables")

    schedule = subparsers.add_parser("schedule", help="Run the periodic sweep until interrupted")
    schedule.add_argument("--now", action="store_true", help="Run the first sweep immediately")

    return parser


def print_summary(summary: SweepSummary, dry_run: bool = False) -> None:
    title = "Sync Summary (dry run)" if dry_run else "Sync Summary"
    print(f"\n{RULE}")
    print(f"  {title}")
    print(RULE)
    for result in summary.results:
        line = (
            f"  {result.brand_slug:<24} {result.status.value:<8} "
            f"added={result.added} updated={result.updated} failed={result.failed} "
            f"({result.execution_time_seconds:.1f}s)"
        )
        print(line)
        if result.error_message:
            print(f"      error: {result.error_message}")
    print(RULE)
    print(
        f"  Brands: {len(summary.results)}  Added: {summary.total_added}  "
        f"Updated: {summary.total_updated}  Failed records: {summary.total_failed}"
    )
    if summary.failed_brands:
        print(f"  Failed brands: {', '.join(summary.failed_brands)}")
    print(f"{RULE}\n")


async def run_sync(
    target: str,
    new_only: bool = False,
    dry_run: bool = False,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    install_signal_handlers: bool = False,
) -> int:
    """Run a sync and return the process exit code."""
    service = SyncService(SqlCatalogStore(session_factory or _default_session_factory()), http_client=http_client)
    since_days = settings.NEW_ARRIVALS_DAYS if new_only else None

    loop = asyncio.get_running_loop()
    if install_signal_handlers:
        _add_cancel_handler(loop, service.cancel)

    try:
        summary = await service.sync_target(target, since_days=since_days, dry_run=dry_run)
    except NotFoundError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    finally:
        if install_signal_handlers:
            _remove_cancel_handler(loop)

    print_summary(summary, dry_run=dry_run)
    return 1 if summary.has_failures else 0


async def show_runs(
    brand: Optional[str] = None,
    limit: int = 20,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> int:
    store = SqlCatalogStore(session_factory or _default_session_factory())
    runs = await store.list_runs(brand_slug=brand, limit=limit)

    if not runs:
        print("No scrape runs found.")
        return 0

    print(f"\n{RULE}")
    print(f"  {'started':<20} {'brand':<20} {'status':<8} {'added':>5} {'upd':>5} {'fail':>5} {'secs':>7}")
    print(RULE)
    for run in runs:
        started = run.started_at.strftime("%Y-%m-%d %H:%M:%S") if run.started_at else "-"
        seconds = f"{float(run.execution_time_seconds):.1f}" if run.execution_time_seconds is not None else "-"
        print(
            f"  {started:<20} {run.brand.slug:<20} {run.status:<8} "
            f"{run.products_added:>5} {run.products_updated:>5} {run.products_failed:>5} {seconds:>7}"
        )
        if run.error_message:
            print(f"      error: {run.error_message}")
    print(f"{RULE}\n")
    return 0


async def run_reclassify(session_factory: Optional[async_sessionmaker[AsyncSession]] = None) -> int:
    store = SqlCatalogStore(session_factory or _default_session_factory())
    stats = await ProductService(store).reclassify_all()
    print(
        f"Reclassified {stats['checked']} products: "
        f"{stats['changed']} changed, {stats['unclassified']} unclassified"
    )
    return 0


async def run_init_db() -> int:
    from catalog_ingest.db.seed import seed_categories
    from catalog_ingest.db.session import async_session_factory, init_db

    await init_db()
    created = await seed_categories(async_session_factory)
    print(f"Database tables created, {created} categories seeded.")
    return 0


async def run_schedule(run_now: bool = False) -> int:
    from catalog_ingest.db.session import async_session_factory
    from catalog_ingest.scrapers.scheduler import SyncScheduler

    scheduler = SyncScheduler(async_session_factory)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    _add_cancel_handler(loop, stop.set)

    scheduler.start()
    scheduler.add_sweep_job(run_immediately=run_now)
    try:
        await stop.wait()
    finally:
        _remove_cancel_handler(loop)
        scheduler.stop()
    return 0


def _default_session_factory() -> async_sessionmaker[AsyncSession]:
    from catalog_ingest.db.session import async_session_factory

    return async_session_factory


def _add_cancel_handler(loop: asyncio.AbstractEventLoop, callback) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, callback)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support
            pass


def _remove_cancel_handler(loop: asyncio.AbstractEventLoop) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.remove_signal_handler(sig)
        except (NotImplementedError, RuntimeError):
            pass


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level)

    if args.command == "sync":
        coro = run_sync(args.target, new_only=args.new_only, dry_run=args.dry_run, install_signal_handlers=True)
    elif args.command == "runs":
        coro = show_runs(brand=args.brand, limit=args.limit)
    elif args.command == "reclassify":
        coro = run_reclassify()
    elif args.command == "init-db":
        coro = run_init_db()
    else:
        coro = run_schedule(run_now=args.now)

    try:
        return asyncio.run(coro)
    except CatalogIngestError as e:
        logger.error("command_failed", command=args.command, error=e.message)
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
