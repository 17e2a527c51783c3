"""Adapter for bot-protected brands scraped by the remote scraping service."""

from typing import Any, Optional

import httpx

from catalog_ingest.config import settings
from catalog_ingest.core.exceptions import AdapterError, PreconditionError
from catalog_ingest.scrapers.base import BaseSourceAdapter, RawRecord
from catalog_ingest.scrapers.remote_proxy import JobState, RemoteScrapeClient

DEFAULT_LISTING_PATHS = ("/shop/whats-new/", "/womens-clothes/", "/sale/")
DEFAULT_MAX_ITEMS = 100


def default_start_urls(website_url: str) -> list[str]:
    base = website_url.rstrip("/")
    return [f"{base}{path}" for path in DEFAULT_LISTING_PATHS]


class RemoteScrapeAdapter(BaseSourceAdapter):
    """Runs (or reuses) a remote scraping job and returns its rows.

    source_config keys:
        job_id: saved task, or actor id when it contains '/'
        run_id: import an existing run instead of starting one
        use_latest_run: import the job's most recent run
        start_urls / max_items: ad hoc input for the default actor
    """

    source_kind = "remote-scrape"

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        remote_client: Optional[RemoteScrapeClient] = None,
    ):
        super().__init__(http_client)
        self.remote = remote_client or RemoteScrapeClient(http_client=http_client)

    async def fetch_all(self, brand: Any, since_days: Optional[int] = None) -> list[RawRecord]:
        config = brand.source_config or {}
        job_id = config.get("job_id")
        run_id = config.get("run_id")

        if run_id:
            handle = await self.remote.get_run(run_id)
            self.logger.info("remote_run_reused", brand=brand.slug, run_id=run_id)
        elif config.get("use_latest_run"):
            if not job_id:
                raise PreconditionError(f"Brand {brand.slug} has use_latest_run but no job_id")
            handle = await self.remote.latest_run(job_id)
        elif job_id:
            handle = await self.remote.submit(job_id)
        else:
            start_urls = config.get("start_urls") or default_start_urls(brand.website_url)
            run_input = {
                "startUrls": [{"url": u} if isinstance(u, str) else u for u in start_urls],
                "maxItems": config.get("max_items") or DEFAULT_MAX_ITEMS,
                "proxyConfiguration": {"useApifyProxy": True},
            }
            handle = await self.remote.submit(settings.REMOTE_DEFAULT_ACTOR, run_input)

        state = await self.remote.await_completion(handle)
        self.remote_dataset_id = handle.dataset_id

        rows = await self.remote.fetch_result(handle)
        if state is not JobState.SUCCEEDED:
            if not rows:
                raise AdapterError(
                    self.source_kind,
                    f"Remote run {handle.run_id} ended {state.value} with no rows",
                )
            self.logger.warning(
                "remote_partial_import",
                brand=brand.slug,
                run_id=handle.run_id,
                status=state.value,
                rows=len(rows),
            )
        return rows

    async def cleanup(self) -> None:
        await self.remote.close()
        await super().cleanup()
