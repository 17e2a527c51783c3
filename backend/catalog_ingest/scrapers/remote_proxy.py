"""Client for the managed remote scraping service (Apify-compatible API).

A remote job is either a saved task ("user~my-task") or an actor
("apify/e-commerce-scraping-tool"). Submitting returns a run handle; the
run is polled until it reaches a terminal state and its dataset rows are
then read page by page.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx
import structlog

from catalog_ingest.config import settings
from catalog_ingest.core.exceptions import PreconditionError, RemoteJobError, RemoteJobTimeout
from catalog_ingest.scrapers.utils.retry import send_with_retry

logger = structlog.get_logger(__name__)


class JobState(str, Enum):
    """Run states reported by the remote service."""

    READY = "READY"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    ABORTING = "ABORTING"
    ABORTED = "ABORTED"
    TIMING_OUT = "TIMING-OUT"
    TIMED_OUT = "TIMED-OUT"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @classmethod
    def parse(cls, value: Optional[str]) -> "JobState":
        try:
            return cls(str(value).upper())
        except ValueError:
            # Unknown states are treated as still in progress
            return cls.RUNNING


TERMINAL_STATES = frozenset({
    JobState.SUCCEEDED,
    JobState.FAILED,
    JobState.ABORTED,
    JobState.TIMED_OUT,
})


@dataclass
class JobHandle:
    """Reference to one remote run."""

    run_id: str
    job_id: Optional[str] = None
    dataset_id: Optional[str] = None
    state: JobState = JobState.READY


def _wire_id(job_id: str) -> str:
    return job_id.replace("/", "~")


def _is_actor(job_id: str) -> bool:
    return "/" in job_id


class RemoteScrapeClient:
    """Submit, poll and read remote scraping runs."""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
    ):
        self.base_url = (base_url or settings.REMOTE_SCRAPER_BASE_URL).rstrip("/")
        self.token = token if token is not None else settings.REMOTE_SCRAPER_TOKEN
        self.http_client = http_client
        self._owns_client = http_client is None
        self.logger = logger.bind(service="remote_scrape")

    def _client(self) -> httpx.AsyncClient:
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
            self._owns_client = True
        return self.http_client

    def _headers(self) -> dict[str, str]:
        if not self.token:
            raise PreconditionError("REMOTE_SCRAPER_TOKEN is not configured")
        return {"Authorization": f"Bearer {self.token}"}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await send_with_retry(
                self._client(), method, url, headers=self._headers(), **kwargs
            )
        except httpx.HTTPStatusError as e:
            raise RemoteJobError(
                f"{method} {path} returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise RemoteJobError(f"{method} {path} failed: {e}") from e
        return response.json()

    @staticmethod
    def _handle_from(payload: Any, job_id: Optional[str] = None) -> JobHandle:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or not data.get("id"):
            raise RemoteJobError("Remote service returned no run data")
        return JobHandle(
            run_id=data["id"],
            job_id=job_id or data.get("actorTaskId") or data.get("actId"),
            dataset_id=data.get("defaultDatasetId"),
            state=JobState.parse(data.get("status")),
        )

    async def submit(self, job_id: str, run_input: Optional[dict] = None) -> JobHandle:
        """Start a run of a saved task or an actor.

        Args:
            job_id: Task id, or actor id when it contains '/'
            run_input: JSON input overriding the job's saved input

        Returns:
            Handle of the started run
        """
        kind = "acts" if _is_actor(job_id) else "actor-tasks"
        payload = await self._request(
            "POST", f"/{kind}/{_wire_id(job_id)}/runs", json=run_input or {}
        )
        handle = self._handle_from(payload, job_id)
        self.logger.info(
            "remote_run_submitted",
            job_id=job_id,
            run_id=handle.run_id,
            dataset_id=handle.dataset_id,
        )
        return handle

    async def get_run(self, run_id: str) -> JobHandle:
        """Fetch the current state of a run."""
        payload = await self._request("GET", f"/actor-runs/{run_id}")
        return self._handle_from(payload)

    async def latest_run(self, job_id: str) -> JobHandle:
        """Return the most recent run of a job without starting a new one."""
        kind = "acts" if _is_actor(job_id) else "actor-tasks"
        payload = await self._request("GET", f"/{kind}/{_wire_id(job_id)}/runs/last")
        handle = self._handle_from(payload, job_id)
        self.logger.info(
            "remote_latest_run",
            job_id=job_id,
            run_id=handle.run_id,
            status=handle.state.value,
        )
        return handle

    async def await_completion(
        self,
        handle: JobHandle,
        max_wait: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> JobState:
        """Poll a run until it reaches a terminal state.

        Raises:
            RemoteJobTimeout: If the run is still going after max_wait seconds
        """
        max_wait = settings.REMOTE_MAX_WAIT_SECONDS if max_wait is None else max_wait
        poll_interval = settings.REMOTE_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        deadline = time.monotonic() + max_wait

        while not handle.state.is_terminal:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.logger.error("remote_run_timeout", run_id=handle.run_id, max_wait=max_wait)
                raise RemoteJobTimeout(handle.run_id, max_wait)
            await asyncio.sleep(min(poll_interval, remaining))

            current = await self.get_run(handle.run_id)
            handle.state = current.state
            handle.dataset_id = current.dataset_id or handle.dataset_id
            self.logger.debug("remote_run_polled", run_id=handle.run_id, status=handle.state.value)

        if handle.state is not JobState.SUCCEEDED:
            self.logger.warning(
                "remote_run_unclean_finish",
                run_id=handle.run_id,
                status=handle.state.value,
            )
        return handle.state

    async def fetch_result(self, handle: JobHandle, page_size: Optional[int] = None) -> list[dict]:
        """Read every row of the run's dataset."""
        if not handle.dataset_id:
            current = await self.get_run(handle.run_id)
            handle.dataset_id = current.dataset_id
        if not handle.dataset_id:
            raise RemoteJobError(f"Run {handle.run_id} has no dataset")

        limit = page_size or settings.REMOTE_RESULT_PAGE_SIZE
        rows: list[dict] = []
        offset = 0
        while True:
            page = await self._request(
                "GET",
                f"/datasets/{handle.dataset_id}/items",
                params={"offset": offset, "limit": limit, "clean": "true", "format": "json"},
            )
            if isinstance(page, dict):
                page = page.get("data", {}).get("items", [])
            rows.extend(item for item in page if isinstance(item, dict))
            if len(page) < limit:
                break
            offset += limit

        self.logger.info("remote_rows_fetched", run_id=handle.run_id, dataset_id=handle.dataset_id, count=len(rows))
        return rows

    async def close(self) -> None:
        if self.http_client is not None and self._owns_client:
            await self.http_client.aclose()
            self.http_client = None
