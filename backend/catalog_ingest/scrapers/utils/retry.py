"""Retry helpers with exponential backoff for outbound HTTP requests."""

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from catalog_ingest.config import settings

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_transient_error(exc: BaseException) -> bool:
    """Transport failures, timeouts, 5xx and 429 are worth another attempt."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status in RETRYABLE_STATUS_CODES or status >= 500
    return isinstance(exc, (httpx.TransportError, httpx.TimeoutException))


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "http_retry_scheduled",
        attempt=retry_state.attempt_number,
        wait_seconds=round(retry_state.next_action.sleep, 2) if retry_state.next_action else None,
        error=str(exc),
    )


def http_retrying() -> AsyncRetrying:
    """Build a retry controller from the current settings."""
    return AsyncRetrying(
        stop=stop_after_attempt(max(1, settings.HTTP_RETRY_ATTEMPTS)),
        wait=wait_exponential(
            multiplier=settings.HTTP_RETRY_MIN_WAIT,
            min=settings.HTTP_RETRY_MIN_WAIT,
            max=settings.HTTP_RETRY_MAX_WAIT,
        ),
        retry=retry_if_exception(is_transient_error),
        before_sleep=_log_retry,
        reraise=True,
    )


async def send_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    **kwargs,
) -> httpx.Response:
    """Send a request, retrying transient failures.

    Non-2xx responses raise httpx.HTTPStatusError; 4xx other than 429 are
    raised on the first attempt.
    """
    async for attempt in http_retrying():
        with attempt:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
    return response
