"""HTTP fetching with bounded retry and linear backoff."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import httpx

from harvester import metrics
from harvester.config import Settings, settings as default_settings
from harvester.ingest.base import FetchOutcome
from harvester.ingest.errors import BadStatus, NetworkExhausted

logger = logging.getLogger(__name__)

# Retryable failures (transport errors and the overall attempt timeout)
RETRYABLE_EXC = (
    httpx.TransportError,
    asyncio.TimeoutError,
)


def default_headers(config: Optional[Settings] = None) -> dict[str, str]:
    """Get default browser-like headers."""
    config = config or default_settings
    return {
        "User-Agent": config.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
        "Cache-Control": "no-cache",
    }


def build_client(
    config: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create the shared AsyncClient used by a harvest run.

    Args:
        config: Settings providing timeout, headers and pool sizes
        transport: Optional transport override (used by tests)

    Returns:
        httpx.AsyncClient instance; the caller owns closing it
    """
    config = config or default_settings
    limits = httpx.Limits(
        max_connections=config.fetch_concurrency + config.enrich_concurrency,
        max_keepalive_connections=config.fetch_concurrency + config.enrich_concurrency,
    )
    return httpx.AsyncClient(
        headers=default_headers(config),
        timeout=httpx.Timeout(config.request_timeout),
        limits=limits,
        follow_redirects=True,
        transport=transport,
    )


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    max_retries: int,
    delay: float,
    timeout: Optional[float] = None,
) -> FetchOutcome:
    """
    Fetch a URL, retrying transport failures with linear backoff.

    After failed attempt ``n`` (1-indexed) the call sleeps ``delay * n``
    seconds. A non-2xx response is not retried.

    Args:
        client: httpx AsyncClient instance
        url: URL to fetch
        max_retries: Total number of attempts
        delay: Backoff unit in seconds
        timeout: Overall per-attempt timeout (defaults to config)

    Returns:
        FetchOutcome with the raw body

    Raises:
        BadStatus: On a non-2xx response
        NetworkExhausted: When every attempt failed
    """
    if timeout is None:
        timeout = default_settings.request_timeout
    attempts = max(1, max_retries)
    last_exc: BaseException | None = None
    started = time.monotonic()

    for attempt in range(1, attempts + 1):
        try:
            resp = await asyncio.wait_for(client.get(url), timeout=timeout)
        except RETRYABLE_EXC as e:
            last_exc = e
            logger.warning(
                f"Request to {url} failed ({type(e).__name__}: {e}), "
                f"attempt {attempt}/{attempts}"
            )
            await asyncio.sleep(delay * attempt)
            continue

        if not 200 <= resp.status_code < 300:
            metrics.record_fetch_error("bad_status", time.monotonic() - started)
            raise BadStatus(url, resp.status_code)

        metrics.record_fetch_success(time.monotonic() - started)
        return FetchOutcome(
            url=str(resp.url),
            content=resp.content,
            status_code=resp.status_code,
            content_type=resp.headers.get("content-type"),
            attempts=attempt,
        )

    metrics.record_fetch_error("network_exhausted", time.monotonic() - started)
    raise NetworkExhausted(url, attempts, last_exc)
