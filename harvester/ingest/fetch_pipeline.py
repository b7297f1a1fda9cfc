"""Fetch, decode and parse a page in one step."""

import logging
from typing import Optional

import httpx

from harvester.config import settings
from harvester.ingest.encoding import normalize
from harvester.ingest.http_client import fetch_with_retry
from harvester.ingest.page import ParsedPage, parse_page

logger = logging.getLogger(__name__)


async def fetch_page(
    client: httpx.AsyncClient,
    url: str,
    max_retries: int,
    delay: Optional[float] = None,
    timeout: Optional[float] = None,
) -> ParsedPage:
    """
    Fetch a URL and return its parsed document.

    Args:
        client: httpx AsyncClient instance
        url: URL to fetch
        max_retries: Total fetch attempts
        delay: Backoff unit in seconds (defaults to config)
        timeout: Overall per-attempt timeout (defaults to config)

    Raises:
        NetworkExhausted, BadStatus, EncodingFailure, ParseFailure
    """
    if delay is None:
        delay = settings.request_delay
    outcome = await fetch_with_retry(client, url, max_retries, delay, timeout=timeout)
    text = normalize(outcome.content, outcome.content_type, url=url)
    return parse_page(text, url=url)
