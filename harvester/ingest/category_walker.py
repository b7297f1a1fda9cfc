"""Page-by-page walk of a single catalog category."""

import asyncio
from typing import Callable, List, Optional, Tuple

import httpx

from harvester import metrics
from harvester.config import Settings, settings as default_settings
from harvester.ingest.base import CategoryRef, Record
from harvester.ingest.catalog_parser import CatalogSiteParser
from harvester.ingest.errors import CategoryWalkError, HarvestError, ParseFailure
from harvester.ingest.fetch_pipeline import fetch_page
from harvester.ingest.page import ParsedPage
from harvester.ingest.pagination import build_page_url, has_next_page
from harvester.logging_config import get_logger

PageOracle = Callable[[ParsedPage, str, str], bool]

# Hard ceiling on pages walked per category, whatever the settings say
MAX_PAGES_PER_CATEGORY = 100


class CategoryWalker:
    """Walks a category's listing pages in order until they run out."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        parser: Optional[CatalogSiteParser] = None,
        config: Optional[Settings] = None,
        oracle: PageOracle = has_next_page,
    ):
        """
        Initialize the walker.

        Args:
            client: Shared HTTP client
            parser: Site parser used for record extraction
            config: Settings providing delay, retries, page ceiling and page parameter
            oracle: Next-page decision function
        """
        self.client = client
        self.config = config or default_settings
        self.parser = parser or CatalogSiteParser(self.config.base_url)
        self.oracle = oracle

    def page_bounds(self, start_page: int = 1, end_page: int = 0) -> Tuple[int, int]:
        """First and last page a walk may fetch, the last capped by the hard ceiling."""
        last = min(self.config.max_pages_per_category, MAX_PAGES_PER_CATEGORY)
        if 0 < end_page < last:
            last = end_page
        return max(1, start_page), last

    async def walk(
        self,
        category: CategoryRef,
        start_page: int = 1,
        end_page: int = 0,
    ) -> List[Record]:
        """
        Collect every record of a category.

        Args:
            category: Category to walk
            start_page: First page to fetch
            end_page: Last page to fetch (0 means no caller limit)

        Returns:
            Records from all walked pages, in page order

        Raises:
            CategoryWalkError: If any page fails to fetch, decode or parse;
                records from earlier pages are discarded
        """
        log = get_logger(__name__, category=category.name)
        page_num, last_page = self.page_bounds(start_page, end_page)
        records: List[Record] = []

        while page_num <= last_page:
            page_url = build_page_url(category.url, page_num, self.config.page_param)
            log.info(f"Processing page {page_num} of category {category.name}: {page_url}")

            await asyncio.sleep(self.config.request_delay)

            try:
                page = await fetch_page(
                    self.client,
                    page_url,
                    self.config.page_max_retries,
                    self.config.request_delay,
                    timeout=self.config.request_timeout,
                )
            except HarvestError as e:
                raise CategoryWalkError(category.name, category.url, page_num, e) from e

            try:
                page_records, suggested = self.parser.parse_category_page(page, category)
                has_more = bool(page_records) and (
                    suggested or self.oracle(page, page_url, self.config.page_param)
                )
            except Exception as e:
                failure = ParseFailure(page_url, f"extraction failed: {type(e).__name__}: {e}")
                raise CategoryWalkError(category.name, category.url, page_num, failure) from e

            records.extend(page_records)
            metrics.record_page_walked(len(page_records))

            log.info(
                f"Found {len(page_records)} records on page {page_num} of category "
                f"{category.name} (total: {len(records)})"
            )

            if not has_more:
                break
            page_num += 1

        return records
