"""Orchestrates a full harvest: categories, walks, dedupe and enrichment."""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import httpx

from harvester.config import Settings, settings as default_settings
from harvester.ingest.base import CategoryRef, Record
from harvester.ingest.catalog_parser import CatalogSiteParser
from harvester.ingest.category_walker import CategoryWalker
from harvester.ingest.dedupe import DedupeReport, dedupe
from harvester.ingest.enrichment import EnrichmentMerger, EnrichStats
from harvester.ingest.errors import CategoryDiscoveryError, CategoryWalkError, HarvestError
from harvester.ingest.fetch_pipeline import fetch_page
from harvester.ingest.http_client import build_client
from harvester.ingest.scheduler import AdmissionGate, harvest_categories

logger = logging.getLogger(__name__)


@dataclass
class HarvestResult:
    """Everything a harvest run produced."""

    records: List[Record] = field(default_factory=list)
    harvested_count: int = 0
    categories: List[CategoryRef] = field(default_factory=list)
    failures: List[CategoryWalkError] = field(default_factory=list)
    dedupe: DedupeReport = field(default_factory=DedupeReport)
    enrich_stats: Optional[EnrichStats] = None


class HarvestEngine:
    """Runs the harvest pipeline against the configured catalog site."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        parser: Optional[CatalogSiteParser] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Settings for this run (defaults to the module settings)
            client: Optional pre-built HTTP client; the engine closes only
                clients it creates itself
            parser: Optional site parser override
        """
        self.config = config or default_settings
        self._client = client
        self.parser = parser or CatalogSiteParser(self.config.base_url)

    @asynccontextmanager
    async def _client_scope(self):
        if self._client is not None:
            yield self._client
            return
        async with build_client(self.config) as client:
            yield client

    async def discover_categories(self, client: httpx.AsyncClient) -> List[CategoryRef]:
        """
        Read the category list from the catalog root page.

        Raises:
            CategoryDiscoveryError: If the page cannot be loaded or lists nothing
        """
        try:
            page = await fetch_page(
                client,
                self.config.catalog_url,
                self.config.catalog_max_retries,
                self.config.request_delay,
                timeout=self.config.request_timeout,
            )
        except HarvestError as e:
            raise CategoryDiscoveryError(f"Failed to load catalog page: {e}") from e

        categories = self.parser.discover_categories(page)
        if not categories:
            raise CategoryDiscoveryError(f"No categories found on {self.config.catalog_url}")
        return categories

    async def resolve_categories(
        self,
        client: httpx.AsyncClient,
        category_urls: Optional[Sequence[str]] = None,
        limit: int = 0,
    ) -> List[CategoryRef]:
        """Caller-supplied categories, or the discovered list; capped at ``limit`` if set."""
        if category_urls:
            categories = []
            seen = set()
            for url in category_urls:
                url = url.strip()
                if not url or url in seen:
                    continue
                seen.add(url)
                category = CategoryRef.from_url(url)
                logger.info(f"Added category: {category.name} ({category.url})")
                categories.append(category)
        else:
            categories = await self.discover_categories(client)

        if 0 < limit < len(categories):
            logger.info(f"Limiting harvest to {limit} of {len(categories)} categories")
            categories = categories[:limit]

        logger.info(f"Harvesting {len(categories)} categories")
        return categories

    async def run(
        self,
        category_urls: Optional[Sequence[str]] = None,
        limit: int = 0,
        start_page: int = 1,
        end_page: int = 0,
        skip_details: bool = False,
    ) -> HarvestResult:
        """
        Harvest, deduplicate and optionally enrich the catalog.

        Args:
            category_urls: Explicit category URLs; discovered when empty
            limit: Maximum number of categories (0 means all)
            start_page: First listing page per category
            end_page: Last listing page per category (0 means all)
            skip_details: Skip the detail-page enrichment pass

        Raises:
            CategoryDiscoveryError: If no category list could be obtained
        """
        result = HarvestResult()

        async with self._client_scope() as client:
            result.categories = await self.resolve_categories(client, category_urls, limit)

            walker = CategoryWalker(client, self.parser, self.config)
            fetch_gate = AdmissionGate(self.config.fetch_concurrency, name="fetch")

            async def walk(category: CategoryRef) -> List[Record]:
                return await walker.walk(category, start_page, end_page)

            harvest = await harvest_categories(
                result.categories, walk, fetch_gate, self.config.results_queue_size
            )
            result.failures = harvest.failures
            result.harvested_count = len(harvest.records)
            logger.info(
                f"Harvested {result.harvested_count} records from "
                f"{harvest.attempted - len(harvest.failures)}/{harvest.attempted} categories"
            )

            result.dedupe = dedupe(harvest.records)
            result.records = result.dedupe.records
            logger.info(f"{len(result.records)} unique records after deduplication")

            if skip_details:
                logger.info("Skipping detail enrichment")
            else:
                enrich_gate = AdmissionGate(self.config.enrich_concurrency, name="enrich")
                logger.info(f"Using {enrich_gate.capacity} concurrent enrichment fetches")
                merger = EnrichmentMerger(client, enrich_gate, self.parser, self.config)
                result.records, result.enrich_stats = await merger.enrich(result.records)

        return result
