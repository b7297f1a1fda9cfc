"""Best-effort enrichment of harvested records from product detail pages."""

import asyncio
import dataclasses
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional, Sequence, Tuple

import httpx

from harvester import metrics
from harvester.config import Settings, settings as default_settings
from harvester.ingest.base import DetailRecord, Record
from harvester.ingest.catalog_parser import CatalogSiteParser
from harvester.ingest.errors import ErrorKind, HarvestError
from harvester.ingest.fetch_pipeline import fetch_page
from harvester.ingest.scheduler import AdmissionGate, fan_in

logger = logging.getLogger(__name__)

# Progress is reported each time this fraction of the batch completes
PROGRESS_STEP = 0.05


def merge_detail(record: Record, detail: DetailRecord) -> Record:
    """Overlay non-empty detail fields onto a copy of the record."""
    updates = {}
    if detail.description:
        updates["description"] = detail.description
    if detail.features:
        updates["features"] = list(detail.features)
    return dataclasses.replace(record, **updates)


@dataclass
class EnrichStats:
    """Counters for one enrichment pass."""

    total: int = 0
    processed: int = 0
    skipped: int = 0
    enriched: int = 0
    errored: int = 0
    errors: Counter = field(default_factory=Counter)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def items_per_second(self) -> float:
        elapsed = self.elapsed
        return self.processed / elapsed if elapsed > 0 else 0.0

    @property
    def eta_seconds(self) -> Optional[float]:
        """Projected seconds until the batch completes, if a rate is known."""
        rate = self.items_per_second
        if self.processed == 0 or rate <= 0:
            return None
        return (self.total - self.processed) / rate


class EnrichmentProgress:
    """Lock-guarded accumulator for enrichment statistics."""

    def __init__(self, total: int):
        self.stats = EnrichStats(total=total)
        self._lock = asyncio.Lock()
        self._report_every = max(1, int(total * PROGRESS_STEP))

    async def record(self, outcome: str, error_kind: Optional[ErrorKind] = None) -> None:
        """
        Count one finished record.

        Args:
            outcome: "skipped", "enriched" or "error"
            error_kind: Error class for the "error" outcome
        """
        async with self._lock:
            stats = self.stats
            stats.processed += 1
            if outcome == "skipped":
                stats.skipped += 1
            elif outcome == "enriched":
                stats.enriched += 1
            else:
                stats.errored += 1
                stats.errors[error_kind] += 1

            if stats.processed % self._report_every == 0 or stats.processed == stats.total:
                self._log_progress()

        metrics.record_enrichment(error_kind.value if error_kind else outcome)

    def _log_progress(self) -> None:
        stats = self.stats
        percent = stats.processed / stats.total * 100 if stats.total else 100.0
        eta = stats.eta_seconds
        eta_text = str(timedelta(seconds=round(eta))) if eta is not None else "unknown"
        logger.info(
            f"Enrichment progress: {percent:.1f}% ({stats.processed}/{stats.total}) - "
            f"enriched: {stats.enriched}, skipped: {stats.skipped}, errors: {stats.errored}, "
            f"rate: {stats.items_per_second:.1f} items/s, remaining: {eta_text}"
        )


class EnrichmentMerger:
    """Fetches detail pages for records and merges the new fields in."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        gate: AdmissionGate,
        parser: Optional[CatalogSiteParser] = None,
        config: Optional[Settings] = None,
    ):
        self.client = client
        self.gate = gate
        self.config = config or default_settings
        self.parser = parser or CatalogSiteParser(self.config.base_url)

    async def fetch_detail(self, url: str) -> DetailRecord:
        """Fetch and extract one detail page while holding an enrichment slot."""
        async with self.gate.slot():
            await asyncio.sleep(self.config.request_delay)
            page = await fetch_page(
                self.client,
                url,
                self.config.detail_max_retries,
                self.config.request_delay,
                timeout=self.config.request_timeout,
            )
        return self.parser.parse_detail_page(page, url)

    async def _enrich_one(self, record: Record, progress: EnrichmentProgress) -> List[Record]:
        if record.is_enriched:
            await progress.record("skipped")
            return [record]

        try:
            detail = await self.fetch_detail(record.url)
        except HarvestError as e:
            logger.warning(f"Failed to fetch details for record id={record.id} url={record.url}: {e}")
            await progress.record("error", e.kind)
            return [record]
        except Exception as e:
            logger.exception(f"Unexpected error enriching record id={record.id} url={record.url}: {e}")
            await progress.record("error", ErrorKind.UNEXPECTED)
            return [record]

        await progress.record("enriched")
        return [merge_detail(record, detail)]

    async def enrich(self, records: Sequence[Record]) -> Tuple[List[Record], EnrichStats]:
        """
        Enrich a batch of records.

        Records that already have a description and features are passed
        through untouched. A failed detail fetch keeps the record as it was.
        Input records are never mutated.

        Returns:
            (records, stats); record order is unspecified
        """
        progress = EnrichmentProgress(len(records))
        logger.info(f"Enriching {len(records)} records with detail pages")

        enriched = await fan_in(
            (self._enrich_one(record, progress) for record in records),
            self.config.results_queue_size,
        )

        stats = progress.stats
        logger.info(
            f"Enrichment finished: total: {len(enriched)}, enriched: {stats.enriched}, "
            f"skipped: {stats.skipped}, errors: {stats.errored}, "
            f"time: {timedelta(seconds=round(stats.elapsed))}, "
            f"average rate: {stats.items_per_second:.1f} items/s"
        )
        if stats.errors:
            logger.info("Enrichment errors by kind:")
            for kind, count in stats.errors.most_common():
                logger.info(f"  - {kind.value}: {count}")

        return enriched, stats
