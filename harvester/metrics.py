"""Prometheus metrics for the catalog harvester."""

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("catalog_harvester", "Catalog harvester application info")
app_info.info({"version": "0.1.0", "name": "catalog-harvester"})

# Fetch metrics
http_fetches_total = Counter(
    "harvester_http_fetches_total",
    "Total number of HTTP fetch attempts",
    ["status"],
)

http_fetch_duration_seconds = Histogram(
    "harvester_http_fetch_duration_seconds",
    "Time spent on a single logical fetch, retries included",
    buckets=[0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

# Walk metrics
pages_walked_total = Counter(
    "harvester_pages_walked_total",
    "Total number of category listing pages processed",
)

records_harvested_total = Counter(
    "harvester_records_harvested_total",
    "Total number of records extracted from listing pages",
)

category_walks_total = Counter(
    "harvester_category_walks_total",
    "Total number of category walks by outcome",
    ["status"],
)

# Enrichment metrics
enrichment_total = Counter(
    "harvester_enrichment_total",
    "Total number of records passed through enrichment by outcome",
    ["outcome"],
)

# Gate metrics
gate_in_flight = Gauge(
    "harvester_gate_in_flight",
    "Work units currently holding an admission gate slot",
    ["gate"],
)


def record_fetch_success(duration: float):
    """Record a successful fetch."""
    http_fetches_total.labels(status="success").inc()
    http_fetch_duration_seconds.observe(duration)


def record_fetch_error(error_kind: str, duration: float):
    """Record a failed fetch."""
    http_fetches_total.labels(status=error_kind).inc()
    http_fetch_duration_seconds.observe(duration)


def record_page_walked(record_count: int):
    """Record one processed listing page."""
    pages_walked_total.inc()
    records_harvested_total.inc(record_count)


def record_category_walk(success: bool):
    """Record a finished category walk."""
    status = "success" if success else "error"
    category_walks_total.labels(status=status).inc()


def record_enrichment(outcome: str):
    """Record an enrichment outcome (enriched, skipped or an error kind)."""
    enrichment_total.labels(outcome=outcome).inc()
