"""Diagnostic reports of the catalog site's markup.

These modes fetch a page, probe it with candidate selectors and write a
plain-text report for a human deciding how to adjust the extractors.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional, TextIO

import httpx

from harvester.config import Settings, settings as default_settings
from harvester.ingest.base import CategoryRef
from harvester.ingest.catalog_parser import CatalogSiteParser
from harvester.ingest.fetch_pipeline import fetch_page
from harvester.ingest.http_client import build_client
from harvester.ingest.page import ParsedPage, node_text
from harvester.ingest.pagination import (
    AJAX_PAGINATION_MARKER,
    AJAX_PAGE_TOKEN,
    CURRENT_PAGE_VAR,
    PAGINATION_SELECTORS,
    TOTAL_PAGES_VAR,
    evaluate_heuristics,
    has_next_page,
)

logger = logging.getLogger(__name__)

# Only the first few matches of each selector are dumped
SAMPLE_SIZE = 10

CATALOG_SELECTORS = [
    ".catalog", ".catalog-menu", ".catalog__list", ".catalog-section",
    ".menu-catalog", "nav", ".sidebar", "ul.menu",
]

SUBCATEGORY_SELECTORS = [
    "a[href^='/catalog/']", ".subcategory", ".category-item", ".subcategory-list a",
    ".category-list a", ".catalog__subcategory", ".catalog a",
]

PRODUCT_SELECTORS = [
    "[data-product-id]", ".productCard", ".catalog-card", ".catalog-item",
    ".product", ".product-item", ".product-card", "[itemtype='http://schema.org/Product']",
    "div[class*='product']", "div[class*='catalog'] div[class*='item']",
]


def _write_links(f: TextIO, page_nodes, indent: str = "  ") -> None:
    for i, link in enumerate(page_nodes[:SAMPLE_SIZE], start=1):
        href = link.attributes.get("href")
        if href:
            f.write(f"{indent}Link #{i}: {node_text(link)} -> {href}\n")


def write_catalog_report(page: ParsedPage, f: TextIO) -> None:
    """Selector hit counts, catalog blocks and category links of the catalog root."""
    f.write("=== CATALOG STRUCTURE ===\n")
    f.write(f"URL: {page.url}\n")
    f.write(f"Title: {page.title()}\n\n")

    for selector in CATALOG_SELECTORS:
        elements = page.css(selector)
        f.write(f"Selector: {selector}\n")
        f.write(f"Elements found: {len(elements)}\n")
        for i, element in enumerate(elements[:SAMPLE_SIZE], start=1):
            f.write(f"Element #{i} class: {element.attributes.get('class') or ''}\n")
            _write_links(f, element.css("a"))
        f.write("---\n")

    f.write("\n=== CATALOG BLOCKS ===\n")
    for block in page.css("div[class*='catalog'], div[id*='catalog']"):
        links = block.css("a")
        f.write(
            f"Block class={block.attributes.get('class') or ''!r} "
            f"id={block.attributes.get('id') or ''!r}: {len(links)} links\n"
        )
        _write_links(f, links, indent="    ")

    f.write("\n=== CATEGORY LINKS ===\n")
    _write_links(f, page.css("a[href^='/catalog/']"), indent="")


def write_category_report(page: ParsedPage, f: TextIO) -> None:
    """Subcategory and product-card probes for a category listing page."""
    f.write("=== CATEGORY PAGE STRUCTURE ===\n")
    f.write(f"URL: {page.url}\n")
    f.write(f"Title: {page.title()}\n\n")

    f.write("=== SUBCATEGORIES ===\n")
    for selector in SUBCATEGORY_SELECTORS:
        elements = page.css(selector)
        f.write(f"Selector: {selector}\n")
        f.write(f"Elements found: {len(elements)}\n")
        _write_links(f, [e for e in elements if e.attributes.get("href")])
        f.write("---\n")

    f.write("\n=== PRODUCTS ===\n")
    for selector in PRODUCT_SELECTORS:
        elements = page.css(selector)
        f.write(f"Selector: {selector}\n")
        f.write(f"Elements found: {len(elements)}\n")
        for i, element in enumerate(elements[:3], start=1):
            f.write(f"Product #{i} HTML:\n{element.html}\n")
            _write_links(f, element.css("a"))
            f.write("---\n")
        f.write("===\n")

    product_links = sorted({
        link.attributes["href"]
        for link in page.css("a[href]")
        if ".html" in (link.attributes.get("href") or "")
    })
    f.write(f"\nFound {len(product_links)} unique links to possible products\n")
    for i, href in enumerate(product_links[:SAMPLE_SIZE], start=1):
        f.write(f"  Link #{i}: {href}\n")


def write_pagination_report(page: ParsedPage, parser: CatalogSiteParser, page_param: str, f: TextIO) -> bool:
    """Pagination markup, scripts and each heuristic's verdict; returns the final decision."""
    f.write("=== PAGINATION INSPECTION ===\n")
    f.write(f"URL: {page.url}\n\n")

    f.write("=== PAGINATION ELEMENTS ===\n")
    for selector in PAGINATION_SELECTORS:
        elements = page.css(selector)
        f.write(f"Selector: {selector}\n")
        f.write(f"Elements found: {len(elements)}\n")
        for element in elements:
            f.write(f"HTML:\n{element.html}\n")
            _write_links(f, element.css("a"))
        f.write("---\n")

    f.write(f"\n=== LINKS WITH {page_param} ===\n")
    page_links = [
        link for link in page.css("a[href]")
        if page_param in (link.attributes.get("href") or "")
    ]
    for i, link in enumerate(page_links, start=1):
        f.write(f"Link #{i}: {node_text(link)} -> {link.attributes.get('href')}\n")

    f.write("\n=== PAGINATION SCRIPTS ===\n")
    markers = (CURRENT_PAGE_VAR, TOTAL_PAGES_VAR, AJAX_PAGINATION_MARKER, AJAX_PAGE_TOKEN)
    for i, script in enumerate(page.css("script"), start=1):
        source = script.text(deep=True)
        if any(marker in source for marker in markers):
            f.write(f"Script #{i}:\n{source}\n---\n")

    f.write("\n=== HEURISTICS ===\n")
    for name, verdict in evaluate_heuristics(page, page.url, page_param):
        f.write(f"{name}: {verdict}\n")

    records, suggested = parser.parse_category_page(page, CategoryRef(name="Inspection", url=page.url))
    decision = suggested or has_next_page(page, page.url, page_param)

    f.write("\n=== RESULT ===\n")
    f.write(f"Records found: {len(records)}\n")
    f.write(f"Extractor suggests next page: {suggested}\n")
    f.write(f"Has next page: {decision}\n")
    return decision


@asynccontextmanager
async def _client_scope(config: Settings, client: Optional[httpx.AsyncClient]):
    """Yield the caller's client as-is, or a new one closed on exit."""
    if client is not None:
        yield client
        return
    async with build_client(config) as http:
        yield http


async def inspect_site(
    config: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
    output_dir: str | Path = ".",
) -> List[Path]:
    """Write structure reports for the catalog root and a sample category."""
    config = config or default_settings
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    async with _client_scope(config, client) as http:
        catalog = await fetch_page(http, config.catalog_url, config.catalog_max_retries, config.request_delay)
        category = await fetch_page(http, config.sample_category_url, config.catalog_max_retries, config.request_delay)

    catalog_path = output_dir / "catalog_structure.txt"
    with catalog_path.open("w", encoding="utf-8") as f:
        write_catalog_report(catalog, f)
    logger.info(f"Catalog structure saved to {catalog_path}")

    category_path = output_dir / "category_structure.txt"
    with category_path.open("w", encoding="utf-8") as f:
        write_category_report(category, f)
    logger.info(f"Category structure saved to {category_path}")

    return [catalog_path, category_path]


async def inspect_pagination(
    url: str,
    config: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
    output_dir: str | Path = ".",
) -> Path:
    """Write a pagination report for one category page."""
    config = config or default_settings
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    async with _client_scope(config, client) as http:
        page = await fetch_page(http, url, config.catalog_max_retries, config.request_delay)

    path = output_dir / "pagination_structure.txt"
    with path.open("w", encoding="utf-8") as f:
        decision = write_pagination_report(page, CatalogSiteParser(config.base_url), config.page_param, f)
    logger.info(f"Pagination inspection saved to {path} (has next page: {decision})")
    return path
