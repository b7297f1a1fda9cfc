"""Command-line entry point for the catalog harvester."""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from harvester.config import Settings, settings
from harvester.export.writers import FORMATS, save_output
from harvester.ingest.errors import CategoryDiscoveryError, HarvestError
from harvester.ingest.harvest_engine import HarvestEngine
from harvester.inspect_site import inspect_pagination, inspect_site
from harvester.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Harvest a paginated product catalog")
    parser.add_argument(
        "--inspect",
        action="store_true",
        help="Inspect the site structure instead of harvesting",
    )
    parser.add_argument(
        "--inspect-pagination",
        action="store_true",
        help="Inspect pagination of the first category given in --categories",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=0,
        help="Maximum number of categories to harvest (default: 0, no limit)",
    )
    parser.add_argument(
        "--format",
        choices=FORMATS,
        default=settings.output_format,
        help=f"Output format (default: {settings.output_format})",
    )
    parser.add_argument(
        "--skip-details",
        action="store_true",
        help="Skip fetching product detail pages",
    )
    parser.add_argument(
        "--categories",
        default="",
        help="Comma-separated category URLs (default: discover all categories)",
    )
    parser.add_argument(
        "--start-page",
        type=int,
        default=1,
        help="First listing page per category (default: 1)",
    )
    parser.add_argument(
        "--end-page",
        type=int,
        default=0,
        help="Last listing page per category (default: 0, all pages)",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=settings.fetch_concurrency,
        help=f"Concurrent category walks (default: {settings.fetch_concurrency})",
    )
    parser.add_argument(
        "--enrich-threads",
        type=int,
        default=settings.enrich_concurrency,
        help=f"Concurrent detail-page fetches (default: {settings.enrich_concurrency})",
    )
    parser.add_argument(
        "--delay",
        type=int,
        default=settings.request_delay_ms,
        help=f"Delay between requests in milliseconds (default: {settings.request_delay_ms})",
    )
    parser.add_argument(
        "--output-dir",
        default=settings.output_dir,
        help=f"Directory for output files (default: {settings.output_dir})",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def settings_from_args(args: argparse.Namespace, base: Optional[Settings] = None) -> Settings:
    """Copy of the settings with command-line overrides applied."""
    base = base or settings
    return base.model_copy(update={
        "fetch_concurrency": max(1, args.threads),
        "enrich_concurrency": max(1, args.enrich_threads),
        "request_delay_ms": max(0, args.delay),
        "output_format": args.format,
        "output_dir": args.output_dir,
        "debug": args.debug or base.debug,
    })


def split_categories(raw: str) -> List[str]:
    return [url.strip() for url in raw.split(",") if url.strip()]


async def run(args: argparse.Namespace, config: Settings) -> int:
    """Dispatch to the selected mode; returns the process exit status."""
    category_urls = split_categories(args.categories)

    if args.inspect:
        logger.info("Inspecting site structure")
        await inspect_site(config, output_dir=config.output_dir)
        return 0

    if args.inspect_pagination:
        if not category_urls:
            logger.error("Pagination inspection needs a category URL via --categories")
            return 2
        await inspect_pagination(category_urls[0], config, output_dir=config.output_dir)
        return 0

    logger.info(f"Starting catalog harvest from {config.base_url}")
    engine = HarvestEngine(config)
    try:
        result = await engine.run(
            category_urls=category_urls,
            limit=args.limit,
            start_page=args.start_page,
            end_page=args.end_page,
            skip_details=args.skip_details,
        )
    except CategoryDiscoveryError as e:
        logger.error(f"Cannot obtain category list: {e}")
        return 1

    if result.failures:
        logger.warning(f"{len(result.failures)} categories failed and were skipped")

    save_output(
        result.records,
        config.output_format,
        config.output_dir,
        json_filename=config.json_filename,
        csv_filename=config.csv_filename,
    )
    logger.info("Harvest complete")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = settings_from_args(args)
    setup_logging(config)

    if config.request_delay_ms != settings.request_delay_ms:
        logger.info(f"Request delay set to {config.request_delay_ms} ms")

    try:
        return asyncio.run(run(args, config))
    except HarvestError as e:
        # Only the inspection modes let fetch errors escape
        logger.error(f"Inspection failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
