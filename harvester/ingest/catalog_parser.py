"""Site-specific extraction of categories, listing records and product details."""

import logging
from typing import List, Optional, Tuple
from urllib.parse import urljoin

from harvester.config import settings
from harvester.ingest.base import CategoryRef, DetailRecord, Record
from harvester.ingest.page import ParsedPage, node_text, squash_text

logger = logging.getLogger(__name__)

# Longest link text accepted as a category name
MAX_CATEGORY_NAME_LENGTH = 100

DESCRIPTION_SELECTORS = [".product__description", ".product-description", ".description"]
FEATURE_SELECTORS = ".product__specs tr, .product-features li, .specifications li"


class CatalogSiteParser:
    """Parser for the catalog site's category, listing and product pages."""

    def __init__(self, base_url: Optional[str] = None):
        self.base_url = (base_url or settings.base_url).rstrip("/")

    def absolute(self, href: str) -> str:
        return urljoin(self.base_url + "/", href)

    def discover_categories(self, page: ParsedPage) -> List[CategoryRef]:
        """
        Collect category links from the catalog root page.

        Args:
            page: Parsed catalog page

        Returns:
            Categories in document order, deduplicated by URL
        """
        categories: List[CategoryRef] = []
        seen: set[str] = set()

        for link in page.css('a[href^="/catalog/"]'):
            href = link.attributes.get("href") or ""
            # Category slugs use underscores; product pages end in .html
            if "_" not in href or ".html" in href:
                continue
            name = node_text(link)
            if not name or len(name) >= MAX_CATEGORY_NAME_LENGTH:
                continue
            try:
                url = self.absolute(href)
            except ValueError as e:
                logger.warning(f"Skipping category link {href!r} on {page.url}: {e}")
                continue
            if url in seen:
                continue
            seen.add(url)
            categories.append(CategoryRef(name=name, url=url))

        logger.debug(f"Discovered {len(categories)} categories on {page.url}")
        return categories

    def parse_category_page(
        self, page: ParsedPage, category: CategoryRef
    ) -> Tuple[List[Record], bool]:
        """
        Extract product cards from a category listing page.

        Args:
            page: Parsed listing page
            category: Category the page belongs to

        Returns:
            (records, suggested_has_more) where the suggestion comes from a
            rel="next" link
        """
        records: List[Record] = []

        for card in page.css("[data-product-id]"):
            product_id = card.attributes.get("data-product-id") or ""

            name_elem = card.css_first(".productCard__name")
            href = name_elem.attributes.get("href") if name_elem else None
            if not href:
                continue
            try:
                url = self.absolute(href)
            except ValueError as e:
                logger.warning(f"Skipping card id={product_id} on {page.url}: unusable link {href!r} ({e})")
                continue

            image_url = ""
            img = card.css_first(".productCard__preview img")
            if img is not None:
                src = img.attributes.get("src") or img.attributes.get("data-src")
                if src:
                    try:
                        image_url = self.absolute(src)
                    except ValueError:
                        logger.debug(f"Ignoring unusable image {src!r} of card id={product_id}")

            features = [
                text for text in (node_text(p) for p in card.css(".productCard__params p"))
                if text
            ]

            records.append(Record(
                id=product_id.strip(),
                name=node_text(name_elem),
                url=url,
                price=node_text(card.css_first(".productCard__price")),
                image_url=image_url,
                category=category.name,
                features=features,
            ))

        suggested_has_more = page.css_first('a[rel="next"]') is not None
        return records, suggested_has_more

    def parse_detail_page(self, page: ParsedPage, url: str) -> DetailRecord:
        """Extract description and specification rows from a product page."""
        description = ""
        for selector in DESCRIPTION_SELECTORS:
            description = node_text(page.css_first(selector))
            if description:
                break

        features = [text for text in (squash_text(n) for n in page.css(FEATURE_SELECTORS)) if text]
        return DetailRecord(description=description, features=features)
