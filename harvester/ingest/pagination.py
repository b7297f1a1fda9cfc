"""Heuristics deciding whether a paginated category listing has another page.

Each heuristic is a pure predicate over a parsed page and the URL it was
fetched from. ``has_next_page`` evaluates them in order and stops at the
first one that fires. The cascade is tuned to the markup generations of a
Bitrix catalog; a site redesign can silently break any of them, so a false
negative truncates a category while a false positive costs one empty fetch.
"""

import re
from functools import lru_cache
from typing import Callable, Optional

from harvester.config import settings
from harvester.ingest.page import ParsedPage, is_disabled, node_text

Heuristic = Callable[[ParsedPage, str, str], bool]

# Explicit next/"show more" controls
NEXT_CONTROL_SELECTOR = "[data-pagination-button], [data-pagination-more]"
NEXT_CONTROL_ATTRS = ("data-pagination-button", "data-pagination-more")

PAGINATION_SELECTORS = [
    ".pagination", ".paginations", ".nav-links", ".pager",
    ".pages", ".pagenation", ".modern-page-navigation",
]

# Localized "next page" vocabulary (lowercase match)
NEXT_TEXT_MARKERS = ("след", "next", "показать еще", "показать ещё")
NEXT_CLASS_MARKERS = ("next", "button_next", "modern-page-next")

CURRENT_PAGE_VAR = "NavPageNomer"
TOTAL_PAGES_VAR = "NavPageCount"
AJAX_PAGINATION_MARKER = "bxajaxid"
AJAX_PAGE_TOKEN = "pagen"

_NAV_NUMBER_RE = {
    name: re.compile(re.escape(name) + r"[\"'\]\s]*[:=]+\s*[\"']?(\d+)")
    for name in (CURRENT_PAGE_VAR, TOTAL_PAGES_VAR)
}


@lru_cache(maxsize=8)
def _page_index_re(page_param: str) -> re.Pattern:
    return re.compile(r"(?<![\w])" + re.escape(page_param) + r"=(\d+)")


def page_index(value: Optional[str], page_param: str) -> Optional[int]:
    """Page index encoded in a URL or attribute value, if any."""
    if not value:
        return None
    match = _page_index_re(page_param).search(value)
    return int(match.group(1)) if match else None


def current_page_index(current_url: str, page_param: str) -> int:
    """Index of the page a URL points at; URLs without the parameter are page 1."""
    index = page_index(current_url, page_param)
    return index if index is not None else 1


def build_page_url(category_url: str, page: int, page_param: Optional[str] = None) -> str:
    """URL of the given page of a category listing (page 1 is the bare URL)."""
    page_param = page_param or settings.page_param
    if page <= 1:
        return category_url
    separator = "&" if "?" in category_url else "?"
    return f"{category_url}{separator}{page_param}={page}"


def has_next_control(page: ParsedPage, current_url: str, page_param: str) -> bool:
    """An enabled next/"show more" control targets a later page or is styled as next."""
    current = current_page_index(current_url, page_param)
    for node in page.css(NEXT_CONTROL_SELECTOR):
        if is_disabled(node):
            continue
        for attr in NEXT_CONTROL_ATTRS:
            target = page_index(node.attributes.get(attr), page_param)
            if target is not None and target > current:
                return True
        if "button_next" in (node.attributes.get("class") or ""):
            return True
    return False


def has_next_in_pagination_block(page: ParsedPage, current_url: str, page_param: str) -> bool:
    """A pagination container holds an enabled element that reads or links as next."""
    current = current_page_index(current_url, page_param)
    for selector in PAGINATION_SELECTORS:
        for container in page.css(selector):
            for node in container.css("a, span, div, button"):
                if is_disabled(node):
                    continue
                text = node_text(node).lower()
                css_class = node.attributes.get("class") or ""
                if any(marker in text for marker in NEXT_TEXT_MARKERS):
                    return True
                if any(marker in css_class for marker in NEXT_CLASS_MARKERS):
                    return True
                target = page_index(node.attributes.get("href"), page_param)
                if target is not None and target > current:
                    return True
    return False


def has_higher_page_link(page: ParsedPage, current_url: str, page_param: str) -> bool:
    """Any link on the page points at a later page.

    When the current URL carries no page index it is page 1 and any
    page-index link at all means more pages exist.
    """
    explicit = page_index(current_url, page_param)
    for link in page.css("a[href]"):
        target = page_index(link.attributes.get("href"), page_param)
        if target is None:
            continue
        if explicit is None or target > explicit:
            return True
    return False


def has_nav_state_script(page: ParsedPage, current_url: str, page_param: str) -> bool:
    """Bitrix navigation state shows the current page is not the last one."""
    html = page.html
    if CURRENT_PAGE_VAR not in html or TOTAL_PAGES_VAR not in html:
        return False

    current = _NAV_NUMBER_RE[CURRENT_PAGE_VAR].search(html)
    total = _NAV_NUMBER_RE[TOTAL_PAGES_VAR].search(html)
    if current and total:
        return int(current.group(1)) < int(total.group(1))
    return f"{CURRENT_PAGE_VAR}={TOTAL_PAGES_VAR}" not in html


def has_ajax_pagination_script(page: ParsedPage, current_url: str, page_param: str) -> bool:
    """A script wires up AJAX pagination with a page-index token."""
    for script in page.css("script"):
        source = script.text(deep=True)
        if AJAX_PAGINATION_MARKER in source and AJAX_PAGE_TOKEN in source.lower():
            return True
    return False


# Evaluation order matters: cheap structural checks first, raw-source scans last
HEURISTICS: list[tuple[str, Heuristic]] = [
    ("next_control", has_next_control),
    ("pagination_block", has_next_in_pagination_block),
    ("higher_page_link", has_higher_page_link),
    ("nav_state_script", has_nav_state_script),
    ("ajax_pagination_script", has_ajax_pagination_script),
]


def has_next_page(page: ParsedPage, current_url: str, page_param: Optional[str] = None) -> bool:
    """Whether a further page exists; true on the first heuristic that fires."""
    page_param = page_param or settings.page_param
    return any(heuristic(page, current_url, page_param) for _, heuristic in HEURISTICS)


def evaluate_heuristics(
    page: ParsedPage, current_url: str, page_param: Optional[str] = None
) -> list[tuple[str, bool]]:
    """Every heuristic's individual verdict, for diagnostics."""
    page_param = page_param or settings.page_param
    return [(name, heuristic(page, current_url, page_param)) for name, heuristic in HEURISTICS]
