"""Tests for the site inspection reports."""

import io

import httpx
import pytest

from harvester.config import Settings
from harvester.ingest.catalog_parser import CatalogSiteParser
from harvester.ingest.page import parse_page
from harvester.inspect_site import (
    inspect_pagination,
    inspect_site,
    write_catalog_report,
    write_category_report,
    write_pagination_report,
)

BASE = "https://shop.test"

CATALOG_HTML = """
<html><head><title>Catalog</title></head><body>
  <div class="catalog-menu">
    <a href="/catalog/lathes_cnc/">Lathes</a>
    <a href="/catalog/mills_cnc/">Mills</a>
  </div>
</body></html>
"""

CATEGORY_HTML = """
<html><head><title>Lathes</title></head><body>
  <div data-product-id="1" class="productCard">
    <a class="productCard__name" href="/catalog/item_1.html">Lathe 1</a>
  </div>
  <div class="pagination">
    <a href="?PAGEN_2=2">2</a>
    <a class="modern-page-next" href="?PAGEN_2=2">Next</a>
  </div>
  <script>var NavPageNomer = 1; var NavPageCount = 4;</script>
</body></html>
"""


def test_catalog_report():
    out = io.StringIO()
    write_catalog_report(parse_page(CATALOG_HTML, url=f"{BASE}/catalog/"), out)
    report = out.getvalue()

    assert "=== CATALOG STRUCTURE ===" in report
    assert "Title: Catalog" in report
    assert "Selector: .catalog-menu\nElements found: 1" in report
    assert "Lathes -> /catalog/lathes_cnc/" in report


def test_category_report():
    out = io.StringIO()
    write_category_report(parse_page(CATEGORY_HTML, url=f"{BASE}/catalog/lathes_cnc/"), out)
    report = out.getvalue()

    assert "Selector: [data-product-id]\nElements found: 1" in report
    assert "Found 1 unique links to possible products" in report
    assert "/catalog/item_1.html" in report


def test_pagination_report_lists_each_heuristic():
    out = io.StringIO()
    page = parse_page(CATEGORY_HTML, url=f"{BASE}/catalog/lathes_cnc/")

    decision = write_pagination_report(page, CatalogSiteParser(BASE), "PAGEN_2", out)
    report = out.getvalue()

    assert decision is True
    assert "pagination_block: True" in report
    assert "nav_state_script: True" in report
    assert "ajax_pagination_script: False" in report
    assert "Records found: 1" in report
    assert "NavPageCount" in report


class TestInspectModes:
    """File-writing inspection entry points."""

    def setup_method(self):
        self.config = Settings(
            base_url=BASE,
            catalog_url=f"{BASE}/catalog/",
            sample_category_url=f"{BASE}/catalog/lathes_cnc/",
            request_delay_ms=0,
            catalog_max_retries=1,
            log_to_file=False,
        )

    @staticmethod
    def handler(request):
        if request.url.path == "/catalog/":
            return httpx.Response(200, text=CATALOG_HTML)
        return httpx.Response(200, text=CATEGORY_HTML)

    @pytest.mark.asyncio
    async def test_inspect_site_writes_reports(self, tmp_path):
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

        paths = await inspect_site(self.config, client, output_dir=tmp_path)

        assert [p.name for p in paths] == ["catalog_structure.txt", "category_structure.txt"]
        assert "CATALOG STRUCTURE" in paths[0].read_text(encoding="utf-8")
        assert "CATEGORY PAGE STRUCTURE" in paths[1].read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_inspect_pagination_writes_report(self, tmp_path):
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

        path = await inspect_pagination(f"{BASE}/catalog/lathes_cnc/", self.config, client, output_dir=tmp_path)

        assert path.name == "pagination_structure.txt"
        assert "Has next page: True" in path.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_caller_client_stays_open(self, tmp_path):
        async with httpx.AsyncClient(transport=httpx.MockTransport(self.handler)) as client:
            await inspect_pagination(f"{BASE}/catalog/lathes_cnc/", self.config, client, output_dir=tmp_path)
            await inspect_site(self.config, client, output_dir=tmp_path)

            assert not client.is_closed
