"""End-to-end tests for the harvest engine against a mocked site."""

import httpx
import pytest

from harvester.config import Settings
from harvester.ingest.errors import CategoryDiscoveryError
from harvester.ingest.harvest_engine import HarvestEngine

BASE = "https://shop.test"

CATALOG_HTML = """
<html><head><meta charset="utf-8"></head><body>
  <a href="/catalog/lathes_cnc/">Lathes</a>
  <a href="/catalog/mills_cnc/">Mills</a>
  <a href="/catalog/broken_cat/">Broken</a>
</body></html>
"""


def listing(ids, next_page=None) -> str:
    cards = "".join(
        f'<div data-product-id="{i}"><a class="productCard__name" href="/catalog/item_{i}.html">Item {i}</a></div>'
        for i in ids
    )
    nav = f'<a rel="next" href="?PAGEN_2={next_page}">next</a>' if next_page else ""
    return f'<html><head><meta charset="utf-8"></head><body>{cards}{nav}</body></html>'


LISTINGS = {
    ("/catalog/lathes_cnc/", 1): listing(range(1, 6), next_page=2),
    ("/catalog/lathes_cnc/", 2): listing(range(6, 9)),
    # Id 8 is listed in both categories
    ("/catalog/mills_cnc/", 1): listing([8, 9, 10]),
}


class FakeSite:
    """Routes mocked requests to canned catalog, listing and detail pages."""

    def __init__(self, catalog_status: int = 200):
        self.catalog_status = catalog_status
        self.paths = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.paths.append(path)

        if path == "/catalog/":
            if self.catalog_status != 200:
                return httpx.Response(self.catalog_status)
            return httpx.Response(200, text=CATALOG_HTML)

        if path.endswith(".html"):
            item = path.rsplit("_", 1)[-1].removesuffix(".html")
            return httpx.Response(
                200,
                text=f'<html><body><div class="product__description">About {item}</div>'
                f'<ul class="product-features"><li>Spec {item}</li></ul></body></html>',
            )

        page = int(request.url.params.get("PAGEN_2", "1"))
        body = LISTINGS.get((path, page))
        if body is None:
            return httpx.Response(500)
        return httpx.Response(200, text=body)


class TestHarvestEngine:
    """Tests for HarvestEngine.run."""

    def setup_method(self):
        self.config = Settings(
            base_url=BASE,
            catalog_url=f"{BASE}/catalog/",
            request_delay_ms=0,
            catalog_max_retries=1,
            page_max_retries=1,
            detail_max_retries=1,
            fetch_concurrency=2,
            enrich_concurrency=3,
            log_to_file=False,
        )

    def engine_for(self, site: FakeSite) -> HarvestEngine:
        client = httpx.AsyncClient(transport=httpx.MockTransport(site))
        return HarvestEngine(self.config, client=client)

    @pytest.mark.asyncio
    async def test_full_run(self):
        site = FakeSite()
        engine = self.engine_for(site)

        result = await engine.run()

        assert [c.name for c in result.categories] == ["Lathes", "Mills", "Broken"]
        assert len(result.failures) == 1
        assert result.failures[0].category_name == "Broken"

        assert result.harvested_count == 11
        assert result.dedupe.collisions == 1
        assert result.dedupe.top_collision_id == "8"

        by_id = {r.id: r for r in result.records}
        assert sorted(by_id, key=int) == [str(i) for i in range(1, 11)]
        assert by_id["4"].description == "About 4"
        assert by_id["4"].features == ["Spec 4"]
        assert result.enrich_stats.enriched == 10

        await engine._client.aclose()

    @pytest.mark.asyncio
    async def test_skip_details(self):
        site = FakeSite()
        engine = self.engine_for(site)

        result = await engine.run(skip_details=True)

        assert len(result.records) == 10
        assert all(r.description == "" for r in result.records)
        assert result.enrich_stats is None
        assert not any(p.endswith(".html") for p in site.paths)

        await engine._client.aclose()

    @pytest.mark.asyncio
    async def test_explicit_categories_skip_discovery(self):
        site = FakeSite()
        engine = self.engine_for(site)

        result = await engine.run(
            category_urls=[f"{BASE}/catalog/mills_cnc/", f"{BASE}/catalog/mills_cnc/"],
            skip_details=True,
        )

        assert "/catalog/" not in site.paths
        assert [c.name for c in result.categories] == ["Mills Cnc"]
        assert sorted(r.id for r in result.records) == ["10", "8", "9"]

        await engine._client.aclose()

    @pytest.mark.asyncio
    async def test_limit_and_page_range(self):
        site = FakeSite()
        engine = self.engine_for(site)

        result = await engine.run(limit=1, end_page=1, skip_details=True)

        assert [c.name for c in result.categories] == ["Lathes"]
        assert len(result.records) == 5

        await engine._client.aclose()

    @pytest.mark.asyncio
    async def test_discovery_failure_is_fatal(self):
        engine = self.engine_for(FakeSite(catalog_status=503))

        with pytest.raises(CategoryDiscoveryError):
            await engine.run()

        await engine._client.aclose()


@pytest.mark.asyncio
async def test_broken_card_link_does_not_sink_the_run():
    broken_listing = (
        '<html><head><meta charset="utf-8"></head><body>'
        '<div data-product-id="90"><a class="productCard__name" href="http://[broken/item.html">Bad</a></div>'
        '<div data-product-id="91"><a class="productCard__name" href="/catalog/item_91.html">Good</a></div>'
        "</body></html>"
    )

    def handler(request):
        if request.url.path == "/catalog/broken_cat/":
            return httpx.Response(200, text=broken_listing)
        return FakeSite()(request)

    config = Settings(base_url=BASE, request_delay_ms=0, page_max_retries=1, detail_max_retries=1, log_to_file=False)
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        engine = HarvestEngine(config, client=client)
        result = await engine.run(
            category_urls=[f"{BASE}/catalog/mills_cnc/", f"{BASE}/catalog/broken_cat/"],
        )

    assert result.failures == []
    assert sorted(r.id for r in result.records) == ["10", "8", "9", "91"]
    assert {r.id: r for r in result.records}["91"].description == "About 91"


@pytest.mark.asyncio
async def test_unusable_category_url_fails_only_that_category():
    config = Settings(base_url=BASE, request_delay_ms=0, page_max_retries=1, log_to_file=False)
    async with httpx.AsyncClient(transport=httpx.MockTransport(FakeSite())) as client:
        engine = HarvestEngine(config, client=client)
        result = await engine.run(
            category_urls=["http://[broken/catalog/", f"{BASE}/catalog/mills_cnc/"],
            skip_details=True,
        )

    assert [f.category_url for f in result.failures] == ["http://[broken/catalog/"]
    assert sorted(r.id for r in result.records) == ["10", "8", "9"]
