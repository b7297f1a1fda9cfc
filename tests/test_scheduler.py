"""Tests for admission gates and the fan-in collector."""

import asyncio

import pytest

from harvester.ingest.base import CategoryRef, Record
from harvester.ingest.errors import BadStatus, CategoryWalkError
from harvester.ingest.scheduler import AdmissionGate, fan_in, harvest_categories


def categories(n: int) -> list[CategoryRef]:
    return [CategoryRef(name=f"cat{i}", url=f"https://shop.test/catalog/cat_{i}/") for i in range(n)]


def records_for(category: CategoryRef, n: int) -> list[Record]:
    return [
        Record(id=f"{category.name}-{i}", name=f"Item {i}", url=f"{category.url}item_{i}.html")
        for i in range(n)
    ]


class TestAdmissionGate:
    """Tests for AdmissionGate."""

    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            AdmissionGate(0)

    @pytest.mark.asyncio
    async def test_slot_released_on_error(self):
        gate = AdmissionGate(1, name="test")

        with pytest.raises(RuntimeError):
            async with gate.slot():
                assert gate.in_flight == 1
                raise RuntimeError("boom")

        assert gate.in_flight == 0

        # The single slot is available again
        async with gate.slot():
            assert gate.in_flight == 1

    @pytest.mark.asyncio
    async def test_never_exceeds_capacity(self):
        gate = AdmissionGate(3, name="test")
        active = 0
        peak = 0

        async def work():
            nonlocal active, peak
            async with gate.slot():
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(work() for _ in range(12)))

        assert peak == 3
        assert gate.peak_in_flight == 3
        assert gate.in_flight == 0


class TestFanIn:
    """Tests for fan_in."""

    @pytest.mark.asyncio
    async def test_collects_more_items_than_queue_holds(self):
        async def job(start):
            await asyncio.sleep(0)
            return range(start, start + 20)

        collected = await fan_in((job(i * 20) for i in range(5)), queue_size=1)

        assert sorted(collected) == list(range(100))

    @pytest.mark.asyncio
    async def test_no_jobs(self):
        assert await fan_in([], queue_size=4) == []

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates_after_jobs_finish(self):
        finished = []

        async def good():
            await asyncio.sleep(0.01)
            finished.append("good")
            return [1, 2]

        async def bad():
            raise ValueError("bug")

        with pytest.raises(ValueError, match="bug"):
            await fan_in([bad(), good()], queue_size=1)

        assert finished == ["good"]


class TestHarvestCategories:
    """Tests for harvest_categories."""

    @pytest.mark.asyncio
    async def test_walks_are_gated(self):
        gate = AdmissionGate(2, name="test")
        active = 0
        peak = 0

        async def walk(category):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return records_for(category, 3)

        result = await harvest_categories(categories(8), walk, gate, queue_size=2)

        assert peak <= 2
        assert gate.peak_in_flight <= 2
        assert len(result.records) == 24
        assert result.attempted == 8
        assert result.failures == []

    @pytest.mark.asyncio
    async def test_failed_category_is_isolated(self):
        gate = AdmissionGate(3, name="test")
        cats = categories(4)

        async def walk(category):
            if category is cats[1]:
                cause = BadStatus(f"{category.url}?PAGEN_2=2", 500)
                raise CategoryWalkError(category.name, category.url, 2, cause)
            return records_for(category, 5)

        result = await harvest_categories(cats, walk, gate)

        assert len(result.records) == 15
        assert not any(r.id.startswith("cat1-") for r in result.records)
        assert len(result.failures) == 1
        assert result.failures[0].category_name == "cat1"
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_records_within_category_keep_page_order(self):
        gate = AdmissionGate(1, name="test")

        async def walk(category):
            return records_for(category, 10)

        result = await harvest_categories(categories(1), walk, gate, queue_size=3)

        assert [r.id for r in result.records] == [f"cat0-{i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_unexpected_walk_error_is_isolated(self):
        gate = AdmissionGate(2, name="test")
        cats = categories(3)

        async def walk(category):
            if category is cats[0]:
                raise ValueError("Invalid IPv6 URL")
            return records_for(category, 2)

        result = await harvest_categories(cats, walk, gate)

        assert sorted(r.id for r in result.records) == ["cat1-0", "cat1-1", "cat2-0", "cat2-1"]
        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure.category_name == "cat0"
        assert isinstance(failure.cause, ValueError)
        assert gate.in_flight == 0
