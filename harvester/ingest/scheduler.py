"""Bounded fan-out of harvest work with a single result collector.

Two independently sized admission gates bound network access: one for
category walks (a walk fetches its pages one after another, so this also
bounds concurrent page fetches) and one for enrichment fetches. Producers
hand their finished output to one collector through a bounded queue; the
collector alone builds the final list.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Sequence, TypeVar

from harvester import metrics
from harvester.ingest.base import CategoryRef, Record
from harvester.ingest.errors import CategoryWalkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DONE = object()


class AdmissionGate:
    """Fixed-capacity counting gate with in-flight instrumentation."""

    def __init__(self, capacity: int, name: str = "fetch"):
        if capacity < 1:
            raise ValueError(f"gate capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self.name = name
        self._semaphore = asyncio.Semaphore(capacity)
        self.in_flight = 0
        self.peak_in_flight = 0

    @asynccontextmanager
    async def slot(self):
        """Hold one slot for the duration of the block; released on every exit."""
        async with self._semaphore:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            metrics.gate_in_flight.labels(gate=self.name).inc()
            try:
                yield
            finally:
                self.in_flight -= 1
                metrics.gate_in_flight.labels(gate=self.name).dec()


async def fan_in(jobs: Iterable[Awaitable[Iterable[T]]], queue_size: int = 100) -> List[T]:
    """
    Run jobs concurrently and collect their outputs through one queue.

    Each job runs as its own task and puts its items on a bounded queue
    (producers block when the collector falls behind). The collector stops
    once every job has finished and the queue is drained. Output order is
    unspecified.

    Raises:
        The first unexpected exception raised by a job, after all jobs finish
    """
    queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)

    async def run(job: Awaitable[Iterable[T]]) -> None:
        for item in await job:
            await queue.put(item)

    producers = [asyncio.create_task(run(job)) for job in jobs]

    async def close_when_done():
        try:
            return await asyncio.gather(*producers, return_exceptions=True)
        finally:
            await queue.put(_DONE)

    closer = asyncio.create_task(close_when_done())

    collected: List[T] = []
    while True:
        item = await queue.get()
        if item is _DONE:
            break
        collected.append(item)

    for outcome in await closer:
        if isinstance(outcome, BaseException):
            raise outcome
    return collected


@dataclass
class CategoryHarvest:
    """Outcome of walking a set of categories."""

    records: List[Record] = field(default_factory=list)
    attempted: int = 0
    failures: List[CategoryWalkError] = field(default_factory=list)


async def harvest_categories(
    categories: Sequence[CategoryRef],
    walk: Callable[[CategoryRef], Awaitable[List[Record]]],
    gate: AdmissionGate,
    queue_size: int = 100,
) -> CategoryHarvest:
    """
    Walk every category under the fetch gate and gather their records.

    A category that fails is logged and contributes nothing; other
    categories carry on.

    Args:
        categories: Categories to walk
        walk: Coroutine function walking one category
        gate: Fetch admission gate, held for a whole walk
        queue_size: Bound on the results queue

    Returns:
        CategoryHarvest with all records from successful walks
    """
    result = CategoryHarvest(attempted=len(categories))

    async def walk_one(category: CategoryRef) -> List[Record]:
        async with gate.slot():
            try:
                records = await walk(category)
            except CategoryWalkError as e:
                logger.error(f"Failed to harvest category {category.name} ({category.url}): {e}")
                result.failures.append(e)
                metrics.record_category_walk(False)
                return []
            except Exception as e:
                logger.exception(
                    f"Unexpected error harvesting category {category.name} ({category.url}): {e}"
                )
                # Page 0: the failing page is unknown
                result.failures.append(CategoryWalkError(category.name, category.url, 0, e))
                metrics.record_category_walk(False)
                return []
        metrics.record_category_walk(True)
        logger.info(f"Category {category.name} done: {len(records)} records")
        return records

    result.records = await fan_in((walk_one(c) for c in categories), queue_size)
    return result
