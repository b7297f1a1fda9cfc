"""Collapse harvested records to one per product id."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from harvester.ingest.base import Record

logger = logging.getLogger(__name__)


@dataclass
class DedupeReport:
    """Deduplicated records plus collision diagnostics."""

    records: List[Record] = field(default_factory=list)
    # Number of ids that occurred more than once
    collisions: int = 0
    top_collision_id: Optional[str] = None
    top_collision_count: int = 0


def dedupe(records: Iterable[Record]) -> DedupeReport:
    """
    Keep one record per id.

    The last occurrence of an id wins. Which duplicate carries the best
    data is undefined, so no field-level merge is attempted. Records with
    an empty id are dropped.
    """
    unique: dict[str, Record] = {}
    counts: Counter[str] = Counter()

    for record in records:
        if not record.id:
            continue
        unique[record.id] = record
        counts[record.id] += 1

    report = DedupeReport(records=list(unique.values()))
    duplicated = [(record_id, n) for record_id, n in counts.most_common() if n > 1]
    if duplicated:
        report.collisions = len(duplicated)
        report.top_collision_id, report.top_collision_count = duplicated[0]
        logger.info(
            f"Found {report.collisions} ids with duplicates; most duplicated: "
            f"{report.top_collision_id} ({report.top_collision_count} occurrences)"
        )
    return report
