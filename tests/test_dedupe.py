"""Tests for record deduplication."""

from harvester.ingest.base import Record
from harvester.ingest.dedupe import dedupe


def record(record_id: str, name: str = "Item", category: str = "") -> Record:
    return Record(id=record_id, name=name, url=f"https://shop.test/item_{record_id}.html", category=category)


def test_later_occurrence_wins():
    report = dedupe([record("42", category="A"), record("7"), record("42", category="B")])

    by_id = {r.id: r for r in report.records}
    assert len(report.records) == 2
    assert by_id["42"].category == "B"


def test_empty_ids_are_dropped():
    report = dedupe([record(""), record("1"), record("")])

    assert [r.id for r in report.records] == ["1"]


def test_idempotent():
    once = dedupe([record("1"), record("2"), record("1"), record("3")]).records
    twice = dedupe(once).records

    assert twice == once
    assert len(once) <= 4


def test_collision_statistics():
    report = dedupe([record("a"), record("b"), record("a"), record("a"), record("b"), record("c")])

    assert report.collisions == 2
    assert report.top_collision_id == "a"
    assert report.top_collision_count == 3


def test_no_collisions():
    report = dedupe([record("a"), record("b")])

    assert report.collisions == 0
    assert report.top_collision_id is None
    assert report.top_collision_count == 0


def test_empty_input():
    assert dedupe([]).records == []
