"""Unit tests for block-count mismatch tracking"""

import json

import pytest

from blockcrawl.models.config import PersistenceConfig
from blockcrawl.services.mismatch_service import MismatchTracker


@pytest.fixture
def mismatch_file(tmp_path):
    return tmp_path / "mismatch.json"


@pytest.fixture
def tracker(mismatch_file):
    return MismatchTracker(mismatch_file, persistence=PersistenceConfig(retry_delay_seconds=0))


def test_latest_observation_wins(tracker):
    tracker.add_mismatch("docs/grid", expected_count=10, actual_count=7)
    tracker.add_mismatch("docs/grid", expected_count=10, actual_count=9)

    assert tracker.mismatch_count == 1
    assert tracker.has_mismatch("docs/grid")
    item = tracker.get_mismatches()[0]
    assert item.actual_count == 9
    assert item.expected_count == 10


@pytest.mark.asyncio
async def test_empty_tracker_writes_nothing(tracker, mismatch_file):
    assert await tracker.save() is False
    assert tracker.save_sync() is False
    assert not mismatch_file.exists()


@pytest.mark.asyncio
async def test_save_writes_sorted_camel_case_document(tracker, mismatch_file):
    tracker.add_mismatch("b/page", 3, 2)
    tracker.add_mismatch("a/page", 5, 6)

    assert await tracker.save() is True

    document = json.loads(mismatch_file.read_text(encoding="utf-8"))
    assert document["total"] == 2
    assert [m["pagePath"] for m in document["mismatches"]] == ["a/page", "b/page"]
    first = document["mismatches"][0]
    assert first["expectedCount"] == 5
    assert first["actualCount"] == 6
    assert "timestamp" in first


@pytest.mark.asyncio
async def test_initialize_merges_previous_record(tracker, mismatch_file):
    tracker.add_mismatch("old/page", 4, 1)
    tracker.save_sync()

    reloaded = MismatchTracker(mismatch_file)
    await reloaded.initialize()
    reloaded.add_mismatch("new/page", 2, 1)

    assert reloaded.has_mismatch("old/page")
    assert reloaded.mismatch_count == 2


@pytest.mark.asyncio
async def test_unreadable_record_is_ignored(mismatch_file):
    mismatch_file.write_text('{"mismatches": "nope"}')

    tracker = MismatchTracker(mismatch_file)
    await tracker.initialize()

    assert tracker.mismatch_count == 0
