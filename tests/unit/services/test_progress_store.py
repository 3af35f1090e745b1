"""Unit tests for the progress store"""

import asyncio
import json
import threading

import pytest

from blockcrawl.models.checkpoint import ProgressConfig, RebuildConfig
from blockcrawl.models.config import PersistenceConfig
from blockcrawl.services.progress_service import ProgressStore
from blockcrawl.utils import atomic_write as atomic_write_module


@pytest.fixture
def paths(tmp_path):
    state = tmp_path / ".crawler" / "example.com"
    output = tmp_path / "output" / "example.com"
    return state / "progress.json", output


@pytest.fixture
def persistence():
    return PersistenceConfig(retry_delay_seconds=0)


@pytest.fixture
def store(paths, persistence):
    progress_file, output_dir = paths
    return ProgressStore(progress_file, output_dir, persistence=persistence)


def _read(path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.mark.asyncio
async def test_initialize_empty(store, paths):
    """No file and no output means empty state and no write"""
    progress_file, _ = paths

    await store.initialize()

    assert store.completed_page_count == 0
    assert store.completed_block_count == 0
    assert store.has_progress is False
    assert not progress_file.exists()


@pytest.mark.asyncio
async def test_marks_are_monotonic_and_idempotent(store):
    await store.initialize()

    store.mark_page_complete("docs/buttons")
    store.mark_block_complete("docs/buttons/Primary")
    store.mark_page_complete("/docs/buttons")
    store.mark_block_complete("docs/buttons/Primary")

    assert store.is_page_complete("docs/buttons")
    assert store.is_block_complete("docs/buttons/Primary")
    assert store.completed_page_count == 1
    assert store.completed_block_count == 1


def test_mark_page_normalizes_leading_slash(store):
    store.mark_page_complete("/docs/cards")

    assert store.is_page_complete("docs/cards")


def test_block_ids_normalized_on_mark_and_lookup(store):
    store.mark_block_complete("/docs/buttons/hero.tsx")
    store.mark_block_complete("docs\\cards\\Grid.tsx")

    assert store.is_block_complete("docs/buttons/hero.tsx")
    assert store.is_block_complete("/docs/buttons/hero.tsx")
    assert store.is_block_complete("docs/cards/Grid.tsx")
    assert store.completed_block_count == 2
    assert store._snapshot().completed_blocks == [
        "docs/buttons/hero.tsx",
        "docs/cards/Grid.tsx",
    ]


@pytest.mark.asyncio
async def test_save_and_reload_round_trip(store, paths, persistence):
    progress_file, output_dir = paths
    store.mark_page_complete("b/page")
    store.mark_page_complete("a/page")
    store.mark_block_complete("a/page/Hero")

    assert await store.save_progress() is True

    document = _read(progress_file)
    assert document["completedPages"] == ["a/page", "b/page"]
    assert document["completedBlocks"] == ["a/page/Hero"]
    assert document["totalPages"] == 2
    assert document["totalBlocks"] == 1
    assert document["version"] == 1
    assert "lastUpdate" in document

    reloaded = ProgressStore(progress_file, output_dir, persistence=persistence)
    await reloaded.initialize()
    assert reloaded.is_page_complete("a/page")
    assert reloaded.is_page_complete("b/page")
    assert reloaded.is_block_complete("a/page/Hero")


@pytest.mark.asyncio
async def test_save_skipped_when_clean(store):
    store.mark_page_complete("p")
    assert await store.save_progress() is True
    assert store.is_dirty is False

    assert await store.save_progress() is False

    store.mark_page_complete("q")
    assert store.is_dirty is True
    assert await store.save_progress() is True


@pytest.mark.asyncio
async def test_never_overwrites_populated_file_with_empty_state(store, paths, persistence):
    progress_file, output_dir = paths
    store.mark_page_complete("done/page")
    await store.save_progress()

    # A second store whose rebuild finds nothing on disk
    other = ProgressStore(
        progress_file,
        output_dir,
        persistence=persistence,
    )
    await other.rebuild()
    assert other.is_dirty is True
    assert other.has_progress is False

    assert await other.save_progress() is False
    assert _read(progress_file)["completedPages"] == ["done/page"]


@pytest.mark.asyncio
async def test_clear_forces_empty_write(store, paths):
    progress_file, _ = paths
    store.mark_page_complete("p")
    await store.save_progress()

    await store.clear()

    assert store.has_progress is False
    document = _read(progress_file)
    assert document["completedPages"] == []
    assert document["totalPages"] == 0


@pytest.mark.asyncio
async def test_corrupt_file_triggers_rebuild(paths, persistence):
    progress_file, output_dir = paths
    progress_file.parent.mkdir(parents=True)
    progress_file.write_text("{not json", encoding="utf-8")

    page_dir = output_dir / "docs" / "buttons"
    page_dir.mkdir(parents=True)
    (page_dir / "Primary.tsx").write_text("export default 1")

    store = ProgressStore(progress_file, output_dir, persistence=persistence)
    await store.initialize()

    assert store.is_page_complete("docs/buttons")
    assert store.is_block_complete("docs/buttons/Primary.tsx")
    # Rebuilt state replaced the corrupt file
    assert _read(progress_file)["completedPages"] == ["docs/buttons"]


@pytest.mark.asyncio
async def test_unsupported_version_triggers_rebuild(paths, persistence):
    progress_file, output_dir = paths
    progress_file.parent.mkdir(parents=True)
    progress_file.write_text(
        json.dumps({"version": 99, "completedPages": ["x"], "completedBlocks": []})
    )

    store = ProgressStore(progress_file, output_dir, persistence=persistence)
    await store.initialize()

    assert not store.is_page_complete("x")


@pytest.mark.asyncio
async def test_rebuild_without_save(paths, persistence):
    progress_file, output_dir = paths
    (output_dir / "page").mkdir(parents=True)
    (output_dir / "page" / "Block.tsx").write_text("x")

    config = ProgressConfig(rebuild=RebuildConfig(save_to_progress=False))
    store = ProgressStore(progress_file, output_dir, config=config, persistence=persistence)
    await store.initialize()

    assert store.is_page_complete("page")
    assert not progress_file.exists()


@pytest.mark.asyncio
async def test_legacy_document_without_version_loads(paths, persistence):
    progress_file, output_dir = paths
    progress_file.parent.mkdir(parents=True)
    progress_file.write_text(
        json.dumps(
            {
                "completedPages": ["legacy"],
                "completedBlocks": ["legacy/One"],
                "totalPages": 7,
                "lastUpdate": "2024-01-01 00:00:00",
            }
        )
    )

    store = ProgressStore(progress_file, output_dir, persistence=persistence)
    await store.initialize()

    assert store.is_page_complete("legacy")
    assert store.is_block_complete("legacy/One")


@pytest.mark.asyncio
async def test_disabled_store_neither_loads_nor_saves(paths, persistence):
    progress_file, output_dir = paths
    progress_file.parent.mkdir(parents=True)
    progress_file.write_text(json.dumps({"completedPages": ["p"], "completedBlocks": []}))

    store = ProgressStore(
        progress_file,
        output_dir,
        config=ProgressConfig(enabled=False),
        persistence=persistence,
    )
    await store.initialize()
    store.mark_page_complete("q")

    assert not store.is_page_complete("p")
    assert await store.save_progress() is False
    assert store.save_progress_sync() is False


def test_save_progress_sync(store, paths):
    progress_file, _ = paths
    store.mark_page_complete("sync/page")

    assert store.save_progress_sync() is True
    assert _read(progress_file)["completedPages"] == ["sync/page"]
    assert store.is_dirty is False


def test_delete_progress_file(store, paths):
    progress_file, _ = paths
    assert store.delete_progress_file() is False

    store.mark_page_complete("p")
    store.save_progress_sync()

    assert store.delete_progress_file() is True
    assert not progress_file.exists()


@pytest.fixture
def held_first_write(monkeypatch):
    """Block the first atomic write in its worker thread until released"""
    release = threading.Event()
    started = threading.Event()
    original = atomic_write_module._write_once
    calls = []

    def write(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            started.set()
            release.wait(5)
        return original(*args, **kwargs)

    monkeypatch.setattr(atomic_write_module, "_write_once", write)
    return started, release


@pytest.mark.asyncio
async def test_shutdown_save_not_overwritten_by_slower_async_save(
    store, paths, held_first_write
):
    progress_file, _ = paths
    started, release = held_first_write

    store.mark_page_complete("a")
    pending = asyncio.create_task(store.save_progress())
    assert await asyncio.to_thread(started.wait, 5)

    store.mark_page_complete("b")
    assert store.save_progress_sync() is True

    release.set()
    assert await pending is False

    assert _read(progress_file)["completedPages"] == ["a", "b"]
    assert store.is_dirty is False


@pytest.mark.asyncio
async def test_marks_during_async_save_stay_dirty(store, paths, held_first_write):
    progress_file, _ = paths
    started, release = held_first_write

    store.mark_page_complete("a")
    pending = asyncio.create_task(store.save_progress())
    assert await asyncio.to_thread(started.wait, 5)

    store.mark_page_complete("b")
    release.set()
    assert await pending is True

    assert _read(progress_file)["completedPages"] == ["a"]
    assert store.is_dirty is True
    assert await store.save_progress() is True
    assert _read(progress_file)["completedPages"] == ["a", "b"]
