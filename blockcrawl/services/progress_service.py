"""
Progress store for resumable crawling.

Tracks completed pages and completed blocks, loads them from progress.json
at start-up (or rebuilds them from the output tree when the file is missing
or unusable) and persists them with atomic writes.
"""

import asyncio
import json
from pathlib import Path
from typing import Optional, Set, Tuple, Union

import structlog
from pydantic import ValidationError

from blockcrawl.models.checkpoint import CheckpointSnapshot, ProgressConfig
from blockcrawl.models.config import PersistenceConfig
from blockcrawl.services.progress_rebuilder import ProgressRebuilder, RebuildResult
from blockcrawl.utils.atomic_write import (
    WriteSequencer,
    atomic_write_json,
    atomic_write_json_sync,
)
from blockcrawl.utils.paths import normalize_block_id, normalize_page_path
from blockcrawl.utils.predicates import BlockCompletionCheck

logger = structlog.get_logger()

PathLike = Union[str, Path]


class ProgressStore:
    """
    Completed-page and completed-block sets with crash-safe persistence.

    Membership only grows during a run; ``clear()`` is the one way to
    shrink it.
    """

    def __init__(
        self,
        progress_file: PathLike,
        output_dir: PathLike,
        config: Optional[ProgressConfig] = None,
        manifest_file: Optional[PathLike] = None,
        persistence: Optional[PersistenceConfig] = None,
        completion_check: Optional[BlockCompletionCheck] = None,
    ):
        """
        Initialize progress store.

        Args:
            progress_file: Path to progress.json
            output_dir: Output root scanned by rebuild
            config: Progress configuration
            manifest_file: Optional collect.json used as rebuild page universe
            persistence: Atomic write settings
            completion_check: Override for per-block completeness during rebuild
        """
        self.progress_file = Path(progress_file)
        self.output_dir = Path(output_dir)
        self.config = config or ProgressConfig()
        self.persistence = persistence or PersistenceConfig()

        self.rebuilder = ProgressRebuilder(
            output_dir=self.output_dir,
            config=self.config.rebuild,
            manifest_file=Path(manifest_file) if manifest_file else None,
            completion_check=completion_check,
        )

        self._completed_pages: Set[str] = set()
        self._completed_blocks: Set[str] = set()
        # Marks are counted; the store is dirty while the newest mark is unsaved
        self._mark_seq = 0
        self._saved_seq = 0
        self._save_lock = asyncio.Lock()
        self._writes = WriteSequencer()

    async def initialize(self) -> None:
        """Load progress.json, or rebuild when it's missing or unusable."""
        if not self.config.enabled:
            logger.info("progress_disabled")
            return

        snapshot = self.read_snapshot()

        if snapshot is not None:
            self._completed_pages = set(snapshot.completed_pages)
            self._completed_blocks = set(snapshot.completed_blocks)
            logger.info(
                "progress_loaded",
                path=str(self.progress_file),
                pages=len(self._completed_pages),
                blocks=len(self._completed_blocks),
            )
            return

        await self.rebuild()

    async def rebuild(self) -> RebuildResult:
        """Replace in-memory state with what the output tree shows."""
        logger.info("progress_rebuilding", output_dir=str(self.output_dir))

        result = await self.rebuilder.rebuild()
        self._completed_pages = set(result.completed_pages)
        self._completed_blocks = set(result.completed_blocks)
        self._touch()

        if self.config.rebuild.save_to_progress and self.has_progress:
            await self.save_progress()

        return result

    def read_snapshot(self) -> Optional[CheckpointSnapshot]:
        """Parsed progress.json, or None if absent or invalid."""
        if not self.progress_file.exists():
            logger.debug("progress_file_not_found", path=str(self.progress_file))
            return None

        try:
            with open(self.progress_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            return CheckpointSnapshot.model_validate(data)

        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(
                "progress_load_failed",
                path=str(self.progress_file),
                error=str(e),
            )
            return None

    # ------------------------------------------------------------------
    # Queries and marks
    # ------------------------------------------------------------------

    def is_page_complete(self, page_path: str) -> bool:
        return normalize_page_path(page_path) in self._completed_pages

    def is_block_complete(self, block: str) -> bool:
        return normalize_block_id(block) in self._completed_blocks

    def mark_page_complete(self, page_path: str) -> None:
        self._completed_pages.add(normalize_page_path(page_path))
        self._touch()

    def mark_block_complete(self, block: str) -> None:
        self._completed_blocks.add(normalize_block_id(block))
        self._touch()

    @property
    def completed_page_count(self) -> int:
        return len(self._completed_pages)

    @property
    def completed_block_count(self) -> int:
        return len(self._completed_blocks)

    @property
    def has_progress(self) -> bool:
        return bool(self._completed_pages or self._completed_blocks)

    def _touch(self) -> None:
        self._mark_seq += 1

    @property
    def is_dirty(self) -> bool:
        return self._mark_seq > self._saved_seq

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _should_skip_save(self) -> bool:
        if not self.progress_file.exists():
            return False

        if not self.is_dirty:
            return True

        # Never overwrite a populated file with an empty one
        if not self.has_progress:
            existing = self.read_snapshot()
            if existing is not None and existing.has_progress:
                logger.warning(
                    "progress_save_skipped_empty",
                    path=str(self.progress_file),
                    existing_pages=len(existing.completed_pages),
                )
                return True

        return False

    def _snapshot(self) -> CheckpointSnapshot:
        return CheckpointSnapshot.from_sets(self._completed_pages, self._completed_blocks)

    def _take_snapshot(self) -> Tuple[dict, int, int]:
        """Document, the mark it covers and its write generation."""
        return self._snapshot().to_document(), self._mark_seq, self._writes.issue()

    def _record_saved(self, mark_seq: int) -> None:
        self._saved_seq = max(self._saved_seq, mark_seq)

    async def save_progress(self, force: bool = False) -> bool:
        """
        Persist progress atomically.

        A write whose snapshot is older than one already on disk (for
        instance a periodic save overtaken by the shutdown flush) is
        dropped.

        Args:
            force: Write even when the skip rules say otherwise

        Returns:
            True if this snapshot was written

        Raises:
            PersistenceError: If the atomic write failed after retries
        """
        if not self.config.enabled:
            return False

        async with self._save_lock:
            if not force and self._should_skip_save():
                return False

            # Snapshot on the loop thread; marks made during the write stay dirty
            document, mark_seq, generation = self._take_snapshot()
            committed = await atomic_write_json(
                self.progress_file, document, self.persistence, self._writes, generation
            )

        if not committed:
            logger.debug("progress_save_superseded", generation=generation)
            return False

        self._record_saved(mark_seq)
        logger.debug(
            "progress_saved",
            pages=document["totalPages"],
            blocks=document["totalBlocks"],
        )
        return True

    def save_progress_sync(self) -> bool:
        """
        Blocking save for the shutdown path.

        Safe to call while an async save is still writing; whichever
        snapshot is newer ends up on disk.

        Raises:
            PersistenceError: If the atomic write failed after retries
        """
        if not self.config.enabled or self._should_skip_save():
            return False

        document, mark_seq, generation = self._take_snapshot()
        committed = atomic_write_json_sync(
            self.progress_file, document, self.persistence, self._writes, generation
        )
        if not committed:
            return False

        self._record_saved(mark_seq)
        logger.info(
            "progress_saved_sync",
            pages=document["totalPages"],
            blocks=document["totalBlocks"],
        )
        return True

    async def clear(self) -> None:
        """Forget all progress and persist the empty state."""
        self._completed_pages.clear()
        self._completed_blocks.clear()
        self._touch()
        await self.save_progress(force=True)
        logger.info("progress_cleared", path=str(self.progress_file))

    def delete_progress_file(self) -> bool:
        """Remove progress.json. Returns True if a file was deleted."""
        if not self.progress_file.exists():
            return False

        self.progress_file.unlink()
        logger.info("progress_file_deleted", path=str(self.progress_file))
        return True
