"""
Free-item cache.

Remembers, across runs, which pages and blocks were found to be "free"
(not worth processing), so later runs skip them without opening them.
"""

import json
from pathlib import Path
from typing import List, Optional, Set, Union

import structlog
from pydantic import ValidationError

from blockcrawl.models.config import PersistenceConfig
from blockcrawl.models.free_record import FreeRecordSnapshot
from blockcrawl.utils.atomic_write import (
    WriteSequencer,
    atomic_write_json,
    atomic_write_json_sync,
)
from blockcrawl.utils.paths import normalize_page_path

logger = structlog.get_logger()


class FreeListCache:
    """Persisted sets of free page paths and free block names"""

    def __init__(
        self,
        free_file: Union[str, Path],
        persistence: Optional[PersistenceConfig] = None,
    ):
        self.free_file = Path(free_file)
        self.persistence = persistence or PersistenceConfig()
        self._pages: Set[str] = set()
        self._blocks: Set[str] = set()
        self._writes = WriteSequencer()

    async def initialize(self) -> None:
        """Load existing record. A missing file means empty sets."""
        if not self.free_file.exists():
            logger.debug("free_record_not_found", path=str(self.free_file))
            return

        try:
            with open(self.free_file, "r", encoding="utf-8") as f:
                record = FreeRecordSnapshot.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("free_record_load_failed", path=str(self.free_file), error=str(e))
            return

        self._pages.update(normalize_page_path(p) for p in record.pages)
        self._blocks.update(record.blocks)

        logger.info(
            "free_record_loaded",
            pages=len(self._pages),
            blocks=len(self._blocks),
        )

    def add_free_page(self, page_path: str) -> None:
        self._pages.add(normalize_page_path(page_path))

    def add_free_block(self, block_name: str) -> None:
        self._blocks.add(block_name)

    def get_free_pages(self) -> List[str]:
        return sorted(self._pages)

    def get_free_blocks(self) -> List[str]:
        return sorted(self._blocks)

    def is_free_page(self, page_path: str) -> bool:
        return normalize_page_path(page_path) in self._pages

    def is_free_block(self, block_name: str) -> bool:
        return block_name in self._blocks

    def _document(self) -> dict:
        return FreeRecordSnapshot(
            pages=sorted(self._pages),
            blocks=sorted(self._blocks),
        ).to_document()

    async def save(self) -> None:
        """
        Persist the record. Always writes.

        Raises:
            PersistenceError: If the atomic write failed after retries
        """
        generation = self._writes.issue()
        await atomic_write_json(
            self.free_file, self._document(), self.persistence, self._writes, generation
        )
        logger.debug("free_record_saved", pages=len(self._pages), blocks=len(self._blocks))

    def save_sync(self) -> None:
        """Blocking save for the shutdown path."""
        generation = self._writes.issue()
        atomic_write_json_sync(
            self.free_file, self._document(), self.persistence, self._writes, generation
        )
        logger.info("free_record_saved_sync", pages=len(self._pages), blocks=len(self._blocks))
