"""
Block-count mismatch tracking.

A page whose located block count differs from the manifest count usually
means lazy loading didn't finish. Those pages are recorded for manual
follow-up; the latest observation per page wins.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional, Union

import structlog
from pydantic import ValidationError

from blockcrawl.models.config import PersistenceConfig
from blockcrawl.models.mismatch import MismatchItem, MismatchSnapshot
from blockcrawl.utils.atomic_write import (
    WriteSequencer,
    atomic_write_json,
    atomic_write_json_sync,
)

logger = structlog.get_logger()


class MismatchTracker:
    """Upsert map of page path -> mismatch observation"""

    def __init__(
        self,
        mismatch_file: Union[str, Path],
        persistence: Optional[PersistenceConfig] = None,
    ):
        self.mismatch_file = Path(mismatch_file)
        self.persistence = persistence or PersistenceConfig()
        self._mismatches: Dict[str, MismatchItem] = {}
        self._writes = WriteSequencer()

    async def initialize(self) -> None:
        """Load earlier observations; unreadable files are ignored."""
        if not self.mismatch_file.exists():
            return

        try:
            with open(self.mismatch_file, "r", encoding="utf-8") as f:
                record = MismatchSnapshot.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(
                "mismatch_record_load_failed",
                path=str(self.mismatch_file),
                error=str(e),
            )
            return

        for item in record.mismatches:
            self._mismatches[item.page_path] = item

    def add_mismatch(self, page_path: str, expected_count: int, actual_count: int) -> None:
        self._mismatches[page_path] = MismatchItem(
            page_path=page_path,
            expected_count=expected_count,
            actual_count=actual_count,
        )
        logger.warning(
            "block_count_mismatch",
            page=page_path,
            expected=expected_count,
            actual=actual_count,
        )

    def has_mismatch(self, page_path: str) -> bool:
        return page_path in self._mismatches

    def get_mismatches(self) -> List[MismatchItem]:
        return [self._mismatches[key] for key in sorted(self._mismatches)]

    @property
    def mismatch_count(self) -> int:
        return len(self._mismatches)

    def _document(self) -> Optional[dict]:
        """Snapshot to write, or None when there is nothing worth a file."""
        mismatches = self.get_mismatches()
        if not mismatches:
            logger.info("mismatch_none_recorded")
            return None
        return MismatchSnapshot(mismatches=mismatches).to_document()

    async def save(self) -> bool:
        """
        Persist mismatches; an empty map writes nothing.

        Returns:
            True if a file was written
        """
        document = self._document()
        if document is None:
            return False

        generation = self._writes.issue()
        await atomic_write_json(
            self.mismatch_file, document, self.persistence, self._writes, generation
        )
        logger.info("mismatch_record_saved", total=document["total"])
        return True

    def save_sync(self) -> bool:
        """Blocking variant of ``save`` for the shutdown path."""
        document = self._document()
        if document is None:
            return False

        generation = self._writes.issue()
        atomic_write_json_sync(
            self.mismatch_file, document, self.persistence, self._writes, generation
        )
        logger.info("mismatch_record_saved_sync", total=document["total"])
        return True
