"""Data model for the free-item record."""

from typing import List

from pydantic import Field

from blockcrawl.models.snapshot import SnapshotModel


class FreeRecordSnapshot(SnapshotModel):
    """On-disk shape of free.json (both lists sorted)"""

    pages: List[str] = Field(default_factory=list)
    blocks: List[str] = Field(default_factory=list)
