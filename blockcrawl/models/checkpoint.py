"""Data models for the checkpoint (progress) system."""

from enum import Enum
from typing import List, Set

from pydantic import BaseModel, ConfigDict, Field, model_validator

from blockcrawl.models.snapshot import SnapshotModel

DEFAULT_BLOCK_EXTENSIONS = [".tsx", ".ts", ".jsx", ".js", ".vue", ".svelte"]


class BlockType(str, Enum):
    """How a block is represented under its page directory."""

    FILE = "file"  # each qualifying file is one block
    DIRECTORY = "directory"  # each subdirectory is one block


class RebuildConfig(BaseModel):
    """Settings for reconstructing progress from the output tree"""

    model_config = ConfigDict(protected_namespaces=())

    block_type: BlockType = BlockType.FILE
    save_to_progress: bool = True
    block_extensions: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCK_EXTENSIONS), min_length=1
    )


class ProgressConfig(BaseModel):
    """Progress tracking configuration"""

    model_config = ConfigDict(protected_namespaces=())

    enabled: bool = True
    rebuild: RebuildConfig = Field(default_factory=RebuildConfig)


class CheckpointSnapshot(SnapshotModel):
    """On-disk shape of progress.json"""

    completed_blocks: List[str] = Field(default_factory=list)
    completed_pages: List[str] = Field(default_factory=list)
    total_blocks: int = 0
    total_pages: int = 0

    @model_validator(mode="after")
    def fill_totals(self) -> "CheckpointSnapshot":
        # Totals are redundant; trust the lists over stale counters.
        self.total_blocks = len(self.completed_blocks)
        self.total_pages = len(self.completed_pages)
        return self

    @classmethod
    def from_sets(cls, pages: Set[str], blocks: Set[str]) -> "CheckpointSnapshot":
        return cls(completed_blocks=sorted(blocks), completed_pages=sorted(pages))

    @property
    def has_progress(self) -> bool:
        return bool(self.completed_blocks or self.completed_pages)
