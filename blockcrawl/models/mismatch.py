"""Data models for block-count mismatch records."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from blockcrawl.models.snapshot import SnapshotModel, format_timestamp


class MismatchItem(BaseModel):
    """A page whose located block count differs from the manifest count"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page_path: str
    expected_count: int = Field(..., ge=0)
    actual_count: int = Field(..., ge=0)
    timestamp: str = Field(default_factory=format_timestamp)


class MismatchSnapshot(SnapshotModel):
    """On-disk shape of mismatch.json"""

    total: int = 0
    mismatches: List[MismatchItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def fill_total(self) -> "MismatchSnapshot":
        self.total = len(self.mismatches)
        return self
