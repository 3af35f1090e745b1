"""Shared base for persisted state documents.

Every document written to the state directory (progress, free record,
mismatch record) is a complete JSON object with camelCase keys, a
human-readable ``lastUpdate`` timestamp and a ``version`` number.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

SNAPSHOT_VERSION = 1

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(moment: datetime | None = None) -> str:
    """Render a local timestamp for ``lastUpdate`` style fields."""
    return (moment or datetime.now()).strftime(TIMESTAMP_FORMAT)


class SnapshotModel(BaseModel):
    """Base for on-disk documents.

    Field names are snake_case in Python and camelCase on disk. Documents
    written before versioning existed are read as version 1; anything newer
    than ``SNAPSHOT_VERSION`` fails validation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    version: int = Field(default=SNAPSHOT_VERSION, ge=1)
    last_update: str = Field(default_factory=format_timestamp)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        if v > SNAPSHOT_VERSION:
            raise ValueError(
                f"Unsupported document version {v} (max {SNAPSHOT_VERSION})"
            )
        return v

    def to_document(self) -> dict:
        """Dump to the JSON-ready dict written to disk."""
        return self.model_dump(mode="json", by_alias=True)
