"""
Compare recorded progress against the output tree.

Reports blocks recorded in progress.json that no longer exist on disk, and
blocks on disk that progress.json doesn't know about.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import structlog
from pydantic import ValidationError

from blockcrawl.models.checkpoint import CheckpointSnapshot, RebuildConfig
from blockcrawl.services.progress_rebuilder import ProgressRebuilder
from blockcrawl.utils.exceptions import PersistenceError
from blockcrawl.utils.predicates import BlockCompletionCheck

logger = structlog.get_logger()


@dataclass
class ProgressAudit:
    recorded_blocks: int = 0
    existing_blocks: int = 0
    blocks_on_disk: int = 0
    missing: List[str] = field(default_factory=list)
    unrecorded: List[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.missing and not self.unrecorded


async def audit_progress(
    progress_file: Path,
    output_dir: Path,
    config: RebuildConfig,
    manifest_file: Optional[Path] = None,
    completion_check: Optional[BlockCompletionCheck] = None,
) -> ProgressAudit:
    """
    Audit progress.json against the blocks actually written.

    Raises:
        PersistenceError: If progress.json is missing or unreadable
    """
    try:
        with open(progress_file, "r", encoding="utf-8") as f:
            snapshot = CheckpointSnapshot.model_validate(json.load(f))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise PersistenceError(
            f"Cannot read progress file: {e}", path=str(progress_file)
        ) from e

    rebuilder = ProgressRebuilder(
        output_dir=output_dir,
        config=config,
        manifest_file=manifest_file,
        completion_check=completion_check,
    )
    on_disk = await rebuilder.rebuild()

    audit = ProgressAudit(
        recorded_blocks=len(snapshot.completed_blocks),
        blocks_on_disk=len(on_disk.completed_blocks),
    )

    for block in snapshot.completed_blocks:
        if await rebuilder.completion_check.is_complete(block, rebuilder.output_dir):
            audit.existing_blocks += 1
        else:
            audit.missing.append(block)

    recorded = set(snapshot.completed_blocks)
    audit.unrecorded = sorted(on_disk.completed_blocks - recorded)

    logger.info(
        "progress_audited",
        recorded=audit.recorded_blocks,
        existing=audit.existing_blocks,
        on_disk=audit.blocks_on_disk,
        missing=len(audit.missing),
        unrecorded=len(audit.unrecorded),
    )
    return audit
