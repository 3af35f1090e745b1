"""
Progress reconstruction from the output tree.

Used when no usable progress.json exists. The page universe comes from the
manifest when one is available; otherwise the output tree is walked and the
first directory level that directly holds blocks is taken to be a page.

A page counts as complete as soon as it has at least one block on disk,
whatever its expected block count. This favours fast resume over exactness:
a page interrupted half-way is not revisited.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import structlog

from blockcrawl.models.checkpoint import BlockType, RebuildConfig
from blockcrawl.services.manifest_service import try_load_page_paths
from blockcrawl.utils.paths import block_id
from blockcrawl.utils.predicates import (
    BlockCompletionCheck,
    is_qualifying_file,
    resolve_completion_check,
)
from blockcrawl.utils.security import PathSanitizer, SecurityError

logger = structlog.get_logger()


@dataclass
class PageStats:
    total: int = 0
    completed: int = 0


@dataclass
class RebuildResult:
    completed_pages: Set[str] = field(default_factory=set)
    completed_blocks: Set[str] = field(default_factory=set)
    page_stats: Dict[str, PageStats] = field(default_factory=dict)
    source: str = "none"  # manifest, scan or none


class ProgressRebuilder:
    """Rebuild completed pages and blocks from files already written."""

    def __init__(
        self,
        output_dir: Path,
        config: RebuildConfig,
        manifest_file: Optional[Path] = None,
        completion_check: Optional[BlockCompletionCheck] = None,
    ):
        self.output_dir = Path(output_dir)
        self.config = config
        self.manifest_file = Path(manifest_file) if manifest_file else None
        self.completion_check = completion_check or resolve_completion_check(
            config.block_type, config.block_extensions
        )
        self.path_sanitizer = PathSanitizer(allowed_bases=[self.output_dir])

    async def rebuild(self) -> RebuildResult:
        result = RebuildResult()

        if not self.output_dir.is_dir():
            logger.info("rebuild_skipped_no_output", output_dir=str(self.output_dir))
            return result

        page_paths: List[str] = []
        if self.manifest_file is not None:
            page_paths = try_load_page_paths(self.manifest_file)

        if page_paths:
            result.source = "manifest"
            await self._scan_manifest_pages(page_paths, result)
        else:
            result.source = "scan"
            await self._scan_tree("", result)

        # Optimistic: any block on disk marks the page done
        result.completed_pages = {
            page for page, stats in result.page_stats.items() if stats.total > 0
        }

        logger.info(
            "rebuild_complete",
            source=result.source,
            block_type=self.config.block_type.value,
            pages_seen=len(result.page_stats),
            completed_pages=len(result.completed_pages),
            completed_blocks=len(result.completed_blocks),
        )
        return result

    async def _scan_manifest_pages(
        self, page_paths: List[str], result: RebuildResult
    ) -> None:
        for page_path in page_paths:
            try:
                page_dir = self.path_sanitizer.safe_path(self.output_dir, page_path)
            except SecurityError:
                logger.warning("rebuild_page_outside_output", page=page_path)
                continue

            if not page_dir.is_dir():
                continue

            files, dirs = self._list_dir(page_dir)
            await self._classify_page(page_path, files, dirs, result)

    async def _scan_tree(self, relative: str, result: RebuildResult) -> None:
        current = self.output_dir / relative if relative else self.output_dir
        files, dirs = self._list_dir(current)

        if self._is_page_dir(current, files, dirs):
            await self._classify_page(relative, files, dirs, result)
            # Blocks may have their own subdirectories; never descend into them
            return

        for name in dirs:
            child = f"{relative}/{name}" if relative else name
            await self._scan_tree(child, result)

    def _is_page_dir(self, current: Path, files: List[str], dirs: List[str]) -> bool:
        """Whether ``current`` directly holds blocks (manifest-less scan only).

        In directory mode only the top level of each subdirectory is
        inspected, unlike the recursive completeness check. Otherwise the
        output root itself would qualify as a page. The cost: a block whose
        files all sit deeper (``Hero/src/index.tsx``) is not seen as a
        block; ``Hero`` is taken as the page and ``src`` as its block.
        Supply a manifest to avoid the heuristic.
        """
        extensions = self.config.block_extensions

        if self.config.block_type == BlockType.FILE:
            return any(is_qualifying_file(f, extensions) for f in files)

        # Block directories hold a qualifying file at their top level
        for d in dirs:
            child_files, _ = self._list_dir(current / d)
            if any(is_qualifying_file(f, extensions) for f in child_files):
                return True
        return False

    async def _classify_page(
        self,
        page_path: str,
        files: List[str],
        dirs: List[str],
        result: RebuildResult,
    ) -> None:
        stats = result.page_stats.setdefault(page_path, PageStats())

        if self.config.block_type == BlockType.FILE:
            names = [f for f in files if is_qualifying_file(f, self.config.block_extensions)]
        else:
            names = dirs

        for name in names:
            block = block_id(page_path, name)
            stats.total += 1

            if await self.completion_check.is_complete(block, self.output_dir):
                result.completed_blocks.add(block)
                stats.completed += 1

    def _list_dir(self, directory: Path) -> Tuple[List[str], List[str]]:
        """Sorted (files, dirs) directly under ``directory``. Symlinked dirs are skipped."""
        files: List[str] = []
        dirs: List[str] = []

        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    if entry.is_dir(follow_symlinks=False):
                        dirs.append(entry.name)
                    elif entry.is_file():
                        files.append(entry.name)
        except OSError as e:
            logger.warning("rebuild_list_failed", path=str(directory), error=str(e))

        return sorted(files), sorted(dirs)
