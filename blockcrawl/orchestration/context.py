"""Execution context: owns the state stores for one crawl run."""

from typing import Optional

import structlog

from blockcrawl.models.config import CrawlerConfig
from blockcrawl.orchestration.executor import ConcurrencyLimiter
from blockcrawl.services.free_list_service import FreeListCache
from blockcrawl.services.mismatch_service import MismatchTracker
from blockcrawl.services.progress_service import ProgressStore
from blockcrawl.utils.predicates import (
    BlockCompletionCheck,
    FreeDetector,
    resolve_free_detector,
)

logger = structlog.get_logger()


class ExecutionContext:
    """Shared state for an execution run"""

    def __init__(
        self,
        config: CrawlerConfig,
        progress: ProgressStore,
        free_list: FreeListCache,
        mismatches: MismatchTracker,
        free_detector: Optional[FreeDetector] = None,
    ):
        self.config = config
        self.progress = progress
        self.free_list = free_list
        self.mismatches = mismatches
        self.free_detector = free_detector or resolve_free_detector(config.skip_free)
        self.limiter = ConcurrencyLimiter(config.concurrency.max_concurrency)

    @classmethod
    def from_config(
        cls,
        config: CrawlerConfig,
        completion_check: Optional[BlockCompletionCheck] = None,
        free_detector: Optional[FreeDetector] = None,
    ) -> "ExecutionContext":
        """Build the stores at the per-site locations the config names."""
        progress = ProgressStore(
            progress_file=config.progress_file,
            output_dir=config.site_output_dir,
            config=config.progress,
            manifest_file=config.manifest_path,
            persistence=config.persistence,
            completion_check=completion_check,
        )
        free_list = FreeListCache(config.free_file, persistence=config.persistence)
        mismatches = MismatchTracker(config.mismatch_file, persistence=config.persistence)
        return cls(config, progress, free_list, mismatches, free_detector=free_detector)

    async def initialize(self) -> None:
        await self.progress.initialize()
        await self.free_list.initialize()
        await self.mismatches.initialize()

        logger.info(
            "execution_context_initialized",
            site=self.config.site,
            completed_pages=self.progress.completed_page_count,
            completed_blocks=self.progress.completed_block_count,
            free_pages=len(self.free_list.get_free_pages()),
        )

    async def cleanup(self) -> None:
        """Persist progress, free record and mismatches.

        Raises:
            PersistenceError: If any document could not be written
        """
        await self.progress.save_progress()
        await self.free_list.save()
        await self.mismatches.save()

        logger.info(
            "execution_state_saved",
            completed_pages=self.progress.completed_page_count,
            completed_blocks=self.progress.completed_block_count,
        )

    def cleanup_sync(self) -> None:
        """Blocking flush for the signal path. Each document is attempted."""
        errors = []
        for document, save in (
            ("progress", self.progress.save_progress_sync),
            ("free", self.free_list.save_sync),
            ("mismatch", self.mismatches.save_sync),
        ):
            try:
                save()
            except Exception as e:
                logger.error("state_flush_failed", document=document, error=str(e))
                errors.append(e)

        if errors:
            raise errors[0]
