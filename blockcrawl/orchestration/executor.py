"""Concurrent page execution.

Runs a caller-supplied page routine over the manifest's work items with:
- Skips for pages already complete or known free
- Semaphore-bounded concurrency
- Per-item failure isolation (a failing page never affects its siblings)
- Completion callbacks that record progress, free items and mismatches
- Periodic checkpoint saves
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence

import structlog

from blockcrawl.models.concurrency import ConcurrencyConfig, RunSummary
from blockcrawl.models.manifest import PageResult, WorkItem
from blockcrawl.observability.metrics import (
    ACTIVE_ITEMS,
    PAGE_PROCESSING_DURATION,
    PAGES_PROCESSED,
)
from blockcrawl.orchestration.shutdown import ShutdownCoordinator
from blockcrawl.services.free_list_service import FreeListCache
from blockcrawl.services.mismatch_service import MismatchTracker
from blockcrawl.services.progress_service import ProgressStore
from blockcrawl.utils.exceptions import PersistenceError

logger = structlog.get_logger()

PageRoutine = Callable[[WorkItem], Awaitable[Optional[PageResult]]]


class ConcurrencyLimiter:
    """Admits at most ``limit`` holders at a time and records the peak."""

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self.active = 0
        self.peak = 0

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        async with self._semaphore:
            self.active += 1
            self.peak = max(self.peak, self.active)
            ACTIVE_ITEMS.inc()
            try:
                yield
            finally:
                self.active -= 1
                ACTIVE_ITEMS.dec()


class ConcurrentExecutor:
    """Dispatches pending pages through the limiter and tallies outcomes."""

    def __init__(
        self,
        config: ConcurrencyConfig,
        progress: ProgressStore,
        free_list: FreeListCache,
        mismatches: MismatchTracker,
        shutdown: Optional[ShutdownCoordinator] = None,
        limiter: Optional[ConcurrencyLimiter] = None,
    ):
        self.config = config
        self.progress = progress
        self.free_list = free_list
        self.mismatches = mismatches
        self.shutdown = shutdown
        self.limiter = limiter or ConcurrencyLimiter(config.max_concurrency)

        self.summary = RunSummary()
        self._completions_since_save = 0

    def _terminating(self) -> bool:
        return self.shutdown is not None and self.shutdown.is_terminating()

    async def execute_all(
        self, items: Sequence[WorkItem], routine: PageRoutine
    ) -> RunSummary:
        """Process every item; returns once all have settled.

        Skipped items count as completed. Never raises for item failures.
        """
        start_time = time.time()
        summary = RunSummary(total=len(items))
        self.summary = summary
        self._completions_since_save = 0

        pending: List[WorkItem] = []
        for item in items:
            key = item.page_key

            if self.progress.is_page_complete(key):
                summary.skipped_completed += 1
                continue

            if self.free_list.is_free_page(key):
                summary.skipped_free += 1
                self.free_list.add_free_page(key)
                continue

            pending.append(item)

        summary.completed = summary.skipped_completed + summary.skipped_free
        PAGES_PROCESSED.labels(status="skipped_completed").inc(summary.skipped_completed)
        PAGES_PROCESSED.labels(status="skipped_free").inc(summary.skipped_free)

        logger.info(
            "execution_started",
            total=summary.total,
            pending=len(pending),
            skipped_completed=summary.skipped_completed,
            skipped_free=summary.skipped_free,
            max_concurrency=self.limiter.limit,
        )

        await asyncio.gather(*(self._run_item(item, routine) for item in pending))

        summary.duration_seconds = round(time.time() - start_time, 2)

        logger.info(
            "execution_complete",
            total=summary.total,
            completed=summary.completed,
            failed=summary.failed,
            abandoned=summary.abandoned,
            peak_concurrency=self.limiter.peak,
            duration_seconds=summary.duration_seconds,
        )
        return summary

    def _progress_label(self) -> str:
        s = self.summary
        return f"{s.completed + s.failed}/{s.total}"

    def _abandon(self) -> None:
        self.summary.abandoned += 1
        PAGES_PROCESSED.labels(status="abandoned").inc()

    async def _run_item(self, item: WorkItem, routine: PageRoutine) -> None:
        if self._terminating():
            self._abandon()
            return

        async with self.limiter.slot():
            if self._terminating():
                self._abandon()
                return

            with structlog.contextvars.bound_contextvars(page=item.page_key):
                start = time.monotonic()
                try:
                    result = await routine(item)
                except Exception as e:
                    # Errors caused by shutdown tearing down the browser aren't failures
                    if self._terminating():
                        self._abandon()
                        return

                    self.summary.failed += 1
                    PAGES_PROCESSED.labels(status="failed").inc()
                    logger.error(
                        "page_failed",
                        progress=self._progress_label(),
                        error_type=type(e).__name__,
                        error=str(e).split("\n")[0],
                    )
                    logger.debug("page_failed_detail", exc_info=True)
                    return
                finally:
                    PAGE_PROCESSING_DURATION.observe(time.monotonic() - start)

                self._on_item_complete(item, result)
                self.summary.completed += 1
                PAGES_PROCESSED.labels(status="completed").inc()
                logger.info("page_complete", progress=self._progress_label())

        await self._maybe_checkpoint()

    def _on_item_complete(self, item: WorkItem, result: Optional[PageResult]) -> None:
        """Apply a finished page's outcome to the shared state."""
        key = item.page_key

        if result is not None:
            if result.free:
                self.free_list.add_free_page(key)
                logger.info("page_free_skipped")

            for block in result.completed_blocks:
                self.progress.mark_block_complete(block)

            for block in result.free_blocks:
                self.free_list.add_free_block(block)

            expected = item.expected_child_count
            actual = result.actual_child_count
            if (
                not result.free
                and expected is not None
                and actual is not None
                and expected != actual
            ):
                self.mismatches.add_mismatch(key, expected, actual)

        self.progress.mark_page_complete(key)

    async def _maybe_checkpoint(self) -> None:
        interval = self.config.checkpoint_interval
        if not interval:
            return

        self._completions_since_save += 1
        if self._completions_since_save < interval:
            return

        self._completions_since_save = 0
        try:
            await self.progress.save_progress()
        except PersistenceError as e:
            # The final save at cleanup still surfaces persistent failures
            logger.error("periodic_checkpoint_failed", error=str(e))

    def log_current_statistics(self) -> None:
        s = self.summary
        logger.info(
            "execution_statistics",
            completed=s.completed,
            failed=s.failed,
            abandoned=s.abandoned,
            total=s.total,
        )
