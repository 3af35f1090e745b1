"""Execution orchestration.

Single entry point for a crawl run:

    context = ExecutionContext.from_config(config)
    orchestrator = ExecutionOrchestrator(context)
    summary = await orchestrator.run(manifest.to_work_items(), routine)
"""

import sys
from typing import Any, Callable, Optional, Sequence

import structlog

from blockcrawl.models.concurrency import RunSummary
from blockcrawl.models.manifest import WorkItem
from blockcrawl.observability.context import run_id_context
from blockcrawl.orchestration.context import ExecutionContext
from blockcrawl.orchestration.executor import ConcurrentExecutor, PageRoutine
from blockcrawl.orchestration.shutdown import ShutdownCoordinator
from blockcrawl.utils.exceptions import SetupError

logger = structlog.get_logger()


class ExecutionOrchestrator:
    """Initializes the context, runs the executor, and always flushes state.

    Attributes:
        context: Stores for this run
        shutdown: Signal coordinator whose callback is ``cleanup_sync``
        executor: Concurrent executor sharing the context's limiter
    """

    def __init__(
        self,
        context: ExecutionContext,
        exit_func: Callable[[int], Any] = sys.exit,
        install_signal_handlers: bool = True,
    ) -> None:
        self.context = context
        self.install_signal_handlers = install_signal_handlers
        self.shutdown = ShutdownCoordinator(self.cleanup_sync, exit_func=exit_func)
        self.executor = ConcurrentExecutor(
            config=context.config.concurrency,
            progress=context.progress,
            free_list=context.free_list,
            mismatches=context.mismatches,
            shutdown=self.shutdown,
            limiter=context.limiter,
        )
        self._cleanup_called = False

    async def cleanup(self) -> None:
        if self._cleanup_called:
            return
        self._cleanup_called = True

        await self.context.cleanup()

    def cleanup_sync(self) -> None:
        """Blocking cleanup for the signal path."""
        if self._cleanup_called:
            return
        self._cleanup_called = True

        self.executor.log_current_statistics()
        self.context.cleanup_sync()

    async def run(
        self,
        items: Sequence[WorkItem],
        routine: PageRoutine,
        run_id: Optional[str] = None,
    ) -> RunSummary:
        """Execute one crawl run.

        Args:
            items: Page work items, usually ``Manifest.to_work_items()``
            routine: Coroutine processing a single item
            run_id: Optional run ID for log correlation

        Returns:
            RunSummary of the run

        Raises:
            SetupError: If the context could not be initialized
            PersistenceError: If the final state flush failed
        """
        with run_id_context(run_id) as active_run_id:
            logger.info(
                "execution_starting",
                run_id=active_run_id,
                site=self.context.config.site,
                items=len(items),
                max_concurrency=self.context.limiter.limit,
            )

            if self.install_signal_handlers:
                self.shutdown.install()

            try:
                try:
                    await self.context.initialize()
                except SetupError:
                    raise
                except Exception as e:
                    raise SetupError(
                        f"Failed to initialize execution context: {e}",
                        stage="initialize",
                    ) from e

                try:
                    summary = await self.executor.execute_all(items, routine)
                    logger.info("execution_summary", **summary.model_dump())
                except Exception as e:
                    logger.error("execution_failed", error=str(e), exc_info=True)
                    raise
                finally:
                    await self.cleanup()
            finally:
                self.shutdown.uninstall()

        return summary
