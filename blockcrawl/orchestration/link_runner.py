"""Per-link routine: open the page, check whether it's free, then hand it off."""

from typing import Any, AsyncContextManager, Awaitable, Callable, Optional

import structlog

from blockcrawl.models.manifest import PageResult, WorkItem
from blockcrawl.utils.predicates import FreeDetector, NeverFree

logger = structlog.get_logger()

PageOpener = Callable[[WorkItem], AsyncContextManager[Any]]
PageHandler = Callable[[Any, WorkItem], Awaitable[Optional[PageResult]]]


class LinkRunner:
    """
    Composes a page opener, a free detector and a page handler into a
    routine accepted by ``ConcurrentExecutor.execute_all``.

    The opener is an async context manager factory; the handle it yields
    is closed when the routine returns or raises.
    """

    def __init__(
        self,
        open_page: PageOpener,
        handler: PageHandler,
        free_detector: Optional[FreeDetector] = None,
    ):
        self.open_page = open_page
        self.handler = handler
        self.free_detector = free_detector or NeverFree()

    async def __call__(self, item: WorkItem) -> Optional[PageResult]:
        async with self.open_page(item) as handle:
            logger.debug("page_opened")

            if await self.free_detector.detect(handle):
                return PageResult(free=True)

            result = await self.handler(handle, item)

        logger.debug("page_closed")
        return result
