"""Orchestration module for concurrent crawl execution."""

from blockcrawl.orchestration.context import ExecutionContext
from blockcrawl.orchestration.executor import (
    ConcurrencyLimiter,
    ConcurrentExecutor,
    PageRoutine,
)
from blockcrawl.orchestration.link_runner import LinkRunner
from blockcrawl.orchestration.orchestrator import ExecutionOrchestrator
from blockcrawl.orchestration.shutdown import ShutdownCoordinator, ShutdownState

__all__ = [
    "ExecutionContext",
    "ExecutionOrchestrator",
    "ConcurrencyLimiter",
    "ConcurrentExecutor",
    "PageRoutine",
    "LinkRunner",
    "ShutdownCoordinator",
    "ShutdownState",
]
