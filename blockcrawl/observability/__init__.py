"""Observability: run ID context, structured logging and Prometheus metrics.

Usage:
    from blockcrawl.observability import get_logger, set_run_id, PAGES_PROCESSED

    set_run_id()
    logger = get_logger("executor")
    PAGES_PROCESSED.labels(status="completed").inc()
"""

from blockcrawl.observability.context import (
    set_run_id,
    get_run_id,
    clear_run_id,
    run_id_context,
)
from blockcrawl.observability.logging import (
    get_logger,
    configure_logging,
    bind_context,
    clear_context,
    add_run_id_processor,
)
from blockcrawl.observability.metrics import (
    PAGES_PROCESSED,
    STATE_WRITES,
    ACTIVE_ITEMS,
    PAGE_PROCESSING_DURATION,
    REGISTRY,
    get_metrics_text,
)

__all__ = [
    # Context
    "set_run_id",
    "get_run_id",
    "clear_run_id",
    "run_id_context",
    # Logging
    "get_logger",
    "configure_logging",
    "bind_context",
    "clear_context",
    "add_run_id_processor",
    # Metrics
    "PAGES_PROCESSED",
    "STATE_WRITES",
    "ACTIVE_ITEMS",
    "PAGE_PROCESSING_DURATION",
    "REGISTRY",
    "get_metrics_text",
]
