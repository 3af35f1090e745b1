"""Prometheus metrics definitions for crawl runs.

Defines counters, gauges, and histograms for monitoring:
- Page throughput by outcome
- In-flight page count
- Page processing latency
- State document writes

Usage:
    from blockcrawl.observability.metrics import PAGES_PROCESSED, ACTIVE_ITEMS

    PAGES_PROCESSED.labels(status="completed").inc()
    ACTIVE_ITEMS.inc()
"""

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Private registry so tests and embedded use don't collide with the default one
REGISTRY = CollectorRegistry(auto_describe=True)

# =============================================================================
# COUNTERS
# =============================================================================

PAGES_PROCESSED = Counter(
    name="blockcrawl_pages_processed_total",
    documentation="Pages settled by the executor",
    labelnames=["status"],  # completed, failed, skipped_completed, skipped_free, abandoned
    registry=REGISTRY,
)

STATE_WRITES = Counter(
    name="blockcrawl_state_writes_total",
    documentation="Atomic state document writes",
    labelnames=["document", "status"],  # progress/free/mismatch, success/retry/failed
    registry=REGISTRY,
)

# =============================================================================
# GAUGES
# =============================================================================

ACTIVE_ITEMS = Gauge(
    name="blockcrawl_active_items",
    documentation="Pages currently holding a concurrency slot",
    registry=REGISTRY,
)

# =============================================================================
# HISTOGRAMS
# =============================================================================

PAGE_PROCESSING_DURATION = Histogram(
    name="blockcrawl_page_processing_seconds",
    documentation="Time spent processing one page",
    buckets=(0.5, 1, 2.5, 5, 10, 30, 60, 120, 300),
    registry=REGISTRY,
)


def get_metrics_text() -> bytes:
    """Render all metrics in Prometheus text exposition format."""
    return generate_latest(REGISTRY)
