"""Run ID context management for log correlation.

Provides ContextVar-based storage for the current run ID, which propagates
automatically into every asyncio task spawned by the executor.

Usage:
    from blockcrawl.observability.context import set_run_id, run_id_context

    run_id = set_run_id()  # Generates a short UUID if not provided

    with run_id_context("resume-2024-05-01"):
        await orchestrator.run(items)
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

_run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)


def _new_run_id() -> str:
    return uuid.uuid4().hex[:12]


def set_run_id(run_id: Optional[str] = None) -> str:
    """Set the run ID for the current context.

    Args:
        run_id: Optional run ID. If None, generates one.

    Returns:
        The run ID that was set.
    """
    if run_id is None:
        run_id = _new_run_id()

    _run_id_var.set(run_id)
    return run_id


def get_run_id() -> Optional[str]:
    """Get the current run ID, or None if not set."""
    return _run_id_var.get()


def clear_run_id() -> None:
    """Reset the run ID to unset."""
    _run_id_var.set(None)


@contextmanager
def run_id_context(run_id: Optional[str] = None) -> Generator[str, None, None]:
    """Scope a run ID; the previous value is restored on exit.

    Args:
        run_id: Optional run ID. If None, generates one.

    Yields:
        The run ID in effect inside the block.
    """
    if run_id is None:
        run_id = _new_run_id()

    token = _run_id_var.set(run_id)
    try:
        yield run_id
    finally:
        _run_id_var.reset(token)
