"""Structured logging with run ID propagation.

Usage:
    from blockcrawl.observability.logging import get_logger, configure_logging

    # Configure at application startup
    configure_logging(level="INFO", json_output=False)

    logger = get_logger("executor")
    logger.info("page_complete", page="docs/buttons")

    # Output includes run_id and component automatically
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.typing import EventDict, WrappedLogger

from blockcrawl.observability.context import get_run_id


def add_run_id_processor(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds run_id to log entries.

    Uses "none" when no run ID is set.
    """
    run_id = get_run_id()
    event_dict["run_id"] = run_id if run_id else "none"
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON. If False, use console format.
        add_timestamp: If True, add ISO timestamp to each log entry.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_run_id_processor,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(
    component: Optional[str] = None,
    **initial_context: Any,
) -> Any:
    """Get a structured logger with optional component context.

    Args:
        component: Optional component name to include in logs
        **initial_context: Additional context to bind to all log entries

    Example:
        logger = get_logger("progress_store", site="example.com")
        logger.info("progress_loaded")  # Includes component and site
    """
    logger = structlog.get_logger()

    if component:
        logger = logger.bind(component=component)

    if initial_context:
        logger = logger.bind(**initial_context)

    return logger


def bind_context(**context: Any) -> None:
    """Bind context to all subsequent log entries in the current context.

    Uses structlog's contextvars, so values follow asyncio tasks.
    """
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all bound context from structlog contextvars."""
    structlog.contextvars.clear_contextvars()
