"""Shared CLI utilities.

Provides common functionality for all CLI commands.
"""

import functools
import importlib
from pathlib import Path
from typing import Callable, TypeVar

import structlog
import typer

from blockcrawl.models.concurrency import RunSummary
from blockcrawl.models.config import CrawlerConfig
from blockcrawl.observability.logging import configure_logging
from blockcrawl.orchestration.executor import PageRoutine
from blockcrawl.services.config_manager import ConfigManager, ConfigValidationError

# Configure structured logging
configure_logging()
logger = structlog.get_logger()

# Type variable for decorator
F = TypeVar("F", bound=Callable)


def load_config(config_path: Path) -> CrawlerConfig:
    """Load and validate configuration, then apply its logging settings.

    Args:
        config_path: Path to configuration file.

    Returns:
        Validated CrawlerConfig.

    Raises:
        typer.Exit: If configuration is invalid.
    """
    config_manager = ConfigManager(config_path=str(config_path))
    try:
        config = config_manager.load_config()
    except (FileNotFoundError, ConfigValidationError) as e:
        typer.secho(f"Configuration Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    configure_logging(
        level=config.logging.level.value,
        json_output=config.logging.json_output,
    )
    return config


def resolve_processor(spec: str) -> PageRoutine:
    """Import a page routine given as ``module:attr``.

    ``attr`` may be dotted to reach into a class or object.

    Raises:
        typer.BadParameter: If the reference is malformed or not callable.
    """
    module_name, _, attr_path = spec.partition(":")
    if not module_name or not attr_path:
        raise typer.BadParameter(f"Expected 'module:attr', got '{spec}'")

    try:
        target = importlib.import_module(module_name)
        for attr in attr_path.split("."):
            target = getattr(target, attr)
    except (ImportError, AttributeError) as e:
        raise typer.BadParameter(f"Cannot load processor '{spec}': {e}") from e

    if not callable(target):
        raise typer.BadParameter(f"Processor '{spec}' is not callable")

    return target


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling.

    Catches exceptions and displays user-friendly error messages.

    Args:
        func: Function to wrap.

    Returns:
        Wrapped function with error handling.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except Exception as e:
            logger.exception("command_failed")
            typer.secho(f"Error: {e}", fg=typer.colors.RED)
            raise typer.Exit(code=1)

    return wrapper  # type: ignore[return-value]


def display_summary(summary: RunSummary) -> None:
    """Print a run summary block."""
    typer.echo("")
    typer.secho("Run Summary", bold=True)
    typer.echo(f"  Total:              {summary.total}")
    typer.echo(f"  Completed:          {summary.completed}")
    typer.echo(f"    already complete: {summary.skipped_completed}")
    typer.echo(f"    known free:       {summary.skipped_free}")
    typer.echo(f"  Failed:             {summary.failed}")
    if summary.abandoned:
        typer.echo(f"  Abandoned:          {summary.abandoned}")
    typer.echo(f"  Duration:           {summary.duration_seconds:.1f}s")


def display_success(message: str) -> None:
    """Display a success message.

    Args:
        message: Message to display.
    """
    typer.secho(message, fg=typer.colors.GREEN)


def display_warning(message: str) -> None:
    """Display a warning message.

    Args:
        message: Message to display.
    """
    typer.secho(message, fg=typer.colors.YELLOW)


def display_error(message: str) -> None:
    """Display an error message.

    Args:
        message: Message to display.
    """
    typer.secho(message, fg=typer.colors.RED)


def display_info(message: str) -> None:
    """Display an info message.

    Args:
        message: Message to display.
    """
    typer.secho(message, fg=typer.colors.CYAN)
