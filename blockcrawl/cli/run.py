"""Run command for the crawler.

Loads the collected-link manifest and processes every page through a
user-supplied routine.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer

from blockcrawl.cli.utils import (
    display_info,
    display_success,
    display_summary,
    display_warning,
    handle_errors,
    load_config,
    resolve_processor,
)
from blockcrawl.models.config import CrawlerConfig
from blockcrawl.models.manifest import Manifest
from blockcrawl.observability.metrics import get_metrics_text
from blockcrawl.orchestration import ExecutionContext, ExecutionOrchestrator
from blockcrawl.services.manifest_service import load_manifest
from blockcrawl.utils.exceptions import CrawlerError


@handle_errors
def run_command(
    config_path: Path = typer.Option(
        "config/crawler.yaml",
        "--config",
        "-c",
        help="Path to crawler config YAML",
    ),
    processor: Optional[str] = typer.Option(
        None,
        "--processor",
        "-p",
        help="Page routine to run, as module:attr",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Validate and plan without executing"
    ),
    metrics_file: Optional[Path] = typer.Option(
        None,
        "--metrics-file",
        help="Write Prometheus metrics here when the run ends",
    ),
):
    """Process every page in the manifest."""
    # 1. Load config and manifest
    config = load_config(config_path)
    manifest = load_manifest(config.manifest_path)

    if dry_run:
        _display_dry_run(config, manifest)
        return

    if not processor:
        raise typer.BadParameter("--processor is required unless --dry-run is set")

    routine = resolve_processor(processor)

    # 2. Execute
    display_info(f"Crawling {config.site} ({len(manifest.collections)} pages)...")

    context = ExecutionContext.from_config(config)
    orchestrator = ExecutionOrchestrator(context)

    try:
        summary = asyncio.run(orchestrator.run(manifest.to_work_items(), routine))
    except CrawlerError:
        # Show whatever was done before the failure
        if orchestrator.executor.summary.total:
            display_summary(orchestrator.executor.summary)
        raise
    finally:
        if metrics_file is not None:
            metrics_file.write_bytes(get_metrics_text())

    # 3. Display results
    display_summary(summary)
    if context.mismatches.mismatch_count:
        display_warning(
            f"{context.mismatches.mismatch_count} page(s) had unexpected block counts; "
            f"see {config.mismatch_file}"
        )

    if summary.failed:
        display_warning(f"{summary.failed} page(s) failed; rerun to retry them")
        raise typer.Exit(code=1)

    display_success("All pages processed ✅")


def _display_dry_run(config: CrawlerConfig, manifest: Manifest) -> None:
    display_success("Dry run: Configuration and manifest valid.")
    typer.echo(f"Site:            {config.site}")
    typer.echo(f"Manifest:        {config.manifest_path}")
    typer.echo(f"Pages:           {len(manifest.collections)}")
    typer.echo(f"Expected blocks: {manifest.total_blocks}")
    typer.echo(f"Output:          {config.site_output_dir}")
    typer.echo(f"State:           {config.site_state_dir}")
    typer.echo(f"Max concurrency: {config.concurrency.max_concurrency}")
    typer.echo(f"Skip free:       {config.skip_free or 'disabled'}")
