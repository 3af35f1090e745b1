"""State commands: inspect, audit, rebuild and reset persisted progress."""

import asyncio
from pathlib import Path

import typer

from blockcrawl.cli.utils import (
    display_error,
    display_info,
    display_success,
    display_warning,
    handle_errors,
    load_config,
)
from blockcrawl.orchestration import ExecutionContext
from blockcrawl.services.manifest_service import try_load_page_paths
from blockcrawl.services.progress_audit import audit_progress

CONFIG_OPTION = typer.Option(
    "config/crawler.yaml",
    "--config",
    "-c",
    help="Path to crawler config YAML",
)

# How many entries to list before truncating
LIST_LIMIT = 20


def _print_list(items: list, limit: int = LIST_LIMIT) -> None:
    for item in items[:limit]:
        typer.echo(f"   - {item}")
    if len(items) > limit:
        typer.echo(f"   ... and {len(items) - limit} more")


@handle_errors
def status_command(config_path: Path = CONFIG_OPTION):
    """Show recorded progress, free items and mismatches."""
    config = load_config(config_path)
    context = ExecutionContext.from_config(config)

    async def _load() -> None:
        await context.free_list.initialize()
        await context.mismatches.initialize()

    asyncio.run(_load())
    snapshot = context.progress.read_snapshot()

    display_info(f"Site: {config.site}")

    if snapshot is None:
        display_warning(f"No usable progress file at {config.progress_file}")
    else:
        typer.echo(f"Completed pages:  {snapshot.total_pages}")
        typer.echo(f"Completed blocks: {snapshot.total_blocks}")
        typer.echo(f"Last update:      {snapshot.last_update}")

        pages = try_load_page_paths(config.manifest_path)
        if pages:
            done = set(snapshot.completed_pages)
            remaining = sum(1 for p in pages if p not in done)
            typer.echo(f"Remaining pages:  {remaining} of {len(pages)}")

    typer.echo(f"Free pages:       {len(context.free_list.get_free_pages())}")
    typer.echo(f"Free blocks:      {len(context.free_list.get_free_blocks())}")

    mismatches = context.mismatches.get_mismatches()
    typer.echo(f"Mismatches:       {len(mismatches)}")
    _print_list(
        [
            f"{m.page_path}: expected {m.expected_count}, found {m.actual_count}"
            for m in mismatches
        ]
    )


@handle_errors
def verify_command(config_path: Path = CONFIG_OPTION):
    """Compare progress.json with the blocks actually on disk."""
    config = load_config(config_path)

    audit = asyncio.run(
        audit_progress(
            progress_file=config.progress_file,
            output_dir=config.site_output_dir,
            config=config.progress.rebuild,
            manifest_file=config.manifest_path,
        )
    )

    typer.echo(f"Recorded blocks:           {audit.recorded_blocks}")
    typer.echo(f"Recorded and on disk:      {audit.existing_blocks}")
    typer.echo(f"Blocks on disk:            {audit.blocks_on_disk}")
    typer.echo(f"Recorded but missing:      {len(audit.missing)}")
    _print_list(audit.missing)
    typer.echo(f"On disk but not recorded:  {len(audit.unrecorded)}")
    _print_list(audit.unrecorded)

    if audit.is_consistent:
        display_success("Progress matches output ✅")
        return

    display_warning("Progress and output differ; run 'rebuild' to resync")
    raise typer.Exit(code=1)


@handle_errors
def rebuild_command(
    config_path: Path = CONFIG_OPTION,
    no_save: bool = typer.Option(
        False, "--no-save", help="Report what would be rebuilt without writing"
    ),
):
    """Rebuild progress from the output directory."""
    config = load_config(config_path)
    context = ExecutionContext.from_config(config)
    store = context.progress

    if no_save:
        result = asyncio.run(store.rebuilder.rebuild())
    else:

        async def _rebuild():
            rebuilt = await store.rebuild()
            # rebuild() may already have saved; clean means the file is current
            saved = await store.save_progress() or not store.is_dirty
            return rebuilt, saved

        result, written = asyncio.run(_rebuild())

    typer.echo(f"Source:           {result.source}")
    typer.echo(f"Completed pages:  {len(result.completed_pages)}")
    typer.echo(f"Completed blocks: {len(result.completed_blocks)}")

    partial = [
        f"{page}: {stats.completed}/{stats.total}"
        for page, stats in sorted(result.page_stats.items())
        if stats.completed < stats.total
    ]
    if partial:
        display_warning(f"Pages with incomplete blocks: {len(partial)}")
        _print_list(partial)

    if no_save:
        display_info("Nothing written (--no-save)")
    elif written:
        display_success(f"Progress written to {config.progress_file}")
    else:
        display_warning(
            f"Progress not written: {config.progress_file} already holds progress "
            "and the rebuild found none"
        )


@handle_errors
def reset_command(
    config_path: Path = CONFIG_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    all_state: bool = typer.Option(
        False, "--all", help="Also remove the free and mismatch records"
    ),
):
    """Delete recorded progress so the next run starts over."""
    config = load_config(config_path)

    targets = [config.progress_file]
    if all_state:
        targets += [config.free_file, config.mismatch_file]

    existing = [t for t in targets if t.exists()]
    if not existing:
        display_info("Nothing to reset")
        return

    if not yes:
        names = ", ".join(str(t) for t in existing)
        if not typer.confirm(f"Delete {names}?"):
            display_error("Aborted")
            raise typer.Exit(code=1)

    store = ExecutionContext.from_config(config).progress
    for target in existing:
        if target == store.progress_file:
            store.delete_progress_file()
        else:
            target.unlink()

    display_success(f"Removed {len(existing)} file(s)")
