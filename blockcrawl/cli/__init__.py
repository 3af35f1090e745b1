"""blockcrawl CLI Package.

Command-line interface for resumable concurrent block crawling.

Usage:
    python -m blockcrawl.cli run --config config/crawler.yaml --processor my_site:process_page
    python -m blockcrawl.cli status
    python -m blockcrawl.cli verify
    python -m blockcrawl.cli rebuild --no-save
    python -m blockcrawl.cli reset --yes
"""

import typer

from blockcrawl.cli.run import run_command
from blockcrawl.cli.state import (
    rebuild_command,
    reset_command,
    status_command,
    verify_command,
)

# Create main app
app = typer.Typer(help="blockcrawl: resumable concurrent block crawler")

# Register individual commands
app.command(name="run")(run_command)
app.command(name="status")(status_command)
app.command(name="verify")(verify_command)
app.command(name="rebuild")(rebuild_command)
app.command(name="reset")(reset_command)

__all__ = [
    "app",
    "run_command",
    "status_command",
    "verify_command",
    "rebuild_command",
    "reset_command",
]
