"""CLI entry point.

Allows running the CLI as a module: python -m blockcrawl.cli
"""

from blockcrawl.cli import app

if __name__ == "__main__":
    app()
