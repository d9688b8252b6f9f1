"""CLI interface using Typer."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

app = typer.Typer(name="mirrorsync", help="Keep a subtree mirror repository in sync with its source tree")

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show git commands and debug output"),
):
    """Synchronize a mirror repository with two upstream branches of its source tree."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


# Import subcommand modules to register them
from . import sync_cmds  # noqa: F401, E402
from . import verify_cmds  # noqa: F401, E402
from . import config_cmds  # noqa: F401, E402
