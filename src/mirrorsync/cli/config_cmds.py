"""Configuration command."""

from __future__ import annotations

from pathlib import Path

import typer

from . import app, console


@app.command()
def config(
    key: str | None = typer.Argument(None, help="Config key (dotted notation, e.g. signatures.window)"),
    mirror_repo: Path | None = typer.Option(None, "--mirror", help="Include the mirror's .mirrorsync/config.toml"),
):
    """Show the effective configuration."""
    from ..core.config import get_config_value, load_config
    from ..core.errors import ConfigurationError

    try:
        cfg = load_config(mirror_repo)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if key is None:
        console.print_json(data=cfg)
        return

    val = get_config_value(cfg, key)
    if val is None:
        console.print(f"[yellow]Key not found:[/yellow] {key}")
        raise typer.Exit(1)
    console.print(f"{key} = {val}")
