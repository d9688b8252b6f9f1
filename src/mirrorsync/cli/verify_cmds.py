"""Standalone consistency check."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape

from . import app, console


@app.command("verify")
def verify(
    source_repo: Path = typer.Argument(..., help="Path to the source repository"),
    mirror_repo: Path = typer.Argument(..., help="Path to the mirror repository"),
    ref: str = typer.Option("HEAD", "--ref", help="Source commit to compare against"),
    ignore_consistency: bool = typer.Option(
        False, "--ignore-consistency", envvar="IGNORE_CONSISTENCY", help="Exit 0 even when files differ"
    ),
):
    """Compare the projected source tree with the mirror checkout."""
    from ..core.config import load_config
    from ..core.errors import MirrorSyncError
    from ..core.path_map import PathMapper
    from ..sync.engine import perform_verify
    from .sync_cmds import print_report

    try:
        mapper = PathMapper.from_config(load_config(mirror_repo).get("paths", {}))
        report = perform_verify(source_repo, mirror_repo, mapper, ref)
    except MirrorSyncError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(e.exit_code)

    console.print(f"Compared {len(report.source_files)} source files with {len(report.mirror_files)} mirror files")
    if report.consistent:
        console.print("[green]Content is identical.[/green]")
        return

    print_report(report)
    if not ignore_consistency:
        raise typer.Exit(4)
