"""Sync commands: sync, candidates."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from . import app, console

_SOURCE = typer.Argument(None, help="Path to the source (upstream) repository, checked out at the primary tip")
_MIRROR = typer.Argument(None, help="Path to the mirror repository")
_SECONDARY = typer.Argument(None, help="Branch of the source repository carrying the secondary upstream")


def _build_config(command, source_repo, mirror_repo, secondary_branch, **options):
    from ..core.config import build_sync_config
    from ..core.errors import ConfigurationError

    try:
        return build_sync_config(source_repo, mirror_repo, secondary_branch, **options)
    except ConfigurationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        console.print(f"Usage: mirrorsync {command} SOURCE MIRROR SECONDARY_BRANCH")
        raise typer.Exit(e.exit_code)


def _report_failure(e) -> None:
    from ..core.errors import CherryPickConflict, ConsistencyDivergence, NonEmptyMergeError, PatchApplyFailure

    console.print(f"[red]{escape(str(e))}[/red]")
    if isinstance(e, NonEmptyMergeError):
        for path in e.paths:
            console.print(f"  changed by merge: {escape(path)}")
    elif isinstance(e, CherryPickConflict):
        for path in e.paths:
            console.print(f"  conflict: {escape(path)}")
    elif isinstance(e, PatchApplyFailure) and e.reason:
        console.print(escape(e.reason))
    elif isinstance(e, ConsistencyDivergence):
        print_report(e.report)


def print_report(report) -> None:
    for path in report.missing_in_mirror:
        console.print(f"  [yellow]missing in mirror:[/yellow] {escape(path)}")
    for path in report.extra_in_mirror:
        console.print(f"  [yellow]only in mirror:[/yellow] {escape(path)}")
    for path, diff in report.differing.items():
        console.print(f"  [yellow]differs:[/yellow] {escape(path)}")
        for line in diff:
            console.print(f"    {escape(line)}", highlight=False)


@app.command("sync")
def sync(
    source_repo: Path | None = _SOURCE,
    mirror_repo: Path | None = _MIRROR,
    secondary_branch: str | None = _SECONDARY,
    primary_baseline: str | None = typer.Option(
        None,
        "--primary-baseline",
        envvar=["MIRRORSYNC_PRIMARY_BASELINE", "BPF_NEXT_BASELINE"],
        help="Override the stored primary checkpoint",
    ),
    secondary_baseline: str | None = typer.Option(
        None,
        "--secondary-baseline",
        envvar=["MIRRORSYNC_SECONDARY_BASELINE", "BPF_BASELINE"],
        help="Override the stored secondary checkpoint",
    ),
    manual: bool = typer.Option(False, "--manual", envvar="MANUAL_MODE", help="Ask before picking every commit"),
    ignore_consistency: bool = typer.Option(
        False, "--ignore-consistency", envvar="IGNORE_CONSISTENCY", help="Treat divergence as a warning"
    ),
    keep_artifacts: bool = typer.Option(
        False, "--keep-artifacts", envvar="MIRRORSYNC_KEEP_ARTIFACTS", help="Keep temp refs and worktrees"
    ),
):
    """Bring the mirror up to date with both upstream branches."""
    from ..core.errors import MirrorSyncError
    from ..sync.engine import STATUS_NOOP, perform_sync
    from .prompts import TerminalDecider

    config = _build_config(
        "sync",
        source_repo,
        mirror_repo,
        secondary_branch,
        primary_baseline=primary_baseline,
        secondary_baseline=secondary_baseline,
        manual_mode=manual,
        ignore_consistency=ignore_consistency or None,
        keep_artifacts=keep_artifacts or None,
    )

    try:
        result = perform_sync(config, TerminalDecider(console))
    except MirrorSyncError as e:
        _report_failure(e)
        raise typer.Exit(e.exit_code)

    if result.status == STATUS_NOOP:
        console.print("[dim]No new changes to apply.[/dim]")
        raise typer.Exit(2)

    table = Table(title="Replayed commits")
    table.add_column("Commit", style="cyan")
    table.add_column("Subject")
    table.add_column("Outcome")
    for outcome in result.outcomes:
        table.add_row(outcome.commit.short_hash, escape(outcome.commit.subject), outcome.state.value)
    console.print(table)

    for t in result.transitions:
        console.print(f"  {t.label}: {t.old[:12]} -> {t.new[:12]}")
    console.print(
        f"[green]Synced {result.commit_count} commit(s)[/green] onto [bold]{result.sync_branch}[/bold] "
        f"({len(result.skipped)} skipped, {result.duration_ms}ms)"
    )
    if result.report is not None and not result.report.consistent:
        console.print("[yellow]Consistency problems were ignored:[/yellow]")
        print_report(result.report)


@app.command("candidates")
def candidates(
    source_repo: Path | None = _SOURCE,
    mirror_repo: Path | None = _MIRROR,
    secondary_branch: str | None = _SECONDARY,
    primary_baseline: str | None = typer.Option(
        None, "--primary-baseline", envvar=["MIRRORSYNC_PRIMARY_BASELINE", "BPF_NEXT_BASELINE"]
    ),
    secondary_baseline: str | None = typer.Option(
        None, "--secondary-baseline", envvar=["MIRRORSYNC_SECONDARY_BASELINE", "BPF_BASELINE"]
    ),
    manual: bool = typer.Option(False, "--manual", envvar="MANUAL_MODE"),
):
    """List candidate commits and whether they look already synced."""
    from ..core.errors import MirrorSyncError
    from ..sync.engine import list_candidates

    config = _build_config(
        "candidates",
        source_repo,
        mirror_repo,
        secondary_branch,
        primary_baseline=primary_baseline,
        secondary_baseline=secondary_baseline,
        manual_mode=manual,
    )

    try:
        views = list_candidates(config)
    except MirrorSyncError as e:
        _report_failure(e)
        raise typer.Exit(e.exit_code)

    if not views:
        console.print("[dim]No candidate commits.[/dim]")
        return

    table = Table(title=f"Candidates ({len(views)})")
    table.add_column("Upstream")
    table.add_column("Commit", style="cyan")
    table.add_column("Subject")
    table.add_column("Verdict")
    table.add_column("Mirror match")
    for view in views:
        table.add_row(
            view.label,
            view.commit.short_hash,
            escape(view.commit.subject),
            view.verdict,
            ", ".join(m.short_hash for m in view.matches),
        )
    console.print(table)
