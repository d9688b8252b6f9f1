"""Terminal adapter for the pipeline's human decision points."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from ..core.git_utils import Commit
from ..sync.cherry_pick import Decision


class TerminalDecider:
    """Blocks on stdin until the operator answers."""

    def __init__(self, console: Console):
        self.console = console

    def decide(self, candidate: Commit, matches: list[Commit], reason: str) -> Decision:
        # The match list and any ambiguity warning are already logged by the orchestrator.
        if typer.confirm(f"Do you want to skip '{candidate.description}'?", default=False):
            return Decision.SKIP
        return Decision.APPLY

    def resolve_conflict(self, candidate: Commit, worktree: str, conflicts: list[str]) -> None:
        self.console.print(f"[red]Error! Cherry-picking '{escape(candidate.description)}' failed.[/red]")
        for path in conflicts:
            self.console.print(f"  conflict: {escape(path)}")
        self.console.print(f"Working line: {escape(worktree)}")
        typer.prompt(
            "Please fix manually (finish with 'git cherry-pick --continue') and press <return> to proceed",
            default="",
            show_default=False,
        )

    def resolve_patch(self, patch: Path, repo: str, reason: str) -> None:
        self.console.print(f"[red]Applying {escape(str(patch))} failed.[/red]")
        if reason:
            self.console.print(escape(reason))
        self.console.print(f"Mirror repository: {escape(repo)}")
        typer.prompt(
            "Please resolve manually (finish with 'git am --continue') and press <return> to proceed",
            default="",
            show_default=False,
        )
