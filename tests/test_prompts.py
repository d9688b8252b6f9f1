"""Tests for the terminal decision adapter."""

from __future__ import annotations

from unittest.mock import patch

from rich.console import Console

from mirrorsync.cli.prompts import TerminalDecider
from mirrorsync.core.git_utils import Commit
from mirrorsync.sync.cherry_pick import REASON_AMBIGUOUS, REASON_MANUAL, Decision


def _commit(char):
    return Commit(char * 40, char * 7, "2020-01-01T00:00:00+00:00", "[PATCH] Fix", "", "")


class TestTerminalDecider:
    def test_skip_when_confirmed(self):
        console = Console(record=True)
        with patch("mirrorsync.cli.prompts.typer.confirm", return_value=True) as mock_confirm:
            decision = TerminalDecider(console).decide(_commit("a"), [_commit("m"), _commit("n")], REASON_AMBIGUOUS)
        assert decision is Decision.SKIP
        assert "Do you want to skip 'aaaaaaa" in mock_confirm.call_args.args[0]
        assert console.export_text() == ""

    def test_apply_when_declined(self):
        with patch("mirrorsync.cli.prompts.typer.confirm", return_value=False):
            decision = TerminalDecider(Console(record=True)).decide(_commit("a"), [], REASON_MANUAL)
        assert decision is Decision.APPLY

    def test_conflict_waits_for_return(self):
        console = Console(record=True)
        with patch("mirrorsync.cli.prompts.typer.prompt", return_value="") as mock_prompt:
            TerminalDecider(console).resolve_conflict(_commit("a"), "/tmp/line", ["lib/a.c"])
        mock_prompt.assert_called_once()
        assert "cherry-pick --continue" in mock_prompt.call_args.args[0]
        assert "lib/a.c" in console.export_text()
