"""Tests for the consistency check."""

from __future__ import annotations

import pytest

from mirrorsync.core.git_utils import GitBackend
from mirrorsync.core.path_map import PathMapper
from mirrorsync.sync.engine import perform_verify
from mirrorsync.sync.verify import ConsistencyVerifier

MAPPER = PathMapper.from_config(
    {"map": {"lib": "src", "include/api.h": "include/api.h"}, "exclude": ["src/Makefile"]}
)


class TestConsistencyVerifier:
    def test_identical(self, sync_repos, tmp_path):
        verifier = ConsistencyVerifier(GitBackend(sync_repos.source), GitBackend(sync_repos.mirror), MAPPER)
        report = verifier.verify(sync_repos.baseline, tmp_path / "view")
        assert report.consistent
        assert report.source_files == ["include/api.h", "src/a.c", "src/version.txt"]
        assert "src/Makefile" not in report.mirror_files
        assert (tmp_path / "view" / "src" / "a.c").read_text(encoding="utf-8") == "int a;\n"

    def test_divergent(self, sync_repos, tmp_path, commit_files):
        commit_files(
            sync_repos.mirror,
            {"src/a.c": "int b;\n", "src/extra.c": "x\n", "src/version.txt": None},
            "Local edits",
        )
        verifier = ConsistencyVerifier(GitBackend(sync_repos.source), GitBackend(sync_repos.mirror), MAPPER)

        report = verifier.verify(sync_repos.baseline, tmp_path / "view")

        assert not report.consistent
        assert report.missing_in_mirror == ["src/version.txt"]
        assert report.extra_in_mirror == ["src/extra.c"]
        assert list(report.differing) == ["src/a.c"]
        assert any(line == "+int b;" for line in report.differing["src/a.c"])

    def test_mirror_only_files_ignored(self, sync_repos, tmp_path, commit_files):
        commit_files(sync_repos.mirror, {"src/Makefile": "changed\n", "README": "docs\n"}, "Mirror only")
        verifier = ConsistencyVerifier(GitBackend(sync_repos.source), GitBackend(sync_repos.mirror), MAPPER)
        assert verifier.verify(sync_repos.baseline, tmp_path / "view").consistent


class TestPerformVerify:
    def test_against_head(self, sync_repos):
        assert perform_verify(sync_repos.source, sync_repos.mirror, MAPPER).consistent

    def test_detects_new_upstream_change(self, sync_repos, commit_files):
        commit_files(sync_repos.source, {"lib/new.c": "n\n"}, "New file")
        report = perform_verify(sync_repos.source, sync_repos.mirror, MAPPER)
        assert report.missing_in_mirror == ["src/new.c"]

    @pytest.mark.parametrize("keep", [False, True])
    def test_workspace_cleanup(self, sync_repos, keep, run_git):
        perform_verify(sync_repos.source, sync_repos.mirror, MAPPER, keep_artifacts=keep)
        assert run_git(sync_repos.source, "branch", "--list", "mirrorsync-*") == ""
