"""Tests for the merge gate."""

from __future__ import annotations

import pytest

from mirrorsync.core.errors import NonEmptyMergeError
from mirrorsync.core.git_utils import GitBackend
from mirrorsync.core.path_map import PathMapper
from mirrorsync.sync.merge import MergeValidator

MAPPER = PathMapper.from_config({"map": {"lib": "src"}})


@pytest.fixture
def forked(git_repo, commit_files, run_git):
    """Two branches that both changed ``lib/``, ready to be merged."""
    base = commit_files(git_repo, {"lib/a.c": "a\n", "lib/b.c": "b\n", "other/x": "x\n"}, "Base")
    main = run_git(git_repo, "rev-parse", "--abbrev-ref", "HEAD")
    run_git(git_repo, "checkout", "-q", "-b", "feature")
    commit_files(git_repo, {"lib/b.c": "b2\n"}, "Feature change")
    run_git(git_repo, "checkout", "-q", main)
    commit_files(git_repo, {"lib/a.c": "a2\n"}, "Main change")
    return base


class TestMergeValidator:
    def test_no_merges(self, git_repo, commit_files):
        base = commit_files(git_repo, {"lib/a.c": "a\n"}, "Base")
        commit_files(git_repo, {"lib/a.c": "b\n"}, "Change")
        assert MergeValidator(GitBackend(git_repo), MAPPER).validate(base, "HEAD") == []

    def test_clean_merge_passes(self, git_repo, forked, run_git):
        run_git(git_repo, "merge", "--no-ff", "-m", "Merge feature", "feature")
        merge = run_git(git_repo, "rev-parse", "HEAD")
        assert MergeValidator(GitBackend(git_repo), MAPPER).validate(forked, "HEAD") == [merge]

    def test_evil_merge_rejected(self, git_repo, forked, run_git):
        run_git(git_repo, "merge", "--no-ff", "--no-commit", "feature")
        (git_repo / "lib" / "c.c").write_text("evil\n", encoding="utf-8")
        run_git(git_repo, "add", "lib/c.c")
        run_git(git_repo, "commit", "-m", "Evil merge")
        merge = run_git(git_repo, "rev-parse", "HEAD")

        with pytest.raises(NonEmptyMergeError) as exc:
            MergeValidator(GitBackend(git_repo), MAPPER).validate(forked, "HEAD")
        assert exc.value.commit == merge
        assert exc.value.paths == ["lib/c.c"]
        assert "Evil merge" in exc.value.description
        assert exc.value.exit_code == 3

    def test_change_outside_tracked_paths_ignored(self, git_repo, forked, run_git):
        run_git(git_repo, "merge", "--no-ff", "--no-commit", "feature")
        (git_repo / "other" / "x").write_text("merge-only change\n", encoding="utf-8")
        run_git(git_repo, "add", "other/x")
        run_git(git_repo, "commit", "-m", "Merge with unrelated fixup")
        assert len(MergeValidator(GitBackend(git_repo), MAPPER).validate(forked, "HEAD")) == 1
