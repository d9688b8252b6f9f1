"""Tests for checkpoint files."""

from __future__ import annotations

import dataclasses

import pytest

from mirrorsync.core.checkpoint import (
    ensure_monotonic,
    load_checkpoints,
    read_checkpoint_file,
    resolve_checkpoint,
    write_checkpoint_file,
)
from mirrorsync.core.config import build_sync_config
from mirrorsync.core.errors import ConfigurationError
from mirrorsync.core.git_utils import GitBackend


class TestCheckpointFiles:
    def test_read_missing(self, tmp_path):
        assert read_checkpoint_file(tmp_path, "CHECKPOINT-COMMIT") is None

    def test_read_empty(self, tmp_path):
        (tmp_path / "CHECKPOINT-COMMIT").write_text("\n", encoding="utf-8")
        assert read_checkpoint_file(tmp_path, "CHECKPOINT-COMMIT") is None

    def test_write_then_read(self, tmp_path):
        path = write_checkpoint_file(tmp_path, "CHECKPOINT-COMMIT", "abc123")
        assert path.read_text(encoding="utf-8") == "abc123\n"
        assert read_checkpoint_file(tmp_path, "CHECKPOINT-COMMIT") == "abc123"


class TestLoadCheckpoints:
    def test_from_files(self, sync_repos):
        config = build_sync_config(sync_repos.source, sync_repos.mirror, "stable")
        primary, secondary = load_checkpoints(config)
        assert primary.commit == sync_repos.baseline
        assert primary.label == "bpf-next"
        assert secondary.filename == "BPF-CHECKPOINT-COMMIT"

    def test_override(self, sync_repos):
        config = build_sync_config(sync_repos.source, sync_repos.mirror, "stable", secondary_baseline="HEAD~1")
        _, secondary = load_checkpoints(config)
        assert secondary.commit == "HEAD~1"

    def test_missing_file(self, sync_repos):
        (sync_repos.mirror / "BPF-CHECKPOINT-COMMIT").unlink()
        config = build_sync_config(sync_repos.source, sync_repos.mirror, "stable")
        with pytest.raises(ConfigurationError, match="BPF-CHECKPOINT-COMMIT"):
            load_checkpoints(config)


class TestResolution:
    def test_resolve_short_hash(self, sync_repos):
        config = build_sync_config(
            sync_repos.source, sync_repos.mirror, "stable", primary_baseline=sync_repos.baseline[:8]
        )
        primary, _ = load_checkpoints(config)
        resolved = resolve_checkpoint(GitBackend(sync_repos.source), primary)
        assert resolved.commit == sync_repos.baseline

    def test_unknown_commit(self, sync_repos):
        config = build_sync_config(sync_repos.source, sync_repos.mirror, "stable", primary_baseline="f" * 40)
        primary, _ = load_checkpoints(config)
        with pytest.raises(ConfigurationError, match="is not a commit"):
            resolve_checkpoint(GitBackend(sync_repos.source), primary)

    def test_monotonic(self, sync_repos, commit_files):
        backend = GitBackend(sync_repos.source)
        tip = commit_files(sync_repos.source, {"lib/a.c": "int a = 1;\n"}, "Change a")
        config = build_sync_config(sync_repos.source, sync_repos.mirror, "stable")
        primary, _ = load_checkpoints(config)

        ensure_monotonic(backend, primary, tip)
        ahead = dataclasses.replace(primary, commit=tip)
        with pytest.raises(ConfigurationError, match="backwards"):
            ensure_monotonic(backend, ahead, sync_repos.baseline)
