"""Shared fixtures for E2E tests."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from types import SimpleNamespace

import pytest

MIRROR_CONFIG_TOML = """\
[paths]
staging_root = "__mirror"
exclude = ["src/Makefile"]

[paths.map]
lib = "src"
"include/api.h" = "include/api.h"
"""

TEST_PATHS = {
    "staging_root": "__mirror",
    "map": {"lib": "src", "include/api.h": "include/api.h"},
    "exclude": ["src/Makefile"],
}


def _git(repo, *args, env=None) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        check=True,
        capture_output=True,
        text=True,
        env={**os.environ, **env} if env else None,
    )
    return result.stdout.strip()


def _init_repo(repo: Path) -> Path:
    repo.mkdir(parents=True)
    subprocess.run(["git", "init", str(repo)], check=True, capture_output=True)
    _git(repo, "config", "user.email", "test@test.com")
    _git(repo, "config", "user.name", "Test")
    _git(repo, "config", "commit.gpgsign", "false")
    _git(repo, "commit", "--allow-empty", "-m", "init")
    return repo


def _commit(repo, files: dict, message: str, date: str | None = None, author: str | None = None) -> str:
    """Write ``files`` (None deletes) and commit everything; returns the new HEAD."""
    for rel, content in files.items():
        path = Path(repo) / rel
        if content is None:
            path.unlink()
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    _git(repo, "add", "-A")
    env = {}
    if date:
        env["GIT_AUTHOR_DATE"] = date
        env["GIT_COMMITTER_DATE"] = date
    args = ["commit", "-m", message]
    if author:
        args.append(f"--author={author}")
    _git(repo, *args, env=env)
    return _git(repo, "rev-parse", "HEAD")


@pytest.fixture
def git_repo(tmp_path):
    """Create a real git repo in a temp directory."""
    return _init_repo(tmp_path / "repo")


@pytest.fixture
def run_git():
    """Run a git command in a repo and return its stripped stdout."""
    return _git


@pytest.fixture
def commit_files():
    """Factory committing a dict of files to a repo."""
    return _commit


@pytest.fixture
def isolated_global_config(tmp_path, monkeypatch):
    """Isolate global config to temp dir."""
    config_path = tmp_path / "global_ms" / "config.toml"
    monkeypatch.setattr("mirrorsync.core.config._GLOBAL_CONFIG_PATH", config_path)
    return config_path


@pytest.fixture
def sync_repos(tmp_path, isolated_global_config):
    """Source and mirror repositories that are in sync at the baseline commit.

    Source layout: ``lib/`` (mirrored as ``src/``), ``include/api.h`` and an
    unmapped ``other/`` directory. The mirror keeps its own ``src/Makefile``.
    The secondary upstream branch ``stable`` starts at the baseline too.
    """
    source = _init_repo(tmp_path / "source")
    baseline = _commit(
        source,
        {
            "lib/a.c": "int a;\n",
            "lib/Makefile": "all:\n",
            "lib/version.txt": "1\n",
            "include/api.h": "#define API 1\n",
            "other/x.txt": "x\n",
        },
        "Import library",
    )
    _git(source, "branch", "stable", baseline)

    mirror = _init_repo(tmp_path / "mirror")
    _commit(
        mirror,
        {
            "src/a.c": "int a;\n",
            "src/version.txt": "1\n",
            "src/Makefile": "# mirror build\n",
            "include/api.h": "#define API 1\n",
            "CHECKPOINT-COMMIT": baseline + "\n",
            "BPF-CHECKPOINT-COMMIT": baseline + "\n",
            ".mirrorsync/config.toml": MIRROR_CONFIG_TOML,
        },
        "Initial mirror",
    )
    return SimpleNamespace(source=source, mirror=mirror, baseline=baseline)
