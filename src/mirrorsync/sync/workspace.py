"""Per-run scratch space: temporary directory, ephemeral refs and worktrees.

All three are acquired through one ``Workspace`` and released together when
the ``with`` block exits, whatever the outcome. ``keep_artifacts`` leaves
everything in place as a diagnostic trail instead.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from ..core.errors import GitError
from ..core.git_utils import GitBackend

logger = logging.getLogger(__name__)


def run_suffix() -> str:
    """UTC timestamp with millisecond precision, safe for ref names."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S.") + f"{now.microsecond // 1000:03d}Z"


class Workspace:
    """Scoped owner of everything a run creates in the source repository."""

    def __init__(
        self,
        backend: GitBackend,
        prefix: str = "mirrorsync",
        keep_artifacts: bool = False,
        suffix: str | None = None,
    ):
        self.backend = backend
        self.prefix = prefix
        self.keep_artifacts = keep_artifacts
        self.suffix = suffix or run_suffix()
        self.tmp_dir: Path | None = None
        self.refs: list[str] = []
        self.worktrees: list[Path] = []

    def __enter__(self) -> Workspace:
        self.tmp_dir = Path(tempfile.mkdtemp(prefix=f"{self.prefix}-"))
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release(failed=exc_type is not None)

    def ref_name(self, role: str) -> str:
        return f"{self.prefix}-{role}-{self.suffix}"

    def path(self, name: str) -> Path:
        if self.tmp_dir is None:
            raise RuntimeError("Workspace is not active")
        return self.tmp_dir / name

    def create_ref(self, role: str, commit: str) -> str:
        name = self.ref_name(role)
        self.backend.create_ref(name, commit)
        self.refs.append(name)
        return name

    def add_worktree(self, role: str, commit: str) -> tuple[str, GitBackend]:
        """Check out a new ephemeral branch at ``commit`` in a private worktree."""
        name = self.ref_name(role)
        path = self.path(role)
        self.backend.add_worktree(path, name, commit)
        self.refs.append(name)
        self.worktrees.append(path)
        return name, GitBackend(path, timeout=self.backend.timeout)

    def release(self, failed: bool = False) -> None:
        if self.keep_artifacts:
            logger.info(
                "Keeping workspace %s and refs %s%s",
                self.tmp_dir,
                ", ".join(self.refs) or "(none)",
                " after failure" if failed else "",
            )
            return

        # Worktrees first: git refuses to delete a branch that is checked out.
        for path in reversed(self.worktrees):
            try:
                self.backend.remove_worktree(path)
            except GitError as e:
                logger.warning("Could not remove worktree %s: %s", path, e)
        for name in reversed(self.refs):
            try:
                self.backend.delete_ref(name)
            except GitError as e:
                logger.warning("Could not delete ref %s: %s", name, e)
        if self.tmp_dir is not None:
            shutil.rmtree(self.tmp_dir, ignore_errors=True)
        self.worktrees.clear()
        self.refs.clear()
        logger.debug("Workspace released")
