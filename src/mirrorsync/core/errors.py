"""Error taxonomy for sync runs.

Every error carries an ``exit_code`` so the CLI can map it to a process exit
status without knowing the concrete class.
"""

from __future__ import annotations


class MirrorSyncError(Exception):
    """Base class for all sync failures."""

    exit_code = 1


class ConfigurationError(MirrorSyncError):
    """Missing parameters, missing checkpoints or a non-monotonic checkpoint."""

    exit_code = 1


class GitError(MirrorSyncError):
    """A mandatory git command failed."""

    exit_code = 1

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        if self.stderr:
            return f"{base}: {self.stderr.strip()}"
        return base


class NonEmptyMergeError(MirrorSyncError):
    """A merge in the candidate range carries its own change to tracked paths."""

    exit_code = 3

    def __init__(self, commit: str, description: str, paths: list[str]):
        super().__init__(f"Merge {description} is non-empty, aborting")
        self.commit = commit
        self.description = description
        self.paths = paths


class CherryPickConflict(MirrorSyncError):
    """A cherry-pick conflict was left unresolved after the manual pause."""

    exit_code = 5

    def __init__(self, commit: str, description: str, paths: list[str], worktree: str, output: str = ""):
        message = f"Cherry-picking {description} is still unresolved in {worktree}"
        if output:
            message = f"{message}\n{output}"
        super().__init__(message)
        self.commit = commit
        self.description = description
        self.paths = paths
        self.worktree = worktree
        self.output = output


class PatchApplyFailure(MirrorSyncError):
    """A patch of the series could not be applied to the mirror."""

    exit_code = 6

    def __init__(self, patch: str, reason: str):
        super().__init__(f"Applying {patch} failed")
        self.patch = patch
        self.reason = reason


class ConsistencyDivergence(MirrorSyncError):
    """Source and mirror projections differ after the mirror was updated."""

    exit_code = 4

    def __init__(self, report):
        super().__init__(
            f"Consistency problems: {len(report.missing_in_mirror)} missing, "
            f"{len(report.extra_in_mirror)} extra, {len(report.differing)} differing files"
        )
        self.report = report
