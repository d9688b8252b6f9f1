"""Git backend: the capability interface the sync pipeline drives.

Everything goes through the ``git`` executable via ``subprocess``. A
``GitBackend`` is bound to one working directory (a repository or one of its
linked worktrees).
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from .errors import GitError

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 300

# Field separators for machine-readable ``git log`` output.
_RS = "\x1e"
_FS = "\x1f"
_COMMIT_FORMAT = f"{_RS}%H{_FS}%h{_FS}%aI{_FS}%s{_FS}%b{_FS}"


def get_current_commit(repo_path: str) -> str | None:
    """Get current HEAD commit hash via git rev-parse HEAD."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=repo_path,
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return None


def get_current_branch(repo_path: str) -> str | None:
    """Get current branch name via git rev-parse --abbrev-ref HEAD."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            cwd=repo_path,
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            branch = result.stdout.strip()
            return branch if branch != "HEAD" else None
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return None


@dataclass(frozen=True)
class Commit:
    """Immutable commit record used for signature comparison."""

    hash: str
    short_hash: str
    author_date: str
    subject: str
    body: str = ""
    shortstat: str = ""

    @property
    def description(self) -> str:
        return f'{self.short_hash} ("{self.subject}")'


@dataclass(frozen=True)
class TreeEntry:
    """One ``git ls-tree -r`` line."""

    mode: str
    type: str
    sha: str
    path: str

    def relocated(self, path: str) -> TreeEntry:
        return TreeEntry(self.mode, self.type, self.sha, path)

    def to_index_info(self) -> str:
        return f"{self.mode} {self.type} {self.sha}\t{self.path}"


@dataclass(frozen=True)
class CommitMeta:
    """Authorship and message of a commit, preserved across rewrites."""

    author_name: str
    author_email: str
    author_date: str
    committer_name: str
    committer_email: str
    committer_date: str
    message: str

    def env(self) -> dict[str, str]:
        return {
            "GIT_AUTHOR_NAME": self.author_name,
            "GIT_AUTHOR_EMAIL": self.author_email,
            "GIT_AUTHOR_DATE": self.author_date,
            "GIT_COMMITTER_NAME": self.committer_name,
            "GIT_COMMITTER_EMAIL": self.committer_email,
            "GIT_COMMITTER_DATE": self.committer_date,
        }


@dataclass
class PickResult:
    ok: bool
    conflicts: list[str] = field(default_factory=list)
    output: str = ""


def _parse_commits(output: str) -> list[Commit]:
    commits: list[Commit] = []
    for chunk in output.split(_RS):
        if not chunk.strip():
            continue
        parts = chunk.split(_FS, 5)
        if len(parts) < 6:
            logger.debug("Ignoring malformed log record %r", chunk[:80])
            continue
        full, short, date, subject, body, rest = parts
        commits.append(
            Commit(
                hash=full.strip(),
                short_hash=short,
                author_date=date,
                subject=subject,
                body=body,
                shortstat=rest.strip(),
            )
        )
    return commits


class GitBackend:
    """Thin wrapper over the git CLI bound to ``repo_path``."""

    def __init__(self, repo_path: str | Path, timeout: int = GIT_TIMEOUT):
        self.repo_path = str(repo_path)
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"GitBackend({self.repo_path!r})"

    def run(
        self,
        args: list[str],
        check: bool = True,
        env: dict[str, str] | None = None,
        input: str | None = None,
    ) -> subprocess.CompletedProcess:
        cmd = ["git"] + args
        logger.debug("$ %s  (in %s)", " ".join(cmd), self.repo_path)
        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env={**os.environ, **env} if env else None,
                input=input,
            )
        except subprocess.TimeoutExpired as e:
            raise GitError(f"git {args[0]} timed out after {self.timeout}s", cmd) from e
        except FileNotFoundError as e:
            raise GitError("git executable not found", cmd) from e
        if check and result.returncode != 0:
            raise GitError(f"git {args[0]} failed in {self.repo_path}", cmd, result.stderr)
        return result

    def _out(self, args: list[str], **kwargs) -> str:
        return self.run(args, **kwargs).stdout.strip()

    # -- refs ---------------------------------------------------------------

    def resolve_ref(self, ref: str) -> str:
        return self._out(["rev-parse", "--verify", f"{ref}^{{commit}}"])

    def ref_exists(self, ref: str) -> bool:
        return self.run(["rev-parse", "-q", "--verify", f"{ref}^{{commit}}"], check=False).returncode == 0

    def create_ref(self, name: str, commit: str) -> None:
        self.run(["branch", name, commit])

    def update_ref(self, name: str, commit: str) -> None:
        self.run(["update-ref", f"refs/heads/{name}", commit])

    def delete_ref(self, name: str) -> None:
        self.run(["branch", "-D", name])
        # Backups left by earlier rewrite tools under refs/original.
        self.run(["update-ref", "-d", f"refs/original/refs/heads/{name}"], check=False)

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self.run(["merge-base", "--is-ancestor", ancestor, descendant], check=False)
        if result.returncode in (0, 1):
            return result.returncode == 0
        raise GitError("git merge-base failed", ["merge-base", ancestor, descendant], result.stderr)

    def head(self) -> str:
        return self.resolve_ref("HEAD")

    # -- history queries ----------------------------------------------------

    def describe(self, ref: str) -> str:
        return self._out(["log", "-n1", '--pretty=%h ("%s")', ref])

    def list_commits(
        self,
        baseline: str,
        tip: str,
        paths: list[str] | None = None,
        merges: bool | None = False,
    ) -> list[str]:
        """Commits in ``baseline..tip`` touching ``paths``, oldest first.

        ``merges=False`` excludes merges, ``True`` lists only merges and
        ``None`` lists everything.
        """
        args = ["rev-list", "--topo-order", "--reverse"]
        if merges is True:
            args.append("--merges")
        elif merges is False:
            args.append("--no-merges")
        args.append(f"{baseline}..{tip}")
        if paths:
            args += ["--"] + paths
        return self._out(args).split()

    def parents(self, ref: str) -> list[str]:
        return self._out(["rev-list", "--parents", "-n1", ref]).split()[1:]

    def count_commits(self, baseline: str, tip: str) -> int:
        return int(self._out(["rev-list", "--count", f"{baseline}..{tip}"]))

    def commit(self, ref: str, stat_paths: list[str] | None = None) -> Commit:
        """Load one commit with its shortstat restricted to ``stat_paths``."""
        output = self.run(["log", "-n1", f"--format={_COMMIT_FORMAT}", ref]).stdout
        parsed = _parse_commits(output)
        if not parsed:
            raise GitError(f"Cannot read commit {ref}", ["log", ref])
        args = ["diff-tree", "-r", "--root", "--no-commit-id", "--no-renames", "--shortstat", ref]
        if stat_paths:
            args += ["--"] + stat_paths
        shortstat = self._out(args)
        base = parsed[0]
        return Commit(base.hash, base.short_hash, base.author_date, base.subject, base.body, shortstat)

    def log_commits(self, limit: int, paths: list[str] | None = None) -> list[Commit]:
        """Most recent ``limit`` commits touching ``paths``, newest first."""
        args = ["log", f"-n{limit}", "--no-renames", "--shortstat", f"--format={_COMMIT_FORMAT}"]
        if paths:
            args += ["--"] + paths
        return _parse_commits(self.run(args).stdout)

    def merge_net_change(self, merge: str, paths: list[str] | None = None) -> list[str]:
        """Files the merge itself changed relative to all of its parents."""
        args = ["diff-tree", "--cc", "--no-commit-id", "-r", merge]
        if paths:
            args += ["--"] + paths
        changed = []
        for line in self.run(args).stdout.splitlines():
            if line.startswith("diff --cc "):
                changed.append(line[len("diff --cc "):])
            elif line.startswith("diff --combined "):
                changed.append(line[len("diff --combined "):])
        return changed

    def commit_meta(self, ref: str) -> CommitMeta:
        fmt = "%an%x00%ae%x00%aI%x00%cn%x00%ce%x00%cI%x00%B"
        parts = self.run(["log", "-n1", f"--format={fmt}", ref]).stdout.split("\x00", 6)
        if len(parts) != 7:
            raise GitError(f"Cannot read metadata of {ref}", ["log", ref])
        message = parts[6].rstrip("\n") + "\n"
        return CommitMeta(*parts[:6], message=message)

    # -- plumbing used by history rewriting ---------------------------------

    def ls_tree(self, ref: str) -> list[TreeEntry]:
        output = self.run(["ls-tree", "-r", "-z", "--full-tree", ref]).stdout
        entries = []
        for record in output.split("\0"):
            if not record:
                continue
            info, path = record.split("\t", 1)
            mode, obj_type, sha = info.split()
            entries.append(TreeEntry(mode, obj_type, sha, path))
        return entries

    def tree_of(self, ref: str) -> str:
        return self._out(["rev-parse", f"{ref}^{{tree}}"])

    def write_tree(self, entries: list[TreeEntry]) -> str:
        """Build a tree object from ``entries`` using a throwaway index."""
        if not entries:
            return self._out(["mktree"], input="")
        with tempfile.TemporaryDirectory(prefix="mirrorsync-index-") as tmp:
            env = {"GIT_INDEX_FILE": str(Path(tmp) / "index")}
            payload = "".join(entry.to_index_info() + "\0" for entry in entries)
            self.run(["update-index", "-z", "--index-info"], env=env, input=payload)
            return self._out(["write-tree"], env=env)

    def commit_tree(
        self,
        tree: str,
        parents: list[str],
        message: str,
        meta: CommitMeta | None = None,
    ) -> str:
        args = ["commit-tree", tree]
        for parent in parents:
            args += ["-p", parent]
        return self._out(args, env=meta.env() if meta else None, input=message)

    def read_blob(self, sha: str) -> bytes:
        try:
            result = subprocess.run(
                ["git", "cat-file", "blob", sha],
                cwd=self.repo_path,
                capture_output=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError) as e:
            raise GitError(f"Cannot read blob {sha}", ["cat-file", "blob", sha]) from e
        if result.returncode != 0:
            raise GitError(f"Cannot read blob {sha}", ["cat-file", "blob", sha], result.stderr.decode(errors="replace"))
        return result.stdout

    # -- worktrees ----------------------------------------------------------

    def add_worktree(self, path: str | Path, branch: str, commit: str) -> None:
        self.run(["worktree", "add", "-b", branch, str(path), commit])

    def remove_worktree(self, path: str | Path) -> None:
        self.run(["worktree", "remove", "--force", str(path)])
        self.run(["worktree", "prune"], check=False)

    # -- replay -------------------------------------------------------------

    def cherry_pick(self, ref: str) -> PickResult:
        result = self.run(["cherry-pick", "--keep-redundant-commits", ref], check=False)
        if result.returncode == 0:
            return PickResult(ok=True)
        return PickResult(ok=False, conflicts=self.conflicted_paths(), output=result.stdout + result.stderr)

    def conflicted_paths(self, paths: list[str] | None = None) -> list[str]:
        args = ["diff", "--name-only", "--diff-filter=U"]
        if paths:
            args += ["--"] + paths
        return [line for line in self._out(args).splitlines() if line]

    def cherry_pick_in_progress(self) -> bool:
        return self.run(["rev-parse", "-q", "--verify", "CHERRY_PICK_HEAD"], check=False).returncode == 0

    def continue_cherry_pick(self) -> bool:
        # GIT_EDITOR=true keeps the original message without an editor popping up.
        result = self.run(["cherry-pick", "--continue"], check=False, env={"GIT_EDITOR": "true"})
        return result.returncode == 0

    def abort_cherry_pick(self) -> None:
        self.run(["cherry-pick", "--abort"], check=False)

    def take_theirs(self, path: str) -> None:
        """Resolve ``path`` to the incoming version, deleting it if the incoming side did."""
        if self.run(["checkout", "--theirs", "--", path], check=False).returncode != 0:
            self.run(["rm", "-f", "--ignore-unmatch", "--quiet", "--", path])
            return
        self.run(["add", "--", path])

    def stage_all(self) -> None:
        self.run(["add", "-A"])

    # -- patches ------------------------------------------------------------

    def export_patches(self, baseline: str, tip: str, out_dir: str | Path) -> list[Path]:
        """format-patch ``baseline..tip`` with a cover letter; cover letter first."""
        output = self._out(["format-patch", "--cover-letter", "-o", str(out_dir), f"{baseline}..{tip}"])
        paths = []
        for line in output.splitlines():
            path = Path(line.strip())
            if not path.is_absolute():
                path = Path(self.repo_path) / path
            paths.append(path)
        return paths

    def apply_patch(self, patch: str | Path) -> tuple[bool, str]:
        result = self.run(["am", "--committer-date-is-author-date", str(patch)], check=False)
        return result.returncode == 0, (result.stdout + result.stderr).strip()

    def am_in_progress(self) -> bool:
        rebase_apply = Path(self._out(["rev-parse", "--git-path", "rebase-apply"]))
        if not rebase_apply.is_absolute():
            rebase_apply = Path(self.repo_path) / rebase_apply
        return rebase_apply.is_dir()

    def diff_files(self, path_a: str | Path, path_b: str | Path) -> list[str]:
        """Line diff between two files on disk; empty when identical."""
        result = self.run(["diff", "--no-index", "--no-color", "--", str(path_a), str(path_b)], check=False)
        if result.returncode == 0:
            return []
        if result.returncode == 1:
            return result.stdout.splitlines()
        raise GitError("git diff --no-index failed", ["diff", str(path_a), str(path_b)], result.stderr)

    # -- working tree -------------------------------------------------------

    def tracked_files(self, paths: list[str] | None = None) -> list[str]:
        args = ["ls-files", "-z"]
        if paths:
            args += ["--"] + paths
        return [p for p in self.run(args).stdout.split("\0") if p]

    def checkout_new_branch(self, name: str) -> None:
        self.run(["checkout", "-b", name])

    def add(self, paths: list[str]) -> None:
        self.run(["add", "--"] + paths)

    def commit_staged(self, message: str, allow_empty: bool = False) -> str:
        args = ["commit", "--file=-"]
        if allow_empty:
            args.append("--allow-empty")
        self.run(args, input=message)
        return self.head()

    def is_clean(self) -> bool:
        return not self._out(["status", "--porcelain", "--untracked-files=no"])
