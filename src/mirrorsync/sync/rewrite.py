"""Project the working line down to the mirror layout and export it as patches.

The rewrite applies two tree transforms to every commit of the range: *move*
(mapped paths go under the staging root, mirror-only files are dropped) and
*root promotion* (the staging root becomes the new root, everything else is
discarded). It is done with plumbing commands on a throwaway index, so
nothing is checked out. Author, committer and message are preserved and
commits left empty by the transforms are pruned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from ..core.errors import GitError
from ..core.git_utils import GitBackend
from ..core.path_map import PathMapper

logger = logging.getLogger(__name__)

COVER_BLURB = "*** BLURB HERE ***"


@dataclass(frozen=True)
class RewriteResult:
    base: str
    tip: str
    count: int

    @property
    def is_empty(self) -> bool:
        return self.count <= 0


@dataclass(frozen=True)
class CheckpointTransition:
    label: str
    old: str
    new: str


@dataclass
class PatchSeries:
    """Ordered patches plus the leading summary entry (the cover letter)."""

    summary: Path
    patches: list[Path]
    message: str

    def __len__(self) -> int:
        return len(self.patches) + 1

    @property
    def entries(self) -> list[Path]:
        return [self.summary] + self.patches


def summary_message(cover_letter: str, transitions: list[CheckpointTransition], subject: str, intro: str) -> str:
    """Replace the cover letter blurb with the checkpoint summary.

    Everything after the blurb marker (shortlog and diffstat) is kept; the
    trailing ``-- `` signature block is dropped.
    """
    marker = cover_letter.find(COVER_BLURB)
    tail = cover_letter[marker + len(COVER_BLURB):] if marker >= 0 else ""
    signature = tail.find("\n-- \n")
    if signature >= 0:
        tail = tail[:signature]

    rows = []
    for t in transitions:
        rows.append((f"Baseline {t.label} commit:", t.old))
        rows.append((f"Checkpoint {t.label} commit:", t.new))
    width = max(len(key) for key, _ in rows) + 1 if rows else 0
    lines = [subject, "", intro]
    lines += [f"{key.ljust(width)}{value}".rstrip() for key, value in rows]
    body = "\n".join(lines)
    tail = tail.strip("\n")
    if tail:
        body += "\n\n" + tail
    return body.rstrip() + "\n"


class HistoryRewriter:
    def __init__(self, backend: GitBackend, mapper: PathMapper):
        self.backend = backend
        self.mapper = mapper

    def project_tree(self, ref: str) -> str:
        """Tree of ``ref`` after move + root promotion."""
        return self.backend.write_tree(self.mapper.project(self.backend.ls_tree(ref)))

    def rewrite(self, base_ref: str, tip_ref: str) -> RewriteResult:
        """Rewrite ``base_ref..tip_ref``; the base itself becomes a new root.

        Returns the rewritten base and tip and the number of commits that
        survived pruning between them.
        """
        base = self.backend.resolve_ref(base_ref)
        tip = self.backend.resolve_ref(tip_ref)

        base_tree = self.project_tree(base)
        base_meta = self.backend.commit_meta(base)
        new_base = self.backend.commit_tree(base_tree, [], base_meta.message, base_meta)

        rewritten: dict[str, str] = {base: new_base}
        trees: dict[str, str] = {new_base: base_tree}
        pruned = 0
        for sha in self.backend.list_commits(base, tip, merges=None):
            parents: list[str] = []
            for parent in self.backend.parents(sha):
                mapped = rewritten.get(parent)
                if mapped is not None and mapped not in parents:
                    parents.append(mapped)
            tree = self.project_tree(sha)
            if len(parents) == 1 and trees[parents[0]] == tree:
                rewritten[sha] = parents[0]
                pruned += 1
                continue
            meta = self.backend.commit_meta(sha)
            new = self.backend.commit_tree(tree, parents, meta.message, meta)
            rewritten[sha] = new
            trees[new] = tree

        new_tip = rewritten[tip]
        count = self.backend.count_commits(new_base, new_tip)
        logger.info("Rewrote history: %d commits kept, %d pruned as empty", count, pruned)
        return RewriteResult(new_base, new_tip, count)

    def export(
        self,
        result: RewriteResult,
        out_dir: str | Path,
        transitions: list[CheckpointTransition],
        subject: str,
        intro: str,
    ) -> PatchSeries:
        files = self.backend.export_patches(result.base, result.tip, out_dir)
        if not files:
            raise GitError("format-patch produced no output for a non-empty range", ["format-patch"])
        cover, patches = files[0], files[1:]
        message = summary_message(cover.read_text(encoding="utf-8"), transitions, subject, intro)
        logger.info("Exported %d patches to %s", len(patches), out_dir)
        return PatchSeries(summary=cover, patches=patches, message=message)
