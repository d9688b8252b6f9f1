"""Replay of upstream commits onto the working line.

Each candidate goes through the same decision: look its signature up in the
mirror index, skip unique matches, ask a human when the match is ambiguous or
manual mode is on, and cherry-pick everything else. Conflicts limited to files
that never reach the mirror are resolved automatically by taking the incoming
version; anything else waits for a human.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol

from ..core.errors import CherryPickConflict
from ..core.git_utils import Commit, GitBackend
from ..core.path_map import PathMapper
from ..core.signature import SignatureIndex, commit_signature

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    SKIP = "skip"
    APPLY = "apply"


class PickState(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    AUTO_RESOLVED = "auto_resolved"
    MANUAL_RESOLVED = "manual_resolved"


REASON_MANUAL = "manual"
REASON_AMBIGUOUS = "ambiguous"


@dataclass
class PickOutcome:
    commit: Commit
    state: PickState
    matches: list[Commit] = field(default_factory=list)
    decided_by_human: bool = False
    conflicts: list[str] = field(default_factory=list)

    @property
    def landed(self) -> bool:
        return self.state is not PickState.SKIPPED


class Decider(Protocol):
    """Where the pipeline blocks for a human (or a script standing in for one)."""

    def decide(self, candidate: Commit, matches: list[Commit], reason: str) -> Decision: ...

    def resolve_conflict(self, candidate: Commit, worktree: str, conflicts: list[str]) -> None: ...

    def resolve_patch(self, patch: Path, repo: str, reason: str) -> None: ...


class ScriptedDecider:
    """Decider that answers from a table and records every question.

    ``decisions`` is keyed by full or short commit hash. Conflict and patch
    callbacks run the given hooks (e.g. to fix the tree), or do nothing.
    """

    def __init__(
        self,
        decisions: dict[str, Decision] | None = None,
        default: Decision = Decision.APPLY,
        on_conflict: Callable[[Commit, str, list[str]], None] | None = None,
        on_patch: Callable[[Path, str, str], None] | None = None,
    ):
        self.decisions = decisions or {}
        self.default = default
        self.on_conflict = on_conflict
        self.on_patch = on_patch
        self.questions: list[tuple[Commit, list[Commit], str]] = []
        self.conflicts: list[tuple[Commit, list[str]]] = []
        self.patches: list[Path] = []

    def decide(self, candidate: Commit, matches: list[Commit], reason: str) -> Decision:
        self.questions.append((candidate, matches, reason))
        for key in (candidate.hash, candidate.short_hash):
            if key in self.decisions:
                return self.decisions[key]
        return self.default

    def resolve_conflict(self, candidate: Commit, worktree: str, conflicts: list[str]) -> None:
        self.conflicts.append((candidate, conflicts))
        if self.on_conflict:
            self.on_conflict(candidate, worktree, conflicts)

    def resolve_patch(self, patch: Path, repo: str, reason: str) -> None:
        self.patches.append(patch)
        if self.on_patch:
            self.on_patch(patch, repo, reason)


def load_candidates(backend: GitBackend, mapper: PathMapper, baseline: str, tip: str) -> list[Commit]:
    """Non-merge commits in ``baseline..tip`` touching tracked paths, oldest first."""
    stat_paths = mapper.source_stat_pathspec()
    return [
        backend.commit(sha, stat_paths)
        for sha in backend.list_commits(baseline, tip, mapper.source_paths, merges=False)
    ]


class CherryPickOrchestrator:
    """Replays candidate ranges onto the working line checked out in ``backend``."""

    def __init__(
        self,
        backend: GitBackend,
        index: SignatureIndex,
        mapper: PathMapper,
        decider: Decider,
        manual_mode: bool = False,
    ):
        self.backend = backend
        self.index = index
        self.mapper = mapper
        self.decider = decider
        self.manual_mode = manual_mode

    def replay(self, baseline: str, tip: str) -> list[PickOutcome]:
        outcomes = []
        for commit in load_candidates(self.backend, self.mapper, baseline, tip):
            outcomes.append(self.process(commit))
        return outcomes

    def process(self, commit: Commit) -> PickOutcome:
        desc = commit.description
        matches = self.index.lookup(commit_signature(commit))

        if matches:
            logger.info(
                "Commit '%s' is synced into mirror as:\n%s",
                desc,
                "\n".join(f"- {m.description}" for m in matches),
            )
            if not self.manual_mode and len(matches) == 1:
                logger.info("Skipping '%s' due to unique match...", desc)
                return PickOutcome(commit, PickState.SKIPPED, matches)
            if len(matches) > 1:
                logger.warning("'%s' matches multiple commits, please, double-check!", desc)

        human = False
        if self.manual_mode or len(matches) > 1:
            reason = REASON_AMBIGUOUS if len(matches) > 1 else REASON_MANUAL
            human = True
            if self.decider.decide(commit, matches, reason) is Decision.SKIP:
                logger.info("Skipping '%s'...", desc)
                return PickOutcome(commit, PickState.SKIPPED, matches, decided_by_human=True)

        return self.apply(commit, matches, human)

    def apply(self, commit: Commit, matches: list[Commit] | None = None, decided_by_human: bool = False) -> PickOutcome:
        matches = matches or []
        desc = commit.description
        logger.info("Picking '%s'...", desc)
        result = self.backend.cherry_pick(commit.hash)
        if result.ok:
            return PickOutcome(commit, PickState.APPLIED, matches, decided_by_human)

        logger.warning("Cherry-picking '%s' failed, checking if it's non-mirrored files causing problems...", desc)
        tracked = [path for path in result.conflicts if self.mapper.is_projected(path)]

        if not tracked:
            if result.conflicts:
                logger.info("Looks like only non-mirrored files have conflicts, taking incoming version...")
            for path in result.conflicts:
                self.backend.take_theirs(path)
            if self.backend.cherry_pick_in_progress():
                self.backend.stage_all()
                if self.backend.continue_cherry_pick():
                    logger.info("Success! All cherry-pick conflicts were resolved for '%s'!", desc)
                    return PickOutcome(
                        commit, PickState.AUTO_RESOLVED, matches, decided_by_human, list(result.conflicts)
                    )
            if not result.conflicts and not self.backend.cherry_pick_in_progress():
                raise CherryPickConflict(commit.hash, desc, [], self.backend.repo_path, result.output)
            logger.error("That still failed for '%s'! Please resolve manually.", desc)

        conflicts = tracked or result.conflicts
        self.decider.resolve_conflict(commit, self.backend.repo_path, conflicts)
        if self.backend.cherry_pick_in_progress() or self.backend.conflicted_paths():
            raise CherryPickConflict(commit.hash, desc, conflicts, self.backend.repo_path)
        return PickOutcome(commit, PickState.MANUAL_RESOLVED, matches, decided_by_human, conflicts)
