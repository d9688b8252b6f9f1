"""Reusable sync engine: the full pipeline decoupled from the CLI."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from ..core.checkpoint import Checkpoint, ensure_monotonic, load_checkpoints, resolve_checkpoint
from ..core.config import SyncConfig
from ..core.errors import ConfigurationError, ConsistencyDivergence
from ..core.git_utils import Commit, GitBackend, get_current_branch, get_current_commit
from ..core.path_map import PathMapper
from ..core.signature import SignatureIndex, commit_signature
from .cherry_pick import CherryPickOrchestrator, Decider, PickOutcome, PickState, load_candidates
from .merge import MergeValidator
from .patches import apply_series, commit_checkpoints
from .rewrite import CheckpointTransition, HistoryRewriter, PatchSeries
from .verify import ConsistencyVerifier, VerifyReport
from .workspace import Workspace

logger = logging.getLogger(__name__)

STATUS_SYNCED = "synced"
STATUS_NOOP = "noop"


@dataclass
class SyncResult:
    status: str
    transitions: list[CheckpointTransition]
    outcomes: list[PickOutcome] = field(default_factory=list)
    series: PatchSeries | None = None
    commit_count: int = 0
    sync_branch: str | None = None
    summary_commit: str | None = None
    report: VerifyReport | None = None
    duration_ms: int = 0

    @property
    def applied(self) -> list[PickOutcome]:
        return [o for o in self.outcomes if o.landed]

    @property
    def skipped(self) -> list[PickOutcome]:
        return [o for o in self.outcomes if o.state is PickState.SKIPPED]


@dataclass(frozen=True)
class CandidateView:
    """Read-only verdict for one candidate, as ``candidates`` reports it."""

    label: str
    commit: Commit
    matches: list[Commit]
    manual_mode: bool = False

    @property
    def verdict(self) -> str:
        if len(self.matches) > 1:
            return "ambiguous"
        if self.manual_mode:
            return "ask"
        if len(self.matches) == 1:
            return "synced"
        return "new"


def _upstream_state(config: SyncConfig, source: GitBackend) -> tuple[Checkpoint, str, Checkpoint, str]:
    primary, secondary = load_checkpoints(config)
    primary = resolve_checkpoint(source, primary)
    secondary = resolve_checkpoint(source, secondary)
    tip = source.head()
    if not source.ref_exists(config.secondary_branch):
        raise ConfigurationError(f"Branch {config.secondary_branch} does not exist in {config.source_repo}")
    secondary_tip = source.resolve_ref(config.secondary_branch)
    ensure_monotonic(source, primary, tip)
    ensure_monotonic(source, secondary, secondary_tip)
    return primary, tip, secondary, secondary_tip


def _log_banner(config: SyncConfig, ws: Workspace, rows: dict[str, str]) -> None:
    width = max(len(k) for k in rows) + 2
    logger.info("%s%s", "SOURCE REPO:".ljust(width), config.source_repo)
    logger.info("%s%s", "MIRROR REPO:".ljust(width), config.mirror_repo)
    logger.info("%s%s", "TEMP DIR:".ljust(width), ws.tmp_dir)
    logger.info("%s%s", "SUFFIX:".ljust(width), ws.suffix)
    for key, value in rows.items():
        logger.info("%s%s", key.ljust(width), value)


def perform_sync(config: SyncConfig, decider: Decider) -> SyncResult:
    """Run one synchronization from the stored checkpoints to the current tips.

    Raises the errors of ``mirrorsync.core.errors``; a run with nothing to
    apply returns a ``STATUS_NOOP`` result without touching the mirror.
    """
    start = time.monotonic()
    source = GitBackend(config.source_repo)
    mirror = GitBackend(config.mirror_repo)
    mapper = config.mapper

    primary, tip, secondary, secondary_tip = _upstream_state(config, source)
    if not mirror.is_clean():
        raise ConfigurationError(f"Mirror repository {config.mirror_repo} has uncommitted changes")

    transitions = [
        CheckpointTransition(primary.label, primary.commit, tip),
        CheckpointTransition(secondary.label, secondary.commit, secondary_tip),
    ]
    result = SyncResult(status=STATUS_NOOP, transitions=transitions)

    logger.info("Dumping existing mirror commit signatures...")
    index = SignatureIndex.build(mirror, mapper, config.signature_window)

    with Workspace(source, config.ref_prefix, config.keep_artifacts) as ws:
        baseline_ref = ws.create_ref("baseline", primary.commit)
        tip_ref = ws.create_ref("tip", tip)
        secondary_baseline_ref = ws.create_ref("secondary-baseline", secondary.commit)
        secondary_tip_ref = ws.create_ref("secondary-tip", secondary_tip)

        # Squash the baseline state into a single parentless commit.
        squash = source.commit_tree(source.tree_of(primary.commit), [], f"BASELINE SQUASH {primary.commit}\n")
        squash_base_ref = ws.create_ref("squash-base", squash)
        squash_tip_ref, line = ws.add_worktree("squash-tip", squash)

        _log_banner(
            config,
            ws,
            {
                f"{primary.label.upper()} BASE COMMIT:": f"'{source.describe(primary.commit)}'",
                f"{primary.label.upper()} TIP COMMIT:": f"'{source.describe(tip)}'",
                f"{secondary.label.upper()} BASE COMMIT:": f"'{source.describe(secondary.commit)}'",
                f"{secondary.label.upper()} TIP COMMIT:": f"'{source.describe(secondary_tip)}'",
                "MIRROR BRANCH:": get_current_branch(str(config.mirror_repo)) or "(detached)",
                "SQUASH COMMIT:": squash,
                "WORKING LINE:": f"{squash_tip_ref} ({line.repo_path})",
            },
        )

        validator = MergeValidator(source, mapper)
        validator.validate(baseline_ref, tip_ref)
        validator.validate(secondary_baseline_ref, secondary_tip_ref)

        orchestrator = CherryPickOrchestrator(line, index, mapper, decider, config.manual_mode)
        result.outcomes = orchestrator.replay(baseline_ref, tip_ref)
        result.outcomes += orchestrator.replay(secondary_baseline_ref, secondary_tip_ref)

        if line.head() == squash:
            logger.info("No new changes to apply, we are done!")
            result.duration_ms = int((time.monotonic() - start) * 1000)
            return result

        rewriter = HistoryRewriter(source, mapper)
        rewritten = rewriter.rewrite(squash_base_ref, squash_tip_ref)
        if rewritten.is_empty:
            logger.info("No new changes to apply, we are done!")
            result.duration_ms = int((time.monotonic() - start) * 1000)
            return result
        ws.create_ref("rewritten-base", rewritten.base)
        ws.create_ref("rewritten-tip", rewritten.tip)

        series = rewriter.export(
            rewritten, ws.path("patches"), transitions, config.summary_subject, config.summary_intro
        )
        result.series = series
        result.commit_count = rewritten.count

        # The sync branch in the mirror is the run's output and outlives the workspace.
        sync_branch = f"{config.ref_prefix}-sync-{ws.suffix}"
        apply_series(mirror, series, sync_branch, decider)
        result.sync_branch = sync_branch
        result.summary_commit = commit_checkpoints(mirror, config, series, tip, secondary_tip)
        result.status = STATUS_SYNCED
        logger.info("SUCCESS! %d commits synced.", rewritten.count)

        logger.info("Verifying source and mirror state")
        verifier = ConsistencyVerifier(source, mirror, mapper)
        result.report = verifier.verify(tip, ws.path("view"))
        result.duration_ms = int((time.monotonic() - start) * 1000)
        if not result.report.consistent:
            if not config.ignore_consistency:
                raise ConsistencyDivergence(result.report)
            logger.warning("Ignoring consistency problems as requested")

    return result


def list_candidates(config: SyncConfig) -> list[CandidateView]:
    """Candidate commits of both ranges with their dedup verdict, read-only."""
    source = GitBackend(config.source_repo)
    mirror = GitBackend(config.mirror_repo)
    primary, tip, secondary, secondary_tip = _upstream_state(config, source)
    index = SignatureIndex.build(mirror, config.mapper, config.signature_window)

    views = []
    for checkpoint, upstream_tip in ((primary, tip), (secondary, secondary_tip)):
        for commit in load_candidates(source, config.mapper, checkpoint.commit, upstream_tip):
            matches = index.lookup(commit_signature(commit))
            views.append(CandidateView(checkpoint.label, commit, matches, config.manual_mode))
    return views


def perform_verify(
    source_repo: str | Path,
    mirror_repo: str | Path,
    mapper: PathMapper,
    ref: str = "HEAD",
    keep_artifacts: bool = False,
) -> VerifyReport:
    """Standalone consistency check of ``ref`` in the source against the mirror checkout."""
    source = GitBackend(source_repo)
    mirror = GitBackend(mirror_repo)
    tip = source.resolve_ref(ref)
    logger.info(
        "Comparing source %s with mirror checkout %s",
        source.describe(tip),
        get_current_commit(str(mirror_repo)) or "(no commits)",
    )
    with Workspace(source, keep_artifacts=keep_artifacts) as ws:
        return ConsistencyVerifier(source, mirror, mapper).verify(tip, ws.path("view"))
