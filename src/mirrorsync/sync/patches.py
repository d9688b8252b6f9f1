"""Apply an exported patch series to the mirror and record the new checkpoints."""

from __future__ import annotations

import logging

from ..core.checkpoint import write_checkpoint_file
from ..core.config import SyncConfig
from ..core.errors import PatchApplyFailure
from ..core.git_utils import GitBackend
from .cherry_pick import Decider
from .rewrite import PatchSeries

logger = logging.getLogger(__name__)


def apply_series(backend: GitBackend, series: PatchSeries, branch: str, decider: Decider) -> int:
    """Create ``branch`` in the mirror and ``git am`` every patch onto it.

    A patch that does not apply pauses for manual resolution; if ``git am``
    is still in progress afterwards the run stops with ``PatchApplyFailure``.
    """
    backend.checkout_new_branch(branch)
    for patch in series.patches:
        ok, reason = backend.apply_patch(patch)
        if ok:
            logger.debug("Applied %s", patch.name)
            continue
        logger.error("Applying %s failed:\n%s", patch, reason)
        decider.resolve_patch(patch, backend.repo_path, reason)
        if backend.am_in_progress():
            raise PatchApplyFailure(str(patch), reason)
    return len(series.patches)


def commit_checkpoints(backend: GitBackend, config: SyncConfig, series: PatchSeries, primary_tip: str, secondary_tip: str) -> str:
    """Write both checkpoint files and commit them with the series summary."""
    write_checkpoint_file(config.mirror_repo, config.primary_file, primary_tip)
    write_checkpoint_file(config.mirror_repo, config.secondary_file, secondary_tip)
    backend.add([config.primary_file, config.secondary_file])
    commit = backend.commit_staged(series.message, allow_empty=True)
    logger.info("Recorded checkpoints in %s", commit[:12])
    return commit
