"""Checkpoint files: the last upstream commit already reflected in the mirror."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .config import SyncConfig
from .errors import ConfigurationError
from .git_utils import GitBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Checkpoint:
    """Last synced commit of one upstream branch."""

    label: str
    filename: str
    commit: str


def read_checkpoint_file(mirror_repo: str | Path, filename: str) -> str | None:
    """Return the commit stored in ``filename`` or None if absent/empty."""
    path = Path(mirror_repo) / filename
    if not path.exists():
        return None
    value = path.read_text(encoding="utf-8").strip()
    return value or None


def write_checkpoint_file(mirror_repo: str | Path, filename: str, commit: str) -> Path:
    path = Path(mirror_repo) / filename
    path.write_text(commit + "\n", encoding="utf-8")
    return path


def load_checkpoints(config: SyncConfig) -> tuple[Checkpoint, Checkpoint]:
    """Read primary and secondary checkpoints, honoring baseline overrides."""
    primary = config.primary_baseline or read_checkpoint_file(config.mirror_repo, config.primary_file)
    secondary = config.secondary_baseline or read_checkpoint_file(config.mirror_repo, config.secondary_file)
    if not primary or not secondary:
        missing = [
            name
            for name, value in ((config.primary_file, primary), (config.secondary_file, secondary))
            if not value
        ]
        raise ConfigurationError(
            f"{config.secondary_label} or {config.primary_label} baseline commits are not provided "
            f"(missing {', '.join(missing)})"
        )
    if config.primary_baseline:
        logger.info("Using %s baseline override %s", config.primary_label, primary)
    if config.secondary_baseline:
        logger.info("Using %s baseline override %s", config.secondary_label, secondary)
    return (
        Checkpoint(config.primary_label, config.primary_file, primary),
        Checkpoint(config.secondary_label, config.secondary_file, secondary),
    )


def resolve_checkpoint(backend: GitBackend, checkpoint: Checkpoint) -> Checkpoint:
    """Expand the stored value to a full commit hash known to the source repo."""
    if not backend.ref_exists(checkpoint.commit):
        raise ConfigurationError(
            f"{checkpoint.label} checkpoint {checkpoint.commit} is not a commit in {backend.repo_path}"
        )
    return Checkpoint(checkpoint.label, checkpoint.filename, backend.resolve_ref(checkpoint.commit))


def ensure_monotonic(backend: GitBackend, checkpoint: Checkpoint, tip: str) -> None:
    """Refuse to sync unless ``tip`` descends from the checkpoint commit."""
    if not backend.is_ancestor(checkpoint.commit, tip):
        raise ConfigurationError(
            f"{checkpoint.label} tip {tip[:12]} is not a descendant of checkpoint "
            f"{checkpoint.commit[:12]}; refusing to move the checkpoint backwards"
        )
