"""Core building blocks: configuration, git backend, path mapping, signatures."""

from .checkpoint import Checkpoint, load_checkpoints, write_checkpoint_file
from .config import SyncConfig, build_sync_config, get_config_value, load_config
from .errors import (
    CherryPickConflict,
    ConfigurationError,
    ConsistencyDivergence,
    GitError,
    MirrorSyncError,
    NonEmptyMergeError,
    PatchApplyFailure,
)
from .git_utils import Commit, GitBackend
from .path_map import PathMapper
from .signature import SignatureIndex, commit_signature

__all__ = [
    "Checkpoint",
    "load_checkpoints",
    "write_checkpoint_file",
    "SyncConfig",
    "build_sync_config",
    "get_config_value",
    "load_config",
    "CherryPickConflict",
    "ConfigurationError",
    "ConsistencyDivergence",
    "GitError",
    "MirrorSyncError",
    "NonEmptyMergeError",
    "PatchApplyFailure",
    "Commit",
    "GitBackend",
    "PathMapper",
    "SignatureIndex",
    "commit_signature",
]
