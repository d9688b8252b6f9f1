"""Sync pipeline: merge gate, replay, rewrite, patch application, verification."""

from .cherry_pick import CherryPickOrchestrator, Decision, PickOutcome, PickState, ScriptedDecider
from .engine import STATUS_NOOP, STATUS_SYNCED, SyncResult, list_candidates, perform_sync, perform_verify
from .merge import MergeValidator
from .rewrite import HistoryRewriter, PatchSeries
from .verify import ConsistencyVerifier, VerifyReport
from .workspace import Workspace

__all__ = [
    "CherryPickOrchestrator",
    "Decision",
    "PickOutcome",
    "PickState",
    "ScriptedDecider",
    "STATUS_NOOP",
    "STATUS_SYNCED",
    "SyncResult",
    "list_candidates",
    "perform_sync",
    "perform_verify",
    "MergeValidator",
    "HistoryRewriter",
    "PatchSeries",
    "ConsistencyVerifier",
    "VerifyReport",
    "Workspace",
]
