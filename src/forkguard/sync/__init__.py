"""Upstream sync workflow."""

from forkguard.sync.orchestrator import SyncConfig, SyncError, SyncOrchestrator, parse_target
from forkguard.sync.scrub import scrub
from forkguard.sync.types import ScrubAction, SyncResult, SyncState, SyncTarget
from forkguard.sync.vcs import GitAdapter, VcsAdapter, resolve_repo_root

__all__ = [
    "GitAdapter",
    "ScrubAction",
    "SyncConfig",
    "SyncError",
    "SyncOrchestrator",
    "SyncResult",
    "SyncState",
    "SyncTarget",
    "VcsAdapter",
    "parse_target",
    "resolve_repo_root",
    "scrub",
]
