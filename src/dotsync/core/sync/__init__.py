"""
Push/pull synchronization of a dotfile source tree.

Push commits local edits and publishes them to this machine's branch
(``auto-sync/<machine-id>``) after rebasing onto the authoritative branch.
Pull brings the authoritative branch in, validates it and applies it with
the configured materializer, rolling back on failure.

Example:
    >>> from dotsync.core.config import load_config
    >>> from dotsync.core.sync import SyncOrchestrator
    >>> orchestrator = SyncOrchestrator(load_config())
    >>> result = orchestrator.push()
    >>> if not result.success:
    ...     print(result.message)
"""

from dotsync.core.sync.models import (
    PullState,
    PushState,
    SyncOutcome,
    SyncResult,
    SyncStatusReport,
)
from dotsync.core.sync.orchestrator import SyncOrchestrator

__all__ = [
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncResult",
    "SyncStatusReport",
    "PushState",
    "PullState",
]
