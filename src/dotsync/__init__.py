"""
dotsync - keep a chezmoi source tree in sync across machines.

Each machine pushes its edits to its own ``auto-sync/<machine-id>`` branch
and pulls the shared ``main`` branch, with locking, retries, backups and
rollback around every step.
"""

__version__ = "0.3.0"

# Re-export core models for convenience
from dotsync.core.config.models import SyncConfig
from dotsync.core.sync.models import SyncOutcome, SyncResult

__all__ = ["SyncConfig", "SyncOutcome", "SyncResult", "__version__"]
