"""
Versioned store access for the sync engine.

Example:
    >>> from dotsync.core.vcs import GitStore
    >>> store = GitStore(Path("."))
    >>> store.current_branch()
    'main'
"""

from dotsync.core.vcs.base import CommitRelation, DiffScope, GitError, VersionedStore
from dotsync.core.vcs.git import GitStore

__all__ = [
    "CommitRelation",
    "DiffScope",
    "GitError",
    "GitStore",
    "VersionedStore",
]
