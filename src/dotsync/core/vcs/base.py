"""
Versioned store abstraction.

The sync engine never talks to git directly. It depends on the
VersionedStore protocol defined here so tests and alternative backends
can stand in for the real repository.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol


class GitError(Exception):
    """Exception raised when a versioned store operation fails."""

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr = stderr

    def detail(self) -> str:
        """Best human-readable description of the failure."""
        return self.stderr or str(self)


class DiffScope(str, Enum):
    """Which set of changed paths to list."""

    UNSTAGED = "unstaged"
    STAGED = "staged"
    UNTRACKED = "untracked"


class CommitRelation(str, Enum):
    """Relationship of a local commit to a remote commit."""

    UP_TO_DATE = "up_to_date"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"


class VersionedStore(Protocol):
    """Operations the sync engine needs from the repository."""

    def is_repository(self) -> bool: ...

    def current_commit(self) -> str | None: ...

    def current_branch(self) -> str | None: ...

    def fetch(self, remote: str, branch: str) -> str | None: ...

    def rebase_pull(self, remote: str, branch: str) -> None: ...

    def push(self, remote: str, local_ref: str, remote_branch: str) -> None: ...

    def has_unstaged_changes(self) -> bool: ...

    def has_staged_changes(self) -> bool: ...

    def diff_names(self, scope: DiffScope) -> list[str]: ...

    def stash_push(self, message: str) -> bool: ...

    def stash_pop(self) -> bool: ...

    def add_all(self) -> None: ...

    def commit(self, message: str) -> str: ...

    def reset_hard(self, commit: str) -> None: ...

    def undo_last_commit(self) -> None: ...

    def clean(self) -> None: ...

    def compare(self, local: str, remote: str) -> CommitRelation: ...

    def ahead_behind(self, upstream: str = "@{u}") -> tuple[int, int] | None: ...

    def probe_conflicts(self, local: str, remote: str) -> bool | None: ...
