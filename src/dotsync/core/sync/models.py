"""
Data models for the sync engine.

Defines the push/pull state machines, the outcome taxonomy and the
Pydantic result and status models returned to callers.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from dotsync.core.notify import Severity


class PushState(str, Enum):
    """States visited by the push path, in order."""

    IDLE = "idle"
    LOCK_ACQUIRED = "lock_acquired"
    DEV_MODE_CHECKED = "dev_mode_checked"
    CHANGES_DETECTED = "changes_detected"
    SIGNIFICANCE_CHECKED = "significance_checked"
    REBASED_ON_AUTHORITATIVE = "rebased_on_authoritative"
    VALIDATED = "validated"
    COMMITTED = "committed"
    PUSHED = "pushed"
    BACKUPS_PRUNED = "backups_pruned"


class PullState(str, Enum):
    """States visited by the pull path, in order."""

    IDLE = "idle"
    LOCK_ACQUIRED = "lock_acquired"
    PRE_VALIDATED = "pre_validated"
    BACKED_UP = "backed_up"
    STASHED_IF_DIRTY = "stashed_if_dirty"
    PULLED = "pulled"
    POST_VALIDATED = "post_validated"
    APPLIED = "applied"
    RESTASH_POPPED = "restash_popped"


class SyncOutcome(str, Enum):
    """
    Terminal outcome of a sync cycle.

    SYNCED and SKIPPED are successes; everything else aborted the cycle.
    """

    SYNCED = "synced"
    SKIPPED = "skipped"
    BUSY = "busy"
    TRANSIENT = "transient"
    VALIDATION_FAILURE = "validation_failure"
    APPLY_FAILURE = "apply_failure"
    CRITICAL = "critical"
    ERROR = "error"

    @property
    def is_success(self) -> bool:
        return self in (SyncOutcome.SYNCED, SyncOutcome.SKIPPED)

    @property
    def severity(self) -> Severity:
        if self.is_success:
            return Severity.INFO
        if self is SyncOutcome.CRITICAL:
            return Severity.CRITICAL
        return Severity.ERROR


class SyncResult(BaseModel):
    """
    Result of a sync operation (push/pull/reset).

    Provides detailed feedback about what happened during the cycle.
    """

    operation: str = Field(description="Type of operation (push, pull, reset)")

    outcome: SyncOutcome = Field(description="Terminal outcome of the cycle")

    message: str = Field(
        default="",
        description="Human-readable result message",
    )

    commit_sha: str | None = Field(
        default=None,
        description="Commit created (push) or reached (pull)",
    )

    initial_commit: str | None = Field(
        default=None,
        description="HEAD before the operation started",
    )

    target_branch: str | None = Field(
        default=None,
        description="Branch pushed to or pulled from",
    )

    backup_path: Path | None = Field(
        default=None,
        description="Snapshot taken before the operation, if any",
    )

    warnings: list[str] = Field(
        default_factory=list,
        description="Non-fatal problems (e.g. stash conflicts)",
    )

    states: list[str] = Field(
        default_factory=list,
        description="State machine states visited, in order",
    )

    # Timing
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)

    @property
    def success(self) -> bool:
        return self.outcome.is_success

    @property
    def duration_seconds(self) -> float | None:
        """Calculate operation duration in seconds."""
        if self.started_at and self.completed_at:
            delta = self.completed_at - self.started_at
            return delta.total_seconds()
        return None

    def summary(self) -> str:
        """Generate a human-readable summary of the result."""
        if not self.success:
            return f"{self.operation} failed ({self.outcome.value}): {self.message}"

        parts = [f"{self.operation} {self.outcome.value}"]

        if self.commit_sha:
            parts.append(f"commit {self.commit_sha[:8]}")

        if self.warnings:
            parts.append(f"{len(self.warnings)} warning(s)")

        if self.message:
            parts.append(self.message)

        return ", ".join(parts)


class SyncStatusReport(BaseModel):
    """
    Read-only snapshot of the sync setup, used by ``dotsync status``.

    Built without touching the network.
    """

    source_dir: Path
    is_repository: bool = False
    branch: str | None = None
    has_unstaged_changes: bool = False
    has_staged_changes: bool = False
    ahead: int | None = None
    behind: int | None = None
    machine_id: str = ""
    target_branch: str = ""
    main_branch: str = ""
    last_sync: str | None = None
    dev_mode_active: bool = False
    dev_mode_since: datetime | None = None
    dev_mode_expires: datetime | None = None
    push_locked: bool = False
    pull_locked: bool = False
    backup_count: int = 0
    latest_backup: str | None = None
    materializer: str = ""
    materializer_available: bool = False
