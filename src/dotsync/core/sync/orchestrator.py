"""
Sync orchestrator: the push and pull state machines.

Push publishes local edits to this machine's branch (``auto-sync/<id>``)
after rebasing onto the authoritative branch. Pull brings the authoritative
branch into the source tree and applies it, rolling back when validation or
apply fails.

Both paths:
- run under a per-kind lock, so two pushes (or two pulls) never overlap
- snapshot the tree before touching history
- retry only the network steps
- return a SyncResult instead of raising for expected failures

Example:
    >>> orchestrator = SyncOrchestrator(load_config())
    >>> result = orchestrator.pull()
    >>> print(result.summary())
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TypeVar

from dotsync.core.backup import BackupManager
from dotsync.core.changes import ChangeClassifier
from dotsync.core.config.models import SyncConfig
from dotsync.core.devmode import DevMode, format_duration
from dotsync.core.lock import FileLockStore, LockBusyError, LockGuard, LockKind
from dotsync.core.machine import MachineIdentity
from dotsync.core.materializer import ContentMaterializer, create_materializer
from dotsync.core.notify import LogNotifier, Notifier, Severity
from dotsync.core.retry import RetryExecutor, RetryResult
from dotsync.core.sync.models import (
    PullState,
    PushState,
    SyncOutcome,
    SyncResult,
    SyncStatusReport,
)
from dotsync.core.vcs import CommitRelation, DiffScope, GitError, GitStore, VersionedStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
RESOLVE_BACKUP_PREFIX = "resolve-backup-"


def _with_output(message: str, output: str) -> str:
    return f"{message}: {output}" if output else message


@dataclass
class _Cycle:
    """Bookkeeping for one push or pull invocation."""

    operation: str
    started_at: datetime
    states: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    initial_commit: str | None = None
    target_branch: str | None = None
    backup_path: Path | None = None
    stash_owed: bool = False


class SyncOrchestrator:
    """
    Coordinates push and pull cycles for one source tree.

    Every collaborator can be injected; anything not given is built from
    the configuration.
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        store: VersionedStore | None = None,
        locks: LockGuard | None = None,
        retry: RetryExecutor | None = None,
        backups: BackupManager | None = None,
        classifier: ChangeClassifier | None = None,
        identity: MachineIdentity | None = None,
        materializer: ContentMaterializer | None = None,
        dev_mode: DevMode | None = None,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        paths = config.paths
        self.config = config
        self.store = store or GitStore(paths.source_dir, timeout=config.git.command_timeout)
        self.locks = locks or LockGuard(
            FileLockStore(paths.lock_dir),
            timeout_seconds=config.lock.timeout_seconds,
            poll_interval=config.lock.poll_interval,
        )
        self.retry = retry or RetryExecutor()
        self.backups = backups or BackupManager(paths.backup_dir)
        self.classifier = classifier or ChangeClassifier.with_globs(config.trivial_patterns)
        self.identity = identity or MachineIdentity(
            paths.machine_id_file, override=config.machine_id
        )
        self.materializer = materializer or create_materializer(
            config.materializer, paths.source_dir
        )
        self.dev_mode = dev_mode or DevMode(paths.dev_mode_file)
        self.notifier = notifier or LogNotifier()
        self._clock = clock

    @property
    def source_dir(self) -> Path:
        return self.config.paths.source_dir

    # ------------------------------------------------------------------
    # Bookkeeping helpers
    # ------------------------------------------------------------------

    def _timestamp(self) -> str:
        return self._clock().strftime(TIMESTAMP_FORMAT)

    def _enter(self, cycle: _Cycle, state: Enum) -> None:
        cycle.states.append(state.value)
        logger.info("%s: state -> %s", cycle.operation, state.value)

    def _warn(self, cycle: _Cycle, message: str) -> None:
        cycle.warnings.append(message)
        logger.warning("%s: %s", cycle.operation, message)
        self.notifier.notify(message, Severity.WARNING, f"dotsync {cycle.operation}")

    def _finish(
        self,
        cycle: _Cycle,
        outcome: SyncOutcome,
        message: str,
        *,
        commit_sha: str | None = None,
        notify: bool = True,
    ) -> SyncResult:
        """Log and report the terminal outcome, then build the result."""
        logger.log(
            outcome.severity.log_level,
            "%s finished: %s - %s",
            cycle.operation,
            outcome.value,
            message,
        )
        if notify:
            self.notifier.notify(message, outcome.severity, f"dotsync {cycle.operation}")

        return SyncResult(
            operation=cycle.operation,
            outcome=outcome,
            message=message,
            commit_sha=commit_sha,
            initial_commit=cycle.initial_commit,
            target_branch=cycle.target_branch,
            backup_path=cycle.backup_path,
            warnings=list(cycle.warnings),
            states=list(cycle.states),
            started_at=cycle.started_at,
            completed_at=self._clock(),
        )

    def _retry(self, operation: Callable[[], T], description: str) -> RetryResult[T]:
        return self.retry.run(
            operation,
            self.config.retry.to_policy(),
            description=description,
            retry_on=(GitError,),
        )

    def _backup(self, cycle: _Cycle, prefix: str | None = None) -> None:
        if not self.config.backup.enabled:
            return
        backup = self.backups.create_backup(self.source_dir, prefix=prefix)
        if backup is None:
            cycle.warnings.append("Failed to create backup")
        else:
            cycle.backup_path = backup.path

    def _prune_backups(self) -> None:
        if self.config.backup.enabled:
            logger.info("Cleaning up old backups")
            self.backups.prune(keep=self.config.backup.keep)

    def _stash(self, cycle: _Cycle, label: str) -> None:
        message = f"Auto-stash before {label} - {self._timestamp()}"
        logger.info("Stashing local changes: %s", message)
        cycle.stash_owed = self.store.stash_push(message)

    def _restore_stash(self, cycle: _Cycle) -> None:
        if not cycle.stash_owed:
            return
        logger.info("Restoring stashed changes")
        cycle.stash_owed = False
        if not self.store.stash_pop():
            self._warn(cycle, "Stash conflicts detected - manual resolution may be needed")

    def _validation_error(self, *, dry_run: bool) -> str | None:
        """
        Run verification (and optionally a dry-run apply).

        Returns:
            An error message, or None when validation passed or was skipped.
        """
        if not self.config.require_verification:
            logger.info("Verification disabled, skipping validation")
            return None

        if not self.materializer.available():
            logger.warning("%s not available, skipping verification", self.materializer.name)
            return None

        logger.info("Validating changes with %s verify", self.materializer.name)
        verified = self.materializer.verify()
        if not verified.ok:
            return _with_output(f"{self.materializer.name} verification failed", verified.output)

        if dry_run:
            dry = self.materializer.apply_dry_run()
            if not dry.ok:
                return _with_output("Dry-run application test failed", dry.output)

        return None

    def _collect_change_set(self) -> list[str]:
        change_set: list[str] = []
        seen: set[str] = set()
        for scope in (DiffScope.UNSTAGED, DiffScope.STAGED, DiffScope.UNTRACKED):
            for path in self.store.diff_names(scope):
                if path not in seen:
                    seen.add(path)
                    change_set.append(path)
        return change_set

    def _record_sync(self) -> None:
        last_sync_file = self.config.paths.last_sync_file
        try:
            last_sync_file.parent.mkdir(parents=True, exist_ok=True)
            last_sync_file.write_text(self._timestamp() + "\n")
        except OSError as e:
            logger.warning("Could not record last sync time: %s", e)

    def last_sync(self) -> str | None:
        """Timestamp of the last successful sync, if recorded."""
        try:
            value = self.config.paths.last_sync_file.read_text().strip()
        except OSError:
            return None
        return value or None

    def _abort_on_git_error(self, cycle: _Cycle, error: GitError) -> SyncResult:
        if cycle.stash_owed:
            cycle.warnings.append("Local changes are still stashed; run 'git stash pop' to restore")
        return self._finish(cycle, SyncOutcome.ERROR, f"Git error: {error.detail()}")

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def push(self) -> SyncResult:
        """
        Commit local changes and publish them to this machine's branch.

        Returns:
            SyncResult; ``success`` is False only when the cycle aborted.
        """
        cycle = _Cycle(operation="push", started_at=self._clock())
        logger.info("Starting push operation for %s", self.source_dir)

        # Checked before the lock so an opted-out machine never contends for it
        if self.dev_mode.is_active():
            return self._skip_for_dev_mode(cycle)

        try:
            handle = self.locks.acquire(LockKind.PUSH)
        except LockBusyError as e:
            return self._finish(cycle, SyncOutcome.BUSY, str(e))

        try:
            return self._push_locked(cycle)
        except GitError as e:
            return self._abort_on_git_error(cycle, e)
        finally:
            self.locks.release(handle)

    def _skip_for_dev_mode(self, cycle: _Cycle) -> SyncResult:
        active_for = self.dev_mode.active_for()
        duration = f" ({format_duration(active_for)})" if active_for is not None else ""
        logger.info("Development mode is active%s - auto-push disabled", duration)
        return self._finish(
            cycle, SyncOutcome.SKIPPED, "Development mode active - auto-push skipped"
        )

    def _push_locked(self, cycle: _Cycle) -> SyncResult:
        git = self.config.git
        self._enter(cycle, PushState.LOCK_ACQUIRED)

        if self.dev_mode.is_active():
            return self._skip_for_dev_mode(cycle)
        self._enter(cycle, PushState.DEV_MODE_CHECKED)

        if not self.store.is_repository():
            return self._finish(
                cycle, SyncOutcome.ERROR, f"Not a git repository: {self.source_dir}"
            )

        has_unstaged = self.store.has_unstaged_changes()
        has_staged = self.store.has_staged_changes()
        change_set = self._collect_change_set()
        if not (has_unstaged or has_staged or change_set):
            return self._finish(cycle, SyncOutcome.SKIPPED, "No changes to commit", notify=False)
        self._enter(cycle, PushState.CHANGES_DETECTED)

        if not self.classifier.is_significant(change_set):
            return self._finish(
                cycle,
                SyncOutcome.SKIPPED,
                "Only trivial changes detected - skipping push",
                notify=False,
            )
        logger.info(
            "Significant changes: %s", ", ".join(self.classifier.significant_paths(change_set))
        )
        self._enter(cycle, PushState.SIGNIFICANCE_CHECKED)

        machine_id = self.identity.resolve()
        cycle.target_branch = self.identity.branch_for(git.branch_prefix)
        logger.info("Detected machine id: %s, target branch: %s", machine_id, cycle.target_branch)

        cycle.initial_commit = self.store.current_commit()
        self._backup(cycle)

        if has_unstaged:
            self._stash(cycle, "sync")

        pulled = self._retry(
            lambda: self.store.rebase_pull(git.remote, git.main_branch),
            f"git pull --rebase --autostash {git.remote} {git.main_branch}",
        )
        if not pulled.success:
            self._restore_stash(cycle)
            return self._finish(
                cycle,
                SyncOutcome.TRANSIENT,
                f"Failed to pull from {git.main_branch} after {pulled.attempts} attempts: "
                f"{pulled.error_message}",
            )
        self._enter(cycle, PushState.REBASED_ON_AUTHORITATIVE)

        self._restore_stash(cycle)

        validation_error = self._validation_error(dry_run=False)
        if validation_error:
            return self._finish(
                cycle,
                SyncOutcome.VALIDATION_FAILURE,
                f"Validation failed - aborting sync: {validation_error}",
            )
        self._enter(cycle, PushState.VALIDATED)

        logger.info("Staging changes")
        self.store.add_all()
        if not self.store.has_staged_changes():
            return self._finish(
                cycle, SyncOutcome.SKIPPED, "No staged changes after staging", notify=False
            )

        commit_message = f"Auto-sync from {machine_id} - {self._timestamp()}"
        logger.info("Creating commit: %s", commit_message)
        try:
            commit_sha = self.store.commit(commit_message)
        except GitError as e:
            return self._finish(
                cycle, SyncOutcome.ERROR, f"Failed to create commit: {e.detail()}"
            )
        self._enter(cycle, PushState.COMMITTED)

        target_branch = cycle.target_branch
        pushed = self._retry(
            lambda: self.store.push(git.remote, "HEAD", target_branch),
            f"git push {git.remote} HEAD:{target_branch}",
        )
        if not pushed.success:
            logger.info("Undoing local commit %s", commit_sha[:8])
            try:
                self.store.undo_last_commit()
            except GitError as e:
                cycle.warnings.append(f"Could not undo local commit: {e.detail()}")
            return self._finish(
                cycle,
                SyncOutcome.TRANSIENT,
                f"Failed to push to {target_branch} after {pushed.attempts} attempts: "
                f"{pushed.error_message}",
            )
        self._enter(cycle, PushState.PUSHED)

        self._prune_backups()
        self._record_sync()
        self._enter(cycle, PushState.BACKUPS_PRUNED)

        return self._finish(
            cycle,
            SyncOutcome.SYNCED,
            f"Changes synced to {target_branch}",
            commit_sha=commit_sha,
        )

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def pull(self) -> SyncResult:
        """
        Bring the authoritative branch into the source tree and apply it.

        Returns:
            SyncResult; CRITICAL means rollback failed and a human must look.
        """
        cycle = _Cycle(operation="pull", started_at=self._clock())
        logger.info("Starting pull operation for %s", self.source_dir)

        try:
            handle = self.locks.acquire(LockKind.PULL)
        except LockBusyError as e:
            return self._finish(cycle, SyncOutcome.BUSY, str(e))

        try:
            return self._pull_locked(cycle)
        except GitError as e:
            return self._abort_on_git_error(cycle, e)
        finally:
            self.locks.release(handle)

    def _pull_locked(self, cycle: _Cycle) -> SyncResult:
        git = self.config.git
        cycle.target_branch = git.main_branch
        self._enter(cycle, PullState.LOCK_ACQUIRED)

        if not self.source_dir.is_dir():
            return self._finish(
                cycle,
                SyncOutcome.ERROR,
                f"Source directory does not exist: {self.source_dir}",
            )
        if not self.store.is_repository():
            return self._finish(
                cycle, SyncOutcome.ERROR, f"Not a git repository: {self.source_dir}"
            )
        if not self.materializer.available():
            logger.warning("%s command not available", self.materializer.name)
        self._enter(cycle, PullState.PRE_VALIDATED)

        self._backup(cycle)
        cycle.initial_commit = self.store.current_commit()
        self._enter(cycle, PullState.BACKED_UP)

        if self.store.has_unstaged_changes() or self.store.has_staged_changes():
            try:
                self._stash(cycle, "pull")
            except GitError as e:
                return self._finish(
                    cycle, SyncOutcome.ERROR, f"Failed to stash local changes: {e.detail()}"
                )
        self._enter(cycle, PullState.STASHED_IF_DIRTY)

        fetched = self._retry(
            lambda: self.store.fetch(git.remote, git.main_branch),
            f"git fetch {git.remote} {git.main_branch}",
        )
        if not fetched.success:
            self._restore_stash(cycle)
            return self._finish(
                cycle,
                SyncOutcome.TRANSIENT,
                f"Failed to fetch {git.main_branch} after {fetched.attempts} attempts: "
                f"{fetched.error_message}",
            )

        remote_commit = fetched.value
        if remote_commit is None:
            self._restore_stash(cycle)
            return self._finish(
                cycle,
                SyncOutcome.SKIPPED,
                f"No remote branch {git.remote}/{git.main_branch}. Nothing to pull.",
                notify=False,
            )

        local_commit = cycle.initial_commit
        if local_commit == remote_commit:
            self._restore_stash(cycle)
            return self._finish(
                cycle,
                SyncOutcome.SKIPPED,
                "Already up to date",
                commit_sha=local_commit,
                notify=False,
            )

        if local_commit is not None:
            relation = self.store.compare(local_commit, remote_commit)
            logger.info(
                "Local %s is %s relative to remote %s",
                local_commit[:8],
                relation.value,
                remote_commit[:8],
            )
            if relation is CommitRelation.AHEAD:
                # Local already contains the remote; only unpublished commits differ
                self._restore_stash(cycle)
                return self._finish(
                    cycle,
                    SyncOutcome.SKIPPED,
                    f"Already up to date (local is ahead of {git.remote}/{git.main_branch})",
                    commit_sha=local_commit,
                    notify=False,
                )
            # Advisory only: rebase-pull runs either way
            if self.store.probe_conflicts(local_commit, remote_commit):
                logger.warning("Potential merge conflicts detected - using rebase strategy")

        pulled = self._retry(
            lambda: self.store.rebase_pull(git.remote, git.main_branch),
            f"git pull --rebase --autostash {git.remote} {git.main_branch}",
        )
        if not pulled.success:
            self._restore_stash(cycle)
            return self._finish(
                cycle,
                SyncOutcome.TRANSIENT,
                f"Failed to pull with rebase from {git.main_branch} after "
                f"{pulled.attempts} attempts: {pulled.error_message}",
            )
        self._enter(cycle, PullState.PULLED)

        validation_error = self._validation_error(dry_run=True)
        if validation_error:
            return self._rollback_after_validation(cycle, validation_error)
        self._enter(cycle, PullState.POST_VALIDATED)

        applied = self._apply(cycle)
        if applied is not None:
            return applied
        self._enter(cycle, PullState.APPLIED)

        self._restore_stash(cycle)
        self._enter(cycle, PullState.RESTASH_POPPED)

        self._prune_backups()
        self._record_sync()

        return self._finish(
            cycle,
            SyncOutcome.SYNCED,
            f"Updated from {git.main_branch}",
            commit_sha=self.store.current_commit(),
        )

    def _rollback_after_validation(self, cycle: _Cycle, validation_error: str) -> SyncResult:
        logger.error("Post-pull validation failed: %s", validation_error)

        if cycle.initial_commit:
            logger.info("Rolling back to initial state: %s", cycle.initial_commit)
            try:
                self.store.reset_hard(cycle.initial_commit)
            except GitError as e:
                return self._finish(
                    cycle,
                    SyncOutcome.CRITICAL,
                    "Post-pull validation failed and rollback failed - "
                    f"manual intervention needed: {e.detail()}",
                )

        self._restore_stash(cycle)
        return self._finish(
            cycle,
            SyncOutcome.VALIDATION_FAILURE,
            f"Post-pull validation failed, rolled back: {validation_error}",
        )

    def _apply(self, cycle: _Cycle) -> SyncResult | None:
        """
        Apply the pulled content for real.

        Returns:
            None on success (or when no materializer is available),
            otherwise the terminal result.
        """
        if not self.materializer.available():
            logger.warning("%s not available, skipping apply", self.materializer.name)
            return None

        backup_commit = self.store.current_commit()
        logger.info("Applying changes with %s", self.materializer.name)
        applied = self.materializer.apply()
        if applied.ok:
            logger.info("Changes applied successfully")
            return None

        logger.error("Failed to apply changes: %s", applied.output)
        if backup_commit is not None:
            logger.info("Attempting rollback to %s", backup_commit)
            try:
                self.store.reset_hard(backup_commit)
            except GitError as e:
                # Leave any stash in place; the tree is in an unknown state
                if cycle.stash_owed:
                    cycle.warnings.append("Local changes are still stashed")
                return self._finish(
                    cycle,
                    SyncOutcome.CRITICAL,
                    "Pull failed and rollback failed - manual intervention needed: "
                    f"{e.detail()}",
                )

        self._restore_stash(cycle)
        return self._finish(
            cycle,
            SyncOutcome.APPLY_FAILURE,
            "Pull failed, rolled back to previous state",
        )

    # ------------------------------------------------------------------
    # Status and recovery
    # ------------------------------------------------------------------

    def status(self) -> SyncStatusReport:
        """Collect a status snapshot without touching the network."""
        git = self.config.git
        report = SyncStatusReport(
            source_dir=self.source_dir,
            machine_id=self.identity.resolve(),
            target_branch=self.identity.branch_for(git.branch_prefix),
            main_branch=git.main_branch,
            last_sync=self.last_sync(),
            dev_mode_active=self.dev_mode.is_active(),
            dev_mode_since=self.dev_mode.enabled_at(),
            dev_mode_expires=self.dev_mode.expires_at(),
            push_locked=self.locks.is_locked(LockKind.PUSH),
            pull_locked=self.locks.is_locked(LockKind.PULL),
            materializer=self.materializer.name,
            materializer_available=self.materializer.available(),
        )

        backups = self.backups.list_backups()
        report.backup_count = len(backups)
        report.latest_backup = backups[0].name if backups else None

        if self.store.is_repository():
            report.is_repository = True
            report.branch = self.store.current_branch()
            try:
                report.has_unstaged_changes = self.store.has_unstaged_changes()
                report.has_staged_changes = self.store.has_staged_changes()
            except GitError as e:
                logger.warning("Could not read work tree state: %s", e.detail())
            counts = self.store.ahead_behind()
            if counts is not None:
                report.ahead, report.behind = counts

        return report

    def reset_to_head(self) -> SyncResult:
        """
        Discard local modifications and untracked files.

        A ``resolve-backup-*`` snapshot is taken first; those are never pruned.
        Holds the push lock so an automatic push cannot run concurrently.
        """
        cycle = _Cycle(operation="reset", started_at=self._clock())

        try:
            handle = self.locks.acquire(LockKind.PUSH)
        except LockBusyError as e:
            return self._finish(cycle, SyncOutcome.BUSY, str(e))

        try:
            if not self.store.is_repository():
                return self._finish(
                    cycle, SyncOutcome.ERROR, f"Not a git repository: {self.source_dir}"
                )
            cycle.initial_commit = self.store.current_commit()
            self._backup(cycle, prefix=RESOLVE_BACKUP_PREFIX)
            self.store.reset_hard("HEAD")
            self.store.clean()
            return self._finish(
                cycle,
                SyncOutcome.SYNCED,
                "Repository reset to HEAD",
                commit_sha=cycle.initial_commit,
            )
        except GitError as e:
            return self._abort_on_git_error(cycle, e)
        finally:
            self.locks.release(handle)
