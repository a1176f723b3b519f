"""
Timestamped snapshots of the source tree.

A backup is a plain recursive copy (including ``.git``) written before any
step that can rewrite history. Backups are named ``backup-YYYYmmdd-HHMMSS``,
with a numeric ``-N`` suffix for a second backup in the same second. Ordering
compares the timestamp, then the suffix as a number, which pruning relies on.

Backup failures never block a sync: a missing snapshot weakens the
rollback story but must not stop the user's data from syncing.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "backup-"
DEFAULT_KEEP = 10


@dataclass(frozen=True)
class Backup:
    """An immutable snapshot of the source tree."""

    name: str
    path: Path
    created_at: datetime


class BackupManager:
    """
    Creates and prunes backups under a retention directory.

    Example:
        >>> manager = BackupManager(Path("~/.local/share/dotsync/backups").expanduser())
        >>> backup = manager.create_backup(source_dir)
        >>> manager.prune(keep=10)
    """

    def __init__(
        self,
        backup_root: Path,
        prefix: str = DEFAULT_PREFIX,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.backup_root = backup_root
        self.prefix = prefix
        self._clock = clock

    def _unique_name(self, prefix: str, now: datetime) -> str:
        base = f"{prefix}{now.strftime('%Y%m%d-%H%M%S')}"
        name = base
        counter = 1
        while (self.backup_root / name).exists():
            name = f"{base}-{counter}"
            counter += 1
        return name

    def _sort_key(self, name: str) -> tuple[str, int]:
        """(timestamp, collision counter) so ``-10`` sorts after ``-9``."""
        stamp, _, suffix = name[len(self.prefix) :].rpartition("-")
        # Names without a collision suffix end in the HHMMSS field
        if not suffix.isdigit() or (len(suffix) == 6 and "-" not in stamp):
            return name[len(self.prefix) :], 0
        return stamp, int(suffix)

    def create_backup(self, source_tree: Path, prefix: str | None = None) -> Backup | None:
        """
        Copy ``source_tree`` into a new backup directory.

        Args:
            source_tree: Directory to snapshot.
            prefix: Name prefix; defaults to the manager's prefix.

        Returns:
            The Backup, or None if the copy failed (logged as a warning).
        """
        now = self._clock()
        try:
            self.backup_root.mkdir(parents=True, exist_ok=True)
            name = self._unique_name(prefix or self.prefix, now)
            target = self.backup_root / name
            logger.info("Creating backup: %s", name)
            shutil.copytree(source_tree, target, symlinks=True)
        except (OSError, shutil.Error) as e:
            logger.warning("Failed to create backup of %s: %s", source_tree, e)
            return None

        return Backup(name=name, path=target, created_at=now)

    def list_backups(self) -> list[Backup]:
        """Backups with this manager's prefix, newest first."""
        if not self.backup_root.is_dir():
            return []

        backups = []
        for entry in self.backup_root.iterdir():
            if not entry.is_dir() or not entry.name.startswith(self.prefix):
                continue
            backups.append(
                Backup(
                    name=entry.name,
                    path=entry,
                    created_at=datetime.fromtimestamp(entry.stat().st_mtime),
                )
            )
        return sorted(backups, key=lambda b: self._sort_key(b.name), reverse=True)

    def latest(self) -> Backup | None:
        """Most recent backup, if any."""
        backups = self.list_backups()
        return backups[0] if backups else None

    def prune(self, keep: int = DEFAULT_KEEP) -> list[Path]:
        """
        Delete all but the ``keep`` most recent backups.

        Returns:
            Paths that were removed.
        """
        removed: list[Path] = []
        for backup in self.list_backups()[keep:]:
            try:
                shutil.rmtree(backup.path)
            except OSError as e:
                logger.warning("Failed to remove old backup %s: %s", backup.name, e)
                continue
            removed.append(backup.path)

        if removed:
            logger.info("Removed %d old backup(s)", len(removed))
        return removed
