"""
Cooperative per-operation locking.

Only one push and one pull may run at a time on a machine. Each operation
kind owns a marker file holding the pid of the process that holds it. A
marker whose pid is no longer running is stale and is reclaimed on the
next acquisition attempt. A marker with no readable pid is only reclaimed
once it is older than a short grace period.

Acquiring a lock on the main thread also installs SIGINT/SIGTERM handlers
that release the lock and exit with status 130, so an interrupted sync
never leaves a marker behind.

Example:
    >>> guard = LockGuard(FileLockStore(Path("/tmp")))
    >>> with guard.hold(LockKind.PUSH):
    ...     ...  # push runs here
"""

from __future__ import annotations

import logging
import os
import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

INTERRUPT_EXIT_CODE = 130

# A marker without a readable pid younger than this is assumed to belong to
# a process that is still starting up.
UNREADABLE_MARKER_GRACE_SECONDS = 5.0


class LockKind(str, Enum):
    """Operation kinds that are mutually exclusive with themselves."""

    PUSH = "push"
    PULL = "pull"


class LockBusyError(Exception):
    """
    Raised when a lock is held by a live process for the whole timeout.

    The caller must abort the current sync cycle rather than queue behind
    the other process.
    """

    def __init__(self, kind: LockKind, owner_pid: int | None, timeout_seconds: float) -> None:
        self.kind = kind
        self.owner_pid = owner_pid
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Another {kind.value} operation is running (pid {owner_pid}) "
            f"and did not finish within {timeout_seconds:g}s"
        )


class LockStore(Protocol):
    """Storage for lock markers, one per operation kind."""

    def acquire(self, kind: LockKind, pid: int) -> bool:
        """Atomically create the marker. False if one already exists."""
        ...

    def release(self, kind: LockKind) -> None:
        """Remove the marker if present."""
        ...

    def owner(self, kind: LockKind) -> int | None:
        """Pid recorded in the marker, or None if missing or unreadable."""
        ...

    def exists(self, kind: LockKind) -> bool: ...

    def is_live(self, pid: int) -> bool: ...

    def marker_age(self, kind: LockKind) -> float | None:
        """Seconds since the marker was written, or None if unknown."""
        ...


def pid_is_running(pid: int) -> bool:
    """Check whether a process with this pid exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user
        return True
    except OSError:
        return False
    return True


class FileLockStore:
    """LockStore keeping ``dotsync-<kind>.lock`` markers in a directory."""

    def __init__(self, lock_dir: Path) -> None:
        self.lock_dir = lock_dir

    def marker_path(self, kind: LockKind) -> Path:
        return self.lock_dir / f"dotsync-{kind.value}.lock"

    def acquire(self, kind: LockKind, pid: int) -> bool:
        """
        Publish a marker holding ``pid``.

        The pid is written to a private temp file first and then hard-linked
        to the marker name, so the marker never exists without its pid.
        """
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        path = self.marker_path(kind)
        temp_path = self.lock_dir / f".{path.name}.{pid}.tmp"
        temp_path.write_text(f"{pid}\n")
        try:
            os.link(temp_path, path)
        except FileExistsError:
            return False
        finally:
            temp_path.unlink(missing_ok=True)
        return True

    def release(self, kind: LockKind) -> None:
        self.marker_path(kind).unlink(missing_ok=True)

    def owner(self, kind: LockKind) -> int | None:
        try:
            content = self.marker_path(kind).read_text().strip()
        except OSError:
            return None
        try:
            return int(content)
        except ValueError:
            return None

    def exists(self, kind: LockKind) -> bool:
        return self.marker_path(kind).exists()

    def is_live(self, pid: int) -> bool:
        return pid_is_running(pid)

    def marker_age(self, kind: LockKind) -> float | None:
        try:
            mtime = self.marker_path(kind).stat().st_mtime
        except OSError:
            return None
        return max(0.0, time.time() - mtime)


@dataclass
class LockHandle:
    """A held lock. Pass it back to LockGuard.release()."""

    kind: LockKind
    owner_pid: int
    acquired_at: datetime = field(default_factory=datetime.now)
    released: bool = False


class LockGuard:
    """
    Acquire and release per-kind locks with stale-lock reclamation.

    Attributes:
        store: Where lock markers live.
        timeout_seconds: Default time to wait for a live holder.
        poll_interval: Seconds between polls while waiting.
    """

    def __init__(
        self,
        store: LockStore,
        timeout_seconds: float = 30,
        poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        pid: int | None = None,
    ) -> None:
        self.store = store
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._pid = pid if pid is not None else os.getpid()
        self._held: dict[LockKind, LockHandle] = {}
        self._original_handlers: dict[int, Any] = {}

    def acquire(self, kind: LockKind, timeout_seconds: float | None = None) -> LockHandle:
        """
        Acquire the lock for ``kind``.

        Polls every ``poll_interval`` seconds. A stale marker is removed and
        acquisition is retried immediately.

        Raises:
            LockBusyError: If a live process holds the lock for the whole timeout.
        """
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        waited = 0.0

        while True:
            if self.store.acquire(kind, self._pid):
                break

            if not self.store.exists(kind):
                continue

            owner = self.store.owner(kind)
            if self._is_stale(kind, owner):
                logger.warning("Removing stale %s lock (pid %s)", kind.value, owner)
                self.store.release(kind)
                continue

            if waited >= timeout:
                logger.error(
                    "Another %s operation is running (pid %s) and not responding",
                    kind.value,
                    owner,
                )
                raise LockBusyError(kind, owner, timeout)

            logger.info(
                "Another %s operation is running (pid %s). Waiting... (%g/%g)",
                kind.value,
                owner,
                waited,
                timeout,
            )
            self._sleep(self.poll_interval)
            waited += self.poll_interval

        handle = LockHandle(kind=kind, owner_pid=self._pid)
        self._held[kind] = handle
        self._install_signal_handlers()
        logger.debug("Acquired %s lock", kind.value)
        return handle

    def _is_stale(self, kind: LockKind, owner: int | None) -> bool:
        if owner is not None:
            return not self.store.is_live(owner)
        age = self.store.marker_age(kind)
        return age is None or age >= UNREADABLE_MARKER_GRACE_SECONDS

    def release(self, handle: LockHandle) -> None:
        """
        Release a held lock. Safe to call more than once.

        The marker is only removed while it still names our pid, so a lock
        that was reclaimed by someone else is left alone.
        """
        if handle.released:
            return

        handle.released = True
        self._held.pop(handle.kind, None)

        if self.store.owner(handle.kind) == handle.owner_pid:
            self.store.release(handle.kind)
            logger.debug("Released %s lock", handle.kind.value)

        if not self._held:
            self._restore_signal_handlers()

    def release_all(self) -> None:
        """Release every lock held through this guard."""
        for handle in list(self._held.values()):
            self.release(handle)

    @contextmanager
    def hold(self, kind: LockKind, timeout_seconds: float | None = None) -> Iterator[LockHandle]:
        """Hold the lock for the duration of a ``with`` block."""
        handle = self.acquire(kind, timeout_seconds)
        try:
            yield handle
        finally:
            self.release(handle)

    def is_locked(self, kind: LockKind) -> bool:
        """True if a marker for ``kind`` is present and owned by a live process."""
        if not self.store.exists(kind):
            return False
        owner = self.store.owner(kind)
        return owner is not None and self.store.is_live(owner)

    def _install_signal_handlers(self) -> None:
        if self._original_handlers:
            return
        if threading.current_thread() is not threading.main_thread():
            # signal.signal only works on the main thread
            return
        for signum in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[signum] = signal.signal(signum, self._handle_signal)

    def _restore_signal_handlers(self) -> None:
        for signum, handler in self._original_handlers.items():
            signal.signal(signum, handler)
        self._original_handlers = {}

    def _handle_signal(self, signum: int, frame: object) -> None:
        """Release held locks, then exit so that finally blocks still run."""
        logger.warning("Received signal %s, cleaning up...", signum)
        self.release_all()
        raise SystemExit(INTERRUPT_EXIT_CODE)
