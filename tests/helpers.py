"""
Test helpers: git shortcuts and in-memory fakes.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from dotsync.core.lock import LockKind
from dotsync.core.materializer import MaterializeResult
from dotsync.core.vcs import GitError, GitStore

# ==============================================================================
# Git helpers
# ==============================================================================


def git(repo: Path, *args: str) -> str:
    """Run a git command in ``repo`` and return stripped stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def configure_identity(repo: Path) -> None:
    git(repo, "config", "user.email", "test@example.com")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "commit.gpgsign", "false")


def commit_file(repo: Path, name: str, content: str, message: str | None = None) -> str:
    """Write, stage and commit a file. Returns the new HEAD SHA."""
    path = repo / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-m", message or f"Update {name}")
    return git(repo, "rev-parse", "HEAD")


def head(repo: Path) -> str:
    return git(repo, "rev-parse", "HEAD")


def remote_ref(remote: Path, branch: str) -> str | None:
    """SHA of ``branch`` in a bare repo, or None if it doesn't exist."""
    result = subprocess.run(
        ["git", "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"],
        cwd=remote,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip() or None


def stash_count(repo: Path) -> int:
    output = git(repo, "stash", "list")
    return len(output.splitlines()) if output else 0


# ==============================================================================
# Fakes
# ==============================================================================


class MemoryLockStore:
    """In-memory LockStore; ``live`` lists pids considered running."""

    def __init__(self, live: set[int] | None = None) -> None:
        self.markers: dict[LockKind, int] = {}
        self.live = live if live is not None else set()
        self.acquire_calls = 0

    def acquire(self, kind: LockKind, pid: int) -> bool:
        self.acquire_calls += 1
        if kind in self.markers:
            return False
        self.markers[kind] = pid
        self.live.add(pid)
        return True

    def release(self, kind: LockKind) -> None:
        self.markers.pop(kind, None)

    def owner(self, kind: LockKind) -> int | None:
        return self.markers.get(kind)

    def exists(self, kind: LockKind) -> bool:
        return kind in self.markers

    def is_live(self, pid: int) -> bool:
        return pid in self.live

    def marker_age(self, kind: LockKind) -> float | None:
        return None


class FakeMaterializer:
    """Materializer with scripted results that records what was called."""

    name = "fake"

    def __init__(
        self,
        available: bool = True,
        verify_ok: bool = True,
        dry_run_ok: bool = True,
        apply_ok: bool = True,
    ) -> None:
        self._available = available
        self.verify_ok = verify_ok
        self.dry_run_ok = dry_run_ok
        self.apply_ok = apply_ok
        self.calls: list[str] = []

    def available(self) -> bool:
        return self._available

    def verify(self) -> MaterializeResult:
        self.calls.append("verify")
        return MaterializeResult(ok=self.verify_ok, output="" if self.verify_ok else "bad template")

    def apply_dry_run(self) -> MaterializeResult:
        self.calls.append("apply_dry_run")
        return MaterializeResult(ok=self.dry_run_ok)

    def apply(self) -> MaterializeResult:
        self.calls.append("apply")
        output = "" if self.apply_ok else "permission denied"
        return MaterializeResult(ok=self.apply_ok, output=output)


class RecordingSleep:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class UnreachablePushStore(GitStore):
    """GitStore whose pushes always fail as if the network were down."""

    def push(self, remote: str, local_ref: str, remote_branch: str) -> None:
        raise GitError("Git command failed: git push", stderr="fatal: unable to access remote")


class BrokenResetStore(GitStore):
    """GitStore whose hard resets always fail."""

    def reset_hard(self, commit: str) -> None:
        raise GitError("Git command failed: git reset --hard", stderr="fatal: index.lock exists")
