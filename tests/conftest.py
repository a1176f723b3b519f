"""
Pytest configuration and shared fixtures.

Provides real temporary git repositories (a bare "remote", the synced
source tree and a second clone standing in for another machine), plus an
orchestrator factory wired to in-memory fakes.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from dotsync.core.backup import BackupManager
from dotsync.core.config import SyncConfig, clear_cache
from dotsync.core.devmode import DevMode
from dotsync.core.lock import LockGuard
from dotsync.core.machine import MachineIdentity
from dotsync.core.notify import RecordingNotifier
from dotsync.core.retry import RetryExecutor
from dotsync.core.sync import SyncOrchestrator
from dotsync.core.vcs import GitStore
from helpers import (
    FakeMaterializer,
    MemoryLockStore,
    RecordingSleep,
    commit_file,
    configure_identity,
    git,
)

# ==============================================================================
# Repository fixtures
# ==============================================================================


@pytest.fixture
def remote_repo(tmp_path: Path) -> Path:
    """Bare repository with ``main`` holding README.md and file.txt."""
    remote = tmp_path / "remote.git"
    subprocess.run(["git", "init", "--bare", str(remote)], capture_output=True, check=True)
    git(remote, "symbolic-ref", "HEAD", "refs/heads/main")

    seed = tmp_path / "seed"
    seed.mkdir()
    git(seed, "init")
    configure_identity(seed)
    git(seed, "checkout", "-b", "main")
    (seed / "README.md").write_text("# dotfiles\n")
    (seed / "file.txt").write_text("line one\nline two\nline three\n")
    git(seed, "add", "README.md", "file.txt")
    git(seed, "commit", "-m", "Initial commit")
    git(seed, "remote", "add", "origin", str(remote))
    git(seed, "push", "origin", "main")

    return remote


def _clone(remote: Path, target: Path) -> Path:
    subprocess.run(
        ["git", "clone", str(remote), str(target)],
        capture_output=True,
        check=True,
    )
    configure_identity(target)
    return target


@pytest.fixture
def source_repo(tmp_path: Path, remote_repo: Path) -> Path:
    """The source tree being synced: a clone of the remote on ``main``."""
    return _clone(remote_repo, tmp_path / "source")


@pytest.fixture
def other_machine(tmp_path: Path, remote_repo: Path) -> Path:
    """A second clone used to publish changes to the remote ``main``."""
    return _clone(remote_repo, tmp_path / "other")


@pytest.fixture
def publish(other_machine: Path) -> Callable[[str, str], str]:
    """Commit a file on the other machine and push it to ``main``."""

    def _publish(name: str, content: str) -> str:
        git(other_machine, "pull", "--rebase", "origin", "main")
        sha = commit_file(other_machine, name, content, f"Remote change to {name}")
        git(other_machine, "push", "origin", "HEAD:main")
        return sha

    return _publish


# ==============================================================================
# Engine fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Keep tests away from the real user config and DOTSYNC_* variables."""
    for key in list(os.environ):
        if key.startswith("DOTSYNC_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def sync_config(tmp_path: Path, source_repo: Path) -> SyncConfig:
    """Configuration with every path under tmp_path and no retry delay."""
    return SyncConfig(
        paths={
            "source_dir": source_repo,
            "backup_dir": tmp_path / "backups",
            "state_dir": tmp_path / "state",
            "lock_dir": tmp_path / "locks",
            "dev_mode_file": tmp_path / "config" / ".dev-mode",
            "machine_id_file": tmp_path / "config" / "machine-id",
        },
        retry={"initial_delay": 0},
        lock={"timeout_seconds": 2, "poll_interval": 1},
        machine_id="test-box",
    )


@pytest.fixture
def materializer() -> FakeMaterializer:
    return FakeMaterializer()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def lock_store() -> MemoryLockStore:
    return MemoryLockStore()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_orchestrator(
    sync_config: SyncConfig,
    materializer: FakeMaterializer,
    notifier: RecordingNotifier,
    lock_store: MemoryLockStore,
    sleep: RecordingSleep,
) -> Callable[..., SyncOrchestrator]:
    """Factory building an orchestrator wired to the fakes; kwargs override."""

    def _make(**overrides) -> SyncOrchestrator:
        config = overrides.pop("config", sync_config)
        paths = config.paths
        kwargs = {
            "store": GitStore(paths.source_dir),
            "locks": LockGuard(lock_store, timeout_seconds=2, poll_interval=1, sleep=sleep),
            "retry": RetryExecutor(sleep=sleep),
            "backups": BackupManager(paths.backup_dir),
            "identity": MachineIdentity(paths.machine_id_file, override=config.machine_id),
            "materializer": materializer,
            "dev_mode": DevMode(paths.dev_mode_file),
            "notifier": notifier,
        }
        kwargs.update(overrides)
        return SyncOrchestrator(config, **kwargs)

    return _make
