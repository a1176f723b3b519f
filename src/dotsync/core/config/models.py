"""
Configuration data models for dotsync.

These models define the structure of ~/.config/dotsync/config.json and the
per-tree .dotsync.json file, with validation and type safety via Pydantic.
"""

import tempfile
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from dotsync.core.retry import RetryPolicy


def _home_path(*parts: str) -> Path:
    return Path.home().joinpath(*parts)


class PathsConfig(BaseModel):
    """
    Filesystem locations used by the engine.

    All paths accept ``~`` and are expanded on load.
    """
    source_dir: Path = Field(
        default_factory=lambda: _home_path(".local", "share", "chezmoi"),
        description="Source tree under version control"
    )
    backup_dir: Path = Field(
        default_factory=lambda: _home_path(".local", "share", "dotsync", "backups"),
        description="Directory holding timestamped backups"
    )
    state_dir: Path = Field(
        default_factory=lambda: _home_path(".local", "state", "dotsync"),
        description="Last-sync timestamp and logs"
    )
    lock_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Directory for lock marker files"
    )
    dev_mode_file: Path = Field(
        default_factory=lambda: _home_path(".config", "dotsync", ".dev-mode"),
        description="Marker whose presence disables push"
    )
    machine_id_file: Path = Field(
        default_factory=lambda: _home_path(".config", "dotsync", "machine-id"),
        description="Cached machine identity"
    )

    @field_validator("*", mode="after")
    @classmethod
    def expand_user(cls, v: Path) -> Path:
        return v.expanduser()

    @property
    def last_sync_file(self) -> Path:
        return self.state_dir / "last-sync"

    @property
    def log_file(self) -> Path:
        return self.state_dir / "logs" / "dotsync.log"


class GitConfig(BaseModel):
    """Remote and branch naming."""
    remote: str = Field(
        default="origin",
        description="Name of the remote to sync with"
    )
    main_branch: str = Field(
        default="main",
        description="Authoritative branch every machine pulls from"
    )
    branch_prefix: str = Field(
        default="auto-sync",
        description="Machine branches are named <prefix>/<machine-id>"
    )
    command_timeout: int = Field(
        default=120,
        ge=1,
        description="Seconds before a single git command is abandoned"
    )


class RetryConfig(BaseModel):
    """
    Retry behaviour for network operations (fetch, pull, push).

    Delay after attempt k is initial_delay * backoff_multiplier^(k-1).
    """
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Total attempts per network operation"
    )
    initial_delay: float = Field(
        default=5.0,
        ge=0.0,
        description="Seconds to wait after the first failure"
    )
    backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Growth factor for the delay"
    )

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            backoff_multiplier=self.backoff_multiplier,
        )


class LockConfig(BaseModel):
    """Lock acquisition timing."""
    timeout_seconds: float = Field(
        default=30,
        ge=0,
        description="How long to wait for another running operation"
    )
    poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between lock polls"
    )


class BackupConfig(BaseModel):
    """Backup creation and retention."""
    enabled: bool = Field(
        default=True,
        description="Snapshot the source tree before mutating operations"
    )
    keep: int = Field(
        default=10,
        ge=1,
        description="Number of backups kept after each successful sync"
    )


class SyncConfig(BaseModel):
    """
    Complete dotsync configuration.

    Example:
        >>> config = SyncConfig()
        >>> config.git.main_branch
        'main'
        >>> config.retry.to_policy().delay_for(2)
        10.0
    """
    paths: PathsConfig = Field(default_factory=PathsConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    lock: LockConfig = Field(default_factory=LockConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)

    require_verification: bool = Field(
        default=True,
        description="Run materializer verify / dry-run before committing or applying"
    )
    machine_id: str | None = Field(
        default=None,
        description="Override for the detected machine identity"
    )
    trivial_patterns: list[str] = Field(
        default_factory=list,
        description="Extra glob patterns treated as noise when deciding to push"
    )
    materializer: Literal["chezmoi", "none"] = Field(
        default="chezmoi",
        description="Tool used to verify and apply the source tree"
    )
