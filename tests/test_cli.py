"""
Tests for the dotsync CLI.

Tests cover:
- push / pull / reset exit codes
- status table and --json output
- dev-mode subcommands
- backups list / prune
- Configuration errors
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest
from typer.testing import CliRunner

from dotsync import __version__
from dotsync.cli import app
from dotsync.cli.context import CliState
from dotsync.core.sync import SyncOrchestrator
from helpers import BrokenResetStore, FakeMaterializer, head, remote_ref

runner = CliRunner()


@pytest.fixture
def cli_config(tmp_path: Path) -> Path:
    """User config keeping every dotsync path under tmp_path."""
    path = tmp_path / "dotsync.json"
    path.write_text(
        json.dumps(
            {
                "paths": {
                    "backup_dir": str(tmp_path / "backups"),
                    "state_dir": str(tmp_path / "state"),
                    "lock_dir": str(tmp_path / "locks"),
                    "dev_mode_file": str(tmp_path / "config" / ".dev-mode"),
                    "machine_id_file": str(tmp_path / "config" / "machine-id"),
                },
                "retry": {"initial_delay": 0},
                "lock": {"timeout_seconds": 1, "poll_interval": 0.1},
                "machine_id": "test-box",
                "materializer": "none",
            }
        )
    )
    return path


@pytest.fixture
def invoke(cli_config: Path, source_repo: Path):
    """Run the CLI against source_repo with the test config."""

    def _invoke(*args: str, source: Path | None = None, input: str | None = None):
        base = ["--config", str(cli_config), "--source", str(source or source_repo)]
        return runner.invoke(app, [*base, *args], input=input)

    return _invoke


class TestVersion:
    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestPushCommand:
    def test_push_changes(
        self, invoke: Callable, source_repo: Path, remote_repo: Path
    ) -> None:
        (source_repo / "dot_zshrc").write_text("export EDITOR=vim\n")

        result = invoke("push")

        assert result.exit_code == 0, result.output
        assert "auto-sync/test-box" in result.output
        assert remote_ref(remote_repo, "auto-sync/test-box") == head(source_repo)

    def test_push_nothing_to_do(self, invoke: Callable) -> None:
        result = invoke("push")

        assert result.exit_code == 0
        assert "No changes to commit" in result.output

    def test_push_verbose_shows_states(self, invoke: Callable, source_repo: Path) -> None:
        (source_repo / "dot_zshrc").write_text("export EDITOR=vim\n")

        result = invoke("push", "--verbose")

        assert result.exit_code == 0
        assert "States:" in result.output
        assert "Backup:" in result.output

    def test_push_outside_repository_fails(self, invoke: Callable, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()

        result = invoke("push", source=plain)

        assert result.exit_code == 1
        assert "Not a git repository" in result.output


class TestPullCommand:
    def test_pull(
        self, invoke: Callable, source_repo: Path, publish: Callable[[str, str], str]
    ) -> None:
        remote_sha = publish("dot_gitconfig", "[user]\n")

        result = invoke("pull")

        assert result.exit_code == 0, result.output
        assert "Updated from main" in result.output
        assert head(source_repo) == remote_sha

    def test_pull_up_to_date(self, invoke: Callable) -> None:
        result = invoke("pull")

        assert result.exit_code == 0
        assert "Already up to date" in result.output

    def test_validation_failure_exits_1(
        self,
        invoke: Callable,
        monkeypatch: pytest.MonkeyPatch,
        make_orchestrator: Callable[..., SyncOrchestrator],
        publish: Callable[[str, str], str],
    ) -> None:
        publish("remote.txt", "x\n")
        orchestrator = make_orchestrator(materializer=FakeMaterializer(verify_ok=False))
        monkeypatch.setattr(CliState, "orchestrator", lambda self: orchestrator)

        result = invoke("pull")

        assert result.exit_code == 1
        assert "validation_failure" in result.output

    def test_failed_rollback_exits_3(
        self,
        invoke: Callable,
        monkeypatch: pytest.MonkeyPatch,
        make_orchestrator: Callable[..., SyncOrchestrator],
        source_repo: Path,
        publish: Callable[[str, str], str],
    ) -> None:
        publish("remote.txt", "x\n")
        orchestrator = make_orchestrator(
            store=BrokenResetStore(source_repo),
            materializer=FakeMaterializer(apply_ok=False),
        )
        monkeypatch.setattr(CliState, "orchestrator", lambda self: orchestrator)

        result = invoke("pull")

        assert result.exit_code == 3
        assert "needs attention" in result.output


class TestStatusCommand:
    def test_status_table(self, invoke: Callable) -> None:
        result = invoke("status")

        assert result.exit_code == 0, result.output
        assert "test-box" in result.output
        assert "auto-sync/test-box" in result.output

    def test_status_json(self, invoke: Callable, source_repo: Path) -> None:
        (source_repo / "file.txt").write_text("edited\n")

        result = invoke("status", "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["machine_id"] == "test-box"
        assert data["target_branch"] == "auto-sync/test-box"
        assert data["is_repository"] is True
        assert data["branch"] == "main"
        assert data["has_unstaged_changes"] is True
        assert data["dev_mode_active"] is False
        assert data["materializer"] == "none"

    def test_status_outside_repository(self, invoke: Callable, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()

        result = invoke("status", source=plain)

        assert result.exit_code == 2


class TestDevModeCommand:
    def test_enable_blocks_push(self, invoke: Callable, source_repo: Path) -> None:
        result = invoke("dev-mode", "enable", "--reason", "trying a new prompt")
        assert result.exit_code == 0
        assert "enabled" in result.output

        (source_repo / "dot_zshrc").write_text("PROMPT='> '\n")
        result = invoke("push")

        assert result.exit_code == 0
        assert "Development mode active" in result.output

    def test_status_and_disable(self, invoke: Callable) -> None:
        assert "inactive" in invoke("dev-mode", "status").output

        invoke("dev-mode", "enable")
        assert "is active" in invoke("dev-mode").output

        result = invoke("dev-mode", "disable")
        assert result.exit_code == 0
        assert "disabled" in result.output
        assert "was not active" in invoke("dev-mode", "disable").output

    def test_auto_sets_expiry(self, invoke: Callable, tmp_path: Path) -> None:
        marker = tmp_path / "config" / ".dev-mode"

        result = invoke("dev-mode", "auto", "--hours", "2")

        assert result.exit_code == 0, result.output
        assert "until" in result.output
        enabled, expires = (int(v) for v in marker.read_text().split())
        assert expires - enabled == 2 * 3600

        status = json.loads(invoke("status", "--json").stdout)
        assert status["dev_mode_active"] is True
        assert status["dev_mode_expires"] is not None

    def test_toggle(self, invoke: Callable, tmp_path: Path) -> None:
        marker = tmp_path / "config" / ".dev-mode"

        invoke("dev-mode", "toggle")
        assert marker.exists()

        invoke("dev-mode", "toggle")
        assert not marker.exists()


class TestBackupsCommand:
    def test_list_empty(self, invoke: Callable) -> None:
        result = invoke("backups", "list")

        assert result.exit_code == 0
        assert "No backups" in result.output

    def test_list_after_push(self, invoke: Callable, source_repo: Path) -> None:
        (source_repo / "dot_zshrc").write_text("x\n")
        invoke("push")

        result = invoke("backups", "list")

        assert result.exit_code == 0
        assert "backup-" in result.output
        assert "sync" in result.output

    def test_prune(self, invoke: Callable, tmp_path: Path) -> None:
        backup_dir = tmp_path / "backups"
        for stamp in ("20260101-000000", "20260102-000000", "20260103-000000"):
            (backup_dir / f"backup-{stamp}").mkdir(parents=True)
        (backup_dir / "resolve-backup-20250101-000000").mkdir()

        result = invoke("backups", "prune", "--keep", "1")

        assert result.exit_code == 0
        assert "Removed 2" in result.output
        assert sorted(p.name for p in backup_dir.iterdir()) == [
            "backup-20260103-000000",
            "resolve-backup-20250101-000000",
        ]


class TestResetCommand:
    def test_reset_with_yes(self, invoke: Callable, source_repo: Path, tmp_path: Path) -> None:
        initial = head(source_repo)
        (source_repo / "file.txt").write_text("scratch\n")
        (source_repo / "junk.txt").write_text("junk\n")

        result = invoke("reset", "--yes")

        assert result.exit_code == 0, result.output
        assert head(source_repo) == initial
        assert (source_repo / "file.txt").read_text() == "line one\nline two\nline three\n"
        assert not (source_repo / "junk.txt").exists()
        snapshots = list((tmp_path / "backups").glob("resolve-backup-*"))
        assert len(snapshots) == 1
        assert (snapshots[0] / "junk.txt").exists()

    def test_reset_declined(self, invoke: Callable, source_repo: Path) -> None:
        (source_repo / "junk.txt").write_text("junk\n")

        result = invoke("reset", input="n\n")

        assert result.exit_code == 0
        assert (source_repo / "junk.txt").exists()

    def test_reset_outside_repository(self, invoke: Callable, tmp_path: Path) -> None:
        plain = tmp_path / "plain"
        plain.mkdir()

        result = invoke("reset", "--yes", source=plain)

        assert result.exit_code == 2


class TestConfigErrors:
    def test_invalid_config_exits_2(self, tmp_path: Path, source_repo: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"retry": {"max_attempts": 0}}))

        result = runner.invoke(app, ["--config", str(bad), "--source", str(source_repo), "push"])

        assert result.exit_code == 2
        assert "Invalid configuration" in result.output
