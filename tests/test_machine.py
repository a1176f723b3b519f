"""
Tests for machine identity resolution.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from dotsync.core.machine import MachineIdentity, normalize_machine_id


class TestNormalizeMachineId:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("laptop", "laptop"),
            ("Work-MacBook", "work-macbook"),
            ("Jane's MacBook Pro", "jane-s-macbook-pro"),
            ("host_01.local", "host-01-local"),
            ("  padded  ", "padded"),
            ("", "unknown"),
        ],
    )
    def test_normalization(self, raw: str, expected: str) -> None:
        assert normalize_machine_id(raw) == expected


class TestMachineIdentity:
    def test_override_wins(self, tmp_path: Path) -> None:
        cache = tmp_path / "machine-id"
        cache.write_text("cached\n")
        identity = MachineIdentity(cache, override="My Desktop", hostname_lookup=lambda: "host")

        assert identity.resolve() == "my-desktop"

    def test_cache_beats_hostname(self, tmp_path: Path) -> None:
        cache = tmp_path / "machine-id"
        cache.write_text("old-name\n")
        identity = MachineIdentity(cache, hostname_lookup=lambda: "new-name")

        assert identity.resolve() == "old-name"

    def test_hostname_detected_and_cached(self, tmp_path: Path) -> None:
        cache = tmp_path / "config" / "machine-id"
        identity = MachineIdentity(cache, hostname_lookup=lambda: "Build.Server")

        assert identity.resolve() == "build-server"
        assert cache.read_text().strip() == "build-server"

    def test_resolves_once(self, tmp_path: Path) -> None:
        calls: list[int] = []

        def lookup() -> str:
            calls.append(1)
            return "box"

        identity = MachineIdentity(tmp_path / "missing" / "id", hostname_lookup=lookup)
        identity.resolve()
        identity.resolve()

        assert len(calls) == 1

    def test_unwritable_cache_still_resolves(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")
        identity = MachineIdentity(blocker / "machine-id", hostname_lookup=lambda: "box")

        assert identity.resolve() == "box"

    def test_branch_for(self, tmp_path: Path) -> None:
        identity = MachineIdentity(tmp_path / "id", override="laptop")

        assert identity.branch_for("auto-sync") == "auto-sync/laptop"
