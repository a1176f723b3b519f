"""
Tests for the development-mode marker.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from pathlib import Path

from dotsync.core.devmode import DevMode, format_duration


class TestDevMode:
    def test_inactive_without_marker(self, tmp_path: Path) -> None:
        dev_mode = DevMode(tmp_path / ".dev-mode")

        assert not dev_mode.is_active()
        assert dev_mode.enabled_at() is None
        assert dev_mode.active_for() is None

    def test_enable_writes_epoch_seconds(self, tmp_path: Path) -> None:
        marker = tmp_path / "config" / ".dev-mode"
        dev_mode = DevMode(marker)

        before = int(time.time())
        dev_mode.enable("testing")

        assert dev_mode.is_active()
        assert before <= int(marker.read_text().strip()) <= int(time.time())
        assert dev_mode.active_for() >= timedelta(0)

    def test_disable(self, tmp_path: Path) -> None:
        dev_mode = DevMode(tmp_path / ".dev-mode")
        dev_mode.enable()

        assert dev_mode.disable()
        assert not dev_mode.is_active()
        assert not dev_mode.disable()

    def test_toggle(self, tmp_path: Path) -> None:
        dev_mode = DevMode(tmp_path / ".dev-mode")

        assert dev_mode.toggle() is True
        assert dev_mode.is_active()
        assert dev_mode.toggle() is False
        assert not dev_mode.is_active()

    def test_presence_alone_activates(self, tmp_path: Path) -> None:
        """A marker with unreadable content still counts as active."""
        marker = tmp_path / ".dev-mode"
        marker.write_text("garbage")
        dev_mode = DevMode(marker)

        assert dev_mode.is_active()
        assert dev_mode.enabled_at() is None


class TestFormatDuration:
    def test_hours_and_minutes(self) -> None:
        assert format_duration(timedelta(hours=2, minutes=5, seconds=59)) == "2h 5m"

    def test_under_a_minute(self) -> None:
        assert format_duration(timedelta(seconds=30)) == "0h 0m"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestTimedActivation:
    """Timed activations switch themselves off."""

    def test_marker_holds_expiry(self, tmp_path: Path) -> None:
        clock = FakeClock()
        marker = tmp_path / ".dev-mode"
        dev_mode = DevMode(marker, clock=clock)

        dev_mode.enable_for_hours(2)

        enabled, expires = (int(v) for v in marker.read_text().split())
        assert enabled == 1_700_000_000
        assert expires - enabled == 2 * 3600
        assert dev_mode.expires_at() == datetime.fromtimestamp(expires)

    def test_active_until_expiry(self, tmp_path: Path) -> None:
        clock = FakeClock()
        marker = tmp_path / ".dev-mode"
        dev_mode = DevMode(marker, clock=clock)
        dev_mode.enable("short experiment", duration=timedelta(hours=4))

        clock.now += 4 * 3600 - 1
        assert dev_mode.is_active()
        assert dev_mode.active_for() == timedelta(hours=4) - timedelta(seconds=1)

        clock.now += 1
        assert not dev_mode.is_active()
        assert not marker.exists()
        assert dev_mode.expires_at() is None

    def test_default_is_four_hours(self, tmp_path: Path) -> None:
        clock = FakeClock()
        dev_mode = DevMode(tmp_path / ".dev-mode", clock=clock)

        dev_mode.enable_for_hours()

        assert dev_mode.expires_at() - dev_mode.enabled_at() == timedelta(hours=4)

    def test_plain_enable_replaces_timed_activation(self, tmp_path: Path) -> None:
        clock = FakeClock()
        dev_mode = DevMode(tmp_path / ".dev-mode", clock=clock)
        dev_mode.enable_for_hours(1)

        dev_mode.enable()
        clock.now += 10 * 3600

        assert dev_mode.is_active()
        assert dev_mode.expires_at() is None
