"""
Development-mode marker.

While a human is actively editing the source tree they can switch on
development mode. The marker file holds the epoch second it was enabled,
optionally followed by the epoch second it expires at. Its presence makes
push a no-op until it is disabled or, for a timed activation, until it
expires; an expired marker is removed the next time it is checked.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_AUTO_HOURS = 4.0


class DevMode:
    """Reads and toggles the development-mode marker file."""

    def __init__(self, marker_file: Path, clock: Callable[[], float] = time.time) -> None:
        self.marker_file = marker_file
        self._clock = clock

    def _read(self) -> tuple[int | None, int | None]:
        """(enabled_at, expires_at) epoch seconds; None where unreadable."""
        try:
            fields = self.marker_file.read_text().split()
        except OSError:
            return None, None
        try:
            values = [int(f) for f in fields[:2]]
        except ValueError:
            return None, None
        enabled = values[0] if values else None
        expires = values[1] if len(values) > 1 else None
        return enabled, expires

    def is_active(self) -> bool:
        if not self.marker_file.exists():
            return False
        _, expires = self._read()
        if expires is not None and self._clock() >= expires:
            logger.info("Development mode expired, re-enabling auto-push")
            self.marker_file.unlink(missing_ok=True)
            return False
        return True

    def enabled_at(self) -> datetime | None:
        """When development mode was switched on, if known."""
        if not self.is_active():
            return None
        enabled, _ = self._read()
        return datetime.fromtimestamp(enabled) if enabled is not None else None

    def expires_at(self) -> datetime | None:
        """When a timed activation ends; None if active indefinitely or off."""
        if not self.is_active():
            return None
        _, expires = self._read()
        return datetime.fromtimestamp(expires) if expires is not None else None

    def active_for(self) -> timedelta | None:
        started = self.enabled_at()
        if started is None:
            return None
        return datetime.fromtimestamp(self._clock()) - started

    def enable(self, reason: str = "Manual activation", duration: timedelta | None = None) -> None:
        """
        Write the marker.

        Args:
            reason: Logged with the activation.
            duration: If given, the mode switches itself off after this long.
        """
        now = int(self._clock())
        content = f"{now}"
        if duration is not None:
            expires = now + int(duration.total_seconds())
            content += f" {expires}"
            logger.info(
                "Enabling development mode for %s: %s", format_duration(duration), reason
            )
        else:
            logger.info("Enabling development mode: %s", reason)
        self.marker_file.parent.mkdir(parents=True, exist_ok=True)
        self.marker_file.write_text(content + "\n")

    def enable_for_hours(self, hours: float = DEFAULT_AUTO_HOURS, reason: str = "Auto") -> None:
        self.enable(reason, duration=timedelta(hours=hours))

    def disable(self) -> bool:
        """
        Remove the marker.

        Returns:
            False if development mode was already inactive.
        """
        if not self.is_active():
            return False
        logger.info("Disabling development mode")
        self.marker_file.unlink(missing_ok=True)
        return True

    def toggle(self) -> bool:
        """Flip the mode. Returns the new state."""
        if self.is_active():
            self.disable()
            return False
        self.enable("Manual toggle activation")
        return True


def format_duration(delta: timedelta) -> str:
    """Render a duration as ``Xh Ym``."""
    total_minutes = int(delta.total_seconds()) // 60
    return f"{total_minutes // 60}h {total_minutes % 60}m"
