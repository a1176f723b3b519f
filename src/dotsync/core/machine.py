"""
Stable per-machine identity.

Each machine pushes to its own branch, ``auto-sync/<machine-id>``. The id is
resolved once and cached to a file so it survives hostname changes.
"""

from __future__ import annotations

import logging
import platform
import re
import socket
import subprocess
from collections.abc import Callable
from pathlib import Path

logger = logging.getLogger(__name__)

UNKNOWN_MACHINE = "unknown"


def normalize_machine_id(raw: str) -> str:
    """
    Make a string safe for use as a git branch component.

    Example:
        >>> normalize_machine_id("Jane's MacBook Pro")
        'jane-s-macbook-pro'
    """
    cleaned = re.sub(r"[^a-z0-9-]", "-", raw.strip().lower())
    return cleaned or UNKNOWN_MACHINE


def detect_hostname() -> str:
    """
    Platform-native short hostname.

    On macOS the LocalHostName is preferred because it is stable and
    already branch-friendly; elsewhere the socket hostname is used.
    """
    if platform.system() == "Darwin":
        try:
            result = subprocess.run(
                ["scutil", "--get", "LocalHostName"],
                capture_output=True,
                text=True,
                timeout=10,
            )
            if result.returncode == 0 and result.stdout.strip():
                return result.stdout.strip()
        except (OSError, subprocess.TimeoutExpired):
            logger.debug("scutil unavailable, falling back to socket hostname")

    return socket.gethostname().split(".")[0]


class MachineIdentity:
    """
    Resolves the machine id: override, then cache file, then hostname.

    Attributes:
        override: Explicitly configured id (highest priority).
        cache_file: Where a detected id is persisted.
    """

    def __init__(
        self,
        cache_file: Path,
        override: str | None = None,
        hostname_lookup: Callable[[], str] = detect_hostname,
    ) -> None:
        self.cache_file = cache_file
        self.override = override
        self._hostname_lookup = hostname_lookup
        self._resolved: str | None = None

    def resolve(self) -> str:
        """Return the machine id, detecting and caching it on first use."""
        if self._resolved is not None:
            return self._resolved

        if self.override:
            self._resolved = normalize_machine_id(self.override)
            return self._resolved

        cached = self._read_cache()
        if cached:
            self._resolved = cached
            return cached

        machine_id = normalize_machine_id(self._hostname_lookup())
        self._write_cache(machine_id)
        self._resolved = machine_id
        return machine_id

    def branch_for(self, prefix: str) -> str:
        """Target branch for this machine, e.g. ``auto-sync/laptop``."""
        return f"{prefix}/{self.resolve()}"

    def _read_cache(self) -> str | None:
        try:
            content = self.cache_file.read_text().strip()
        except OSError:
            return None
        return content or None

    def _write_cache(self, machine_id: str) -> None:
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            self.cache_file.write_text(machine_id + "\n")
        except OSError as e:
            logger.warning("Could not cache machine id to %s: %s", self.cache_file, e)
