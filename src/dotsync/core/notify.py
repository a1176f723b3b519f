"""
Notification sink for sync outcomes.

The engine decides what to say and how serious it is; delivering the
message (desktop banner, console, log) is up to the Notifier it is given.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def log_level(self) -> int:
        return {
            Severity.INFO: logging.INFO,
            Severity.WARNING: logging.WARNING,
            Severity.ERROR: logging.ERROR,
            Severity.CRITICAL: logging.CRITICAL,
        }[self]


@dataclass(frozen=True)
class Notification:
    message: str
    severity: Severity
    title: str


class Notifier(Protocol):
    def notify(self, message: str, severity: Severity = Severity.INFO, title: str = "") -> None: ...


class LogNotifier:
    """Writes notifications to the log at a level matching their severity."""

    def notify(self, message: str, severity: Severity = Severity.INFO, title: str = "") -> None:
        prefix = f"[{title}] " if title else ""
        logger.log(severity.log_level, "%s%s", prefix, message)


class RecordingNotifier:
    """Keeps notifications in memory; useful for callers that render them later."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, message: str, severity: Severity = Severity.INFO, title: str = "") -> None:
        self.notifications.append(Notification(message=message, severity=severity, title=title))

    def messages(self, severity: Severity | None = None) -> list[str]:
        return [
            n.message for n in self.notifications if severity is None or n.severity is severity
        ]
