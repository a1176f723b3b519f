"""
Standardized error handling and exit codes for the dotsync CLI.

This module provides consistent error messaging with actionable guidance
and maps sync outcomes onto process exit codes, so schedulers (launchd,
systemd timers, cron) can tell a skipped run from one that needs attention.
"""

from enum import IntEnum
from pathlib import Path

from rich.console import Console

from dotsync.core.sync import SyncOutcome

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for dotsync CLI operations."""

    SUCCESS = 0
    """Sync completed, or was skipped as a no-op."""

    GENERAL_ERROR = 1
    """The cycle aborted (busy, network, validation, apply or git error)."""

    USER_ERROR = 2
    """User configuration or input error (actionable by user)."""

    CRITICAL = 3
    """Rollback failed; the source tree needs manual attention."""

    SIGINT = 130
    """Terminated by SIGINT/SIGTERM - Unix standard."""


def exit_code_for(outcome: SyncOutcome) -> ExitCode:
    """Map a sync outcome to the exit code the CLI should return."""
    if outcome.is_success:
        return ExitCode.SUCCESS
    if outcome is SyncOutcome.CRITICAL:
        return ExitCode.CRITICAL
    return ExitCode.GENERAL_ERROR


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Invalid configuration",
        ...     reason="retry.max_attempts must be >= 1",
        ...     solution="edit ~/.config/dotsync/config.json",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_not_a_repository_error(source_dir: Path) -> None:
    """Print error when the source tree is missing or not under git."""
    print_error(
        f"{source_dir} is not a git repository",
        reason="dotsync syncs a chezmoi source tree that is tracked by git",
        solution="chezmoi init <repo-url>  # or pass --source <dir>",
    )


def print_config_error(error: Exception, config_path: Path | None = None) -> None:
    """Print error when configuration fails validation."""
    where = f" in {config_path}" if config_path else ""
    print_error(
        f"Invalid configuration{where}",
        reason=str(error),
        solution="fix the value or remove it to use the default",
    )
