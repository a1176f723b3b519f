"""
Console rendering shared by the CLI commands.
"""

from __future__ import annotations

from rich.console import Console

from dotsync.core.notify import Severity
from dotsync.core.sync import SyncOutcome, SyncResult

console = Console()

_SEVERITY_STYLES = {
    Severity.INFO: ("ℹ", "blue"),
    Severity.WARNING: ("⚠", "yellow"),
    Severity.ERROR: ("✗", "red"),
    Severity.CRITICAL: ("‼", "bold red"),
}


class ConsoleNotifier:
    """
    Notifier that prints to stderr with Rich.

    Only notifications at or above ``min_severity`` are shown; the command's
    own result line covers the rest.
    """

    def __init__(
        self,
        console: Console | None = None,
        min_severity: Severity = Severity.WARNING,
    ) -> None:
        self.console = console or Console(stderr=True)
        self.min_severity = min_severity

    def notify(self, message: str, severity: Severity = Severity.INFO, title: str = "") -> None:
        if severity.log_level < self.min_severity.log_level:
            return
        icon, style = _SEVERITY_STYLES[severity]
        prefix = f"{title}: " if title else ""
        self.console.print(f"[{style}]{icon}[/{style}] {prefix}{message}")


def print_result(result: SyncResult, verbose: bool = False) -> None:
    """Print the outcome of a push, pull or reset."""
    if result.outcome is SyncOutcome.SYNCED:
        console.print(f"[green]✓[/green] {result.message}")
    elif result.outcome is SyncOutcome.SKIPPED:
        console.print(f"[blue]○[/blue] {result.message}")
    elif result.outcome is SyncOutcome.CRITICAL:
        console.print(
            f"[bold red]‼ {result.operation} needs attention:[/bold red] {result.message}"
        )
    else:
        console.print(
            f"[red]✗ {result.operation} failed ({result.outcome.value}):[/red] {result.message}"
        )

    for warning in result.warnings:
        console.print(f"[yellow]⚠[/yellow]  {warning}")

    if result.commit_sha and result.success:
        console.print(f"  [dim]Commit:[/dim] {result.commit_sha[:8]}")

    if not verbose:
        return

    if result.target_branch:
        console.print(f"  [dim]Branch:[/dim] {result.target_branch}")
    if result.backup_path:
        console.print(f"  [dim]Backup:[/dim] {result.backup_path}")
    if result.states:
        console.print(f"  [dim]States:[/dim] {' → '.join(result.states)}")
    if result.duration_seconds is not None:
        console.print(f"  [dim]Duration:[/dim] {result.duration_seconds:.1f}s")
