"""
dotsync CLI - Status command.

Show the sync setup for this machine without touching the network.
"""

import typer
from rich.table import Table

from dotsync.cli.context import get_state
from dotsync.cli.errors import ExitCode
from dotsync.cli.output import console
from dotsync.core.devmode import format_duration
from dotsync.core.sync import SyncStatusReport


def _yes_no(flag: bool, yes_style: str = "yellow") -> str:
    return f"[{yes_style}]yes[/{yes_style}]" if flag else "[dim]no[/dim]"


def _render(report: SyncStatusReport) -> Table:
    table = Table(title="dotsync status", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Source", str(report.source_dir))

    if report.is_repository:
        table.add_row("Branch", report.branch or "[dim]detached[/dim]")
        table.add_row("Unstaged changes", _yes_no(report.has_unstaged_changes))
        table.add_row("Staged changes", _yes_no(report.has_staged_changes))
        if report.ahead is not None and report.behind is not None:
            table.add_row("Upstream", f"↑{report.ahead} ↓{report.behind}")
        else:
            table.add_row("Upstream", "[dim]none[/dim]")
    else:
        table.add_row("Repository", "[red]not a git repository[/red]")

    table.add_row("Machine", report.machine_id)
    table.add_row("Push branch", report.target_branch)
    table.add_row("Pull branch", report.main_branch)
    table.add_row("Last sync", report.last_sync or "[dim]never[/dim]")

    if report.dev_mode_active:
        since = ""
        if report.dev_mode_since is not None:
            since = f" since {report.dev_mode_since:%Y-%m-%d %H:%M:%S}"
        table.add_row("Development mode", f"[yellow]active{since}[/yellow] (push disabled)")
        if report.dev_mode_expires is not None:
            table.add_row("Dev mode expires", f"{report.dev_mode_expires:%Y-%m-%d %H:%M:%S}")
    else:
        table.add_row("Development mode", "[dim]inactive[/dim]")

    locks = []
    if report.push_locked:
        locks.append("push")
    if report.pull_locked:
        locks.append("pull")
    table.add_row("Running", ", ".join(locks) if locks else "[dim]nothing[/dim]")

    backups = str(report.backup_count)
    if report.latest_backup:
        backups += f" (latest {report.latest_backup})"
    table.add_row("Backups", backups)

    if report.materializer_available:
        availability = "[green]available[/green]"
    else:
        availability = "[red]missing[/red]"
    table.add_row("Materializer", f"{report.materializer} {availability}")

    return table


def status(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output status as JSON",
    ),
) -> None:
    """
    Show sync status for this machine.

    Examples:
        dotsync status
        dotsync status --json
    """
    orchestrator = get_state(ctx).orchestrator()
    report = orchestrator.status()

    if json_output:
        typer.echo(report.model_dump_json(indent=2))
    else:
        console.print(_render(report))
        if report.dev_mode_active:
            active_for = orchestrator.dev_mode.active_for()
            if active_for is not None:
                console.print(
                    f"\n[dim]Development mode on for {format_duration(active_for)}. "
                    "Run [bold]dotsync dev-mode disable[/bold] to resume pushing.[/dim]"
                )

    if not report.is_repository:
        raise typer.Exit(ExitCode.USER_ERROR)
