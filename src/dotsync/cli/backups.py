"""
dotsync CLI - Backup inspection and cleanup.
"""

import typer
from rich.table import Table

from dotsync.cli.context import get_state
from dotsync.cli.output import console
from dotsync.core.backup import BackupManager
from dotsync.core.sync.orchestrator import RESOLVE_BACKUP_PREFIX

app = typer.Typer(
    name="backups",
    help="List and prune source-tree backups",
    no_args_is_help=True,
)


def _managers(ctx: typer.Context) -> tuple[BackupManager, BackupManager]:
    backup_dir = get_state(ctx).config.paths.backup_dir
    return BackupManager(backup_dir), BackupManager(backup_dir, prefix=RESOLVE_BACKUP_PREFIX)


@app.command(name="list")
def list_backups(ctx: typer.Context) -> None:
    """
    List backups, newest first.

    Resolve backups (taken by ``dotsync reset``) are shown separately and
    are never pruned automatically.
    """
    regular, resolve = _managers(ctx)
    backups = regular.list_backups() + resolve.list_backups()

    if not backups:
        console.print(f"[dim]No backups in {regular.backup_root}[/dim]")
        return

    table = Table(title=f"Backups in {regular.backup_root}")
    table.add_column("Name", style="cyan")
    table.add_column("Created")
    table.add_column("Kind")

    for backup in backups:
        kind = "reset" if backup.name.startswith(RESOLVE_BACKUP_PREFIX) else "sync"
        table.add_row(backup.name, f"{backup.created_at:%Y-%m-%d %H:%M:%S}", kind)

    console.print(table)


@app.command()
def prune(
    ctx: typer.Context,
    keep: int | None = typer.Option(
        None,
        "--keep",
        "-k",
        min=1,
        help="Number of sync backups to keep (default: backup.keep from config)",
    ),
) -> None:
    """Delete all but the most recent sync backups."""
    regular, _ = _managers(ctx)
    keep = keep if keep is not None else get_state(ctx).config.backup.keep
    removed = regular.prune(keep=keep)
    if removed:
        console.print(f"[green]✓[/green] Removed {len(removed)} old backup(s), kept {keep}")
    else:
        console.print("[blue]○[/blue] Nothing to prune")
