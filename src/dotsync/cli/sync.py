"""
dotsync CLI - push, pull and reset commands.

These are the entry points a scheduler calls: ``dotsync push`` after local
edits (e.g. from a file watcher) and ``dotsync pull`` periodically.
"""

import typer

from dotsync.cli.context import get_state
from dotsync.cli.errors import ExitCode, exit_code_for, print_not_a_repository_error
from dotsync.cli.output import console, print_result
from dotsync.core.sync import SyncOutcome, SyncResult

VERBOSE_OPTION = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Show branch, backup, visited states and timing",
)


def _finish(result: SyncResult, verbose: bool) -> None:
    print_result(result, verbose=verbose)
    code = exit_code_for(result.outcome)
    if code != ExitCode.SUCCESS:
        raise typer.Exit(code)


def push(ctx: typer.Context, verbose: bool = VERBOSE_OPTION) -> None:
    """
    Commit local changes and push them to this machine's branch.

    Skipped (exit 0) when development mode is on, nothing changed, or only
    noise files (logs, swap files, caches) changed.

    Examples:
        dotsync push
        dotsync push -v
    """
    result = get_state(ctx).orchestrator().push()
    _finish(result, verbose)


def pull(ctx: typer.Context, verbose: bool = VERBOSE_OPTION) -> None:
    """
    Pull the main branch and apply it.

    Local edits are stashed and restored. If validation or apply fails the
    tree is rolled back; exit code 3 means the rollback failed too.

    Examples:
        dotsync pull
        dotsync pull -v
    """
    result = get_state(ctx).orchestrator().pull()
    _finish(result, verbose)


def reset(
    ctx: typer.Context,
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Don't ask for confirmation",
    ),
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """
    Discard local changes and untracked files in the source tree.

    A resolve-backup-* snapshot is taken first and is never pruned.

    Examples:
        dotsync reset
        dotsync reset --yes
    """
    state = get_state(ctx)
    orchestrator = state.orchestrator()

    if not orchestrator.store.is_repository():
        print_not_a_repository_error(orchestrator.source_dir)
        raise typer.Exit(ExitCode.USER_ERROR)

    if not yes:
        confirmed = typer.confirm(
            f"Reset {orchestrator.source_dir} to HEAD and delete untracked files?"
        )
        if not confirmed:
            console.print("[dim]Aborted[/dim]")
            raise typer.Exit(ExitCode.SUCCESS)

    result = orchestrator.reset_to_head()
    if result.outcome is SyncOutcome.SYNCED and result.backup_path:
        console.print(f"[dim]Snapshot saved to {result.backup_path}[/dim]")
    _finish(result, verbose)
