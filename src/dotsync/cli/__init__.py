"""
dotsync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from dotsync import __version__
from dotsync.cli import backups, dev_mode, status, sync
from dotsync.cli.context import CliState, setup_logging
from dotsync.cli.errors import ExitCode, print_config_error
from dotsync.core.config import load_config
from dotsync.core.config.env import load_layered_env

PANEL_SYNC = "Sync"
PANEL_INSPECT = "Inspect and Recover"

# Create the main Typer app
app = typer.Typer(
    name="dotsync",
    help="Keep a chezmoi source tree in sync across machines",
    no_args_is_help=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    source: Path | None = typer.Option(
        None,
        "--source",
        "-s",
        help="Source tree to sync (default: ~/.local/share/chezmoi)",
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="User config file (default: ~/.config/dotsync/config.json)",
    ),
) -> None:
    """
    dotsync - keep a chezmoi source tree in sync across machines.

    Every machine pushes its edits to its own auto-sync/<machine-id> branch
    and pulls the shared main branch. Runs are locked, retried, backed up
    and rolled back on failure, so they are safe to schedule.

    Common Workflows:
        dotsync push                 # Publish local edits
        dotsync pull                 # Apply the latest main
        dotsync status               # What's going on here?
        dotsync dev-mode enable      # Stop pushing while experimenting
        dotsync reset                # Throw away local edits (with backup)

    Exit codes:
        0 synced or skipped, 1 failed, 2 configuration error,
        3 rollback failed (manual attention), 130 interrupted
    """
    if ctx.invoked_subcommand == "version":
        return

    if source is not None:
        source = source.expanduser()

    # Precedence: OS env > source-tree .env > user .env
    load_layered_env(source_dir=source)

    try:
        config = load_config(source_dir=source, use_cache=False, user_config_path=config_path)
    except ValidationError as e:
        print_config_error(e, config_path)
        raise typer.Exit(ExitCode.USER_ERROR)

    setup_logging(debug, config.paths.log_file)
    ctx.obj = CliState(config=config, debug=debug)


# =============================================================================
# Sync
# =============================================================================

app.command(name="push", rich_help_panel=PANEL_SYNC)(sync.push)
app.command(name="pull", rich_help_panel=PANEL_SYNC)(sync.pull)
app.add_typer(dev_mode.app, name="dev-mode", rich_help_panel=PANEL_SYNC)


# =============================================================================
# Inspect and Recover
# =============================================================================

app.command(name="status", rich_help_panel=PANEL_INSPECT)(status.status)
app.command(name="reset", rich_help_panel=PANEL_INSPECT)(sync.reset)
app.add_typer(backups.app, name="backups", rich_help_panel=PANEL_INSPECT)


@app.command(rich_help_panel=PANEL_INSPECT)
def version() -> None:
    """Show dotsync version and exit."""
    console.print(f"dotsync version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
