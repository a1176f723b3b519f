"""
dotsync CLI - Development mode.

While development mode is on, ``dotsync push`` is a no-op so work in
progress on the dotfiles is not published to other machines. Pull keeps
working.
"""

import typer

from dotsync.cli.context import get_state
from dotsync.cli.output import console
from dotsync.core.devmode import DEFAULT_AUTO_HOURS, DevMode, format_duration

app = typer.Typer(
    name="dev-mode",
    help="Pause automatic pushes while editing dotfiles",
    no_args_is_help=False,
)


def _dev_mode(ctx: typer.Context) -> DevMode:
    return DevMode(get_state(ctx).config.paths.dev_mode_file)


def _print_state(dev_mode: DevMode) -> None:
    if not dev_mode.is_active():
        console.print("[green]○[/green] Development mode is inactive - auto-push enabled")
        return

    active_for = dev_mode.active_for()
    duration = f" for {format_duration(active_for)}" if active_for is not None else ""
    console.print(f"[yellow]⚠[/yellow] Development mode is active{duration} - auto-push disabled")
    expires_at = dev_mode.expires_at()
    if expires_at is not None:
        console.print(f"[dim]Expires at {expires_at:%Y-%m-%d %H:%M:%S}[/dim]")


@app.callback(invoke_without_command=True)
def dev_mode(ctx: typer.Context) -> None:
    """
    Show or change development mode.

    Examples:
        dotsync dev-mode
        dotsync dev-mode enable --reason "testing zshrc"
        dotsync dev-mode toggle
    """
    if ctx.invoked_subcommand is None:
        _print_state(_dev_mode(ctx))


@app.command()
def enable(
    ctx: typer.Context,
    reason: str = typer.Option(
        "Manual activation",
        "--reason",
        "-r",
        help="Why pushes are paused (logged)",
    ),
) -> None:
    """Turn development mode on."""
    dev_mode = _dev_mode(ctx)
    if dev_mode.is_active():
        _print_state(dev_mode)
        return
    dev_mode.enable(reason)
    console.print("[green]✓[/green] Development mode enabled - auto-push disabled")


@app.command()
def auto(
    ctx: typer.Context,
    hours: float = typer.Option(
        DEFAULT_AUTO_HOURS,
        "--hours",
        "-H",
        min=0.1,
        help="Switch development mode off again after this many hours",
    ),
    reason: str = typer.Option(
        "Auto activation",
        "--reason",
        "-r",
        help="Why pushes are paused (logged)",
    ),
) -> None:
    """
    Turn development mode on for a limited time.

    Replaces any existing activation, timed or not.

    Examples:
        dotsync dev-mode auto
        dotsync dev-mode auto --hours 2
    """
    dev_mode = _dev_mode(ctx)
    dev_mode.enable_for_hours(hours, reason)
    expires_at = dev_mode.expires_at()
    until = f" until {expires_at:%Y-%m-%d %H:%M:%S}" if expires_at is not None else ""
    console.print(f"[green]✓[/green] Development mode enabled{until} - auto-push disabled")


@app.command()
def disable(ctx: typer.Context) -> None:
    """Turn development mode off."""
    if _dev_mode(ctx).disable():
        console.print("[green]✓[/green] Development mode disabled - auto-push enabled")
    else:
        console.print("[blue]○[/blue] Development mode was not active")


@app.command()
def toggle(ctx: typer.Context) -> None:
    """Flip development mode."""
    dev_mode = _dev_mode(ctx)
    dev_mode.toggle()
    _print_state(dev_mode)


@app.command(name="status")
def show_status(ctx: typer.Context) -> None:
    """Show whether development mode is on."""
    _print_state(_dev_mode(ctx))
