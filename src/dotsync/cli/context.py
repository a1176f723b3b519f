"""
Per-invocation CLI state and logging setup.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path

import typer

from dotsync.cli.output import ConsoleNotifier
from dotsync.core.config import SyncConfig
from dotsync.core.sync import SyncOrchestrator

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def setup_logging(debug: bool = False, log_file: Path | None = None) -> None:
    """
    Configure logging for dotsync commands.

    The console only shows warnings unless ``debug`` is set; the log file
    always records the INFO-level state transitions.

    Args:
        debug: If True, enable DEBUG level logging on stderr and in the file
        log_file: Optional file to append to (skipped if it can't be opened)
    """
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    handlers: list[logging.Handler] = [console_handler]

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
        except OSError as e:
            print(f"dotsync: cannot write log file {log_file}: {e}", file=sys.stderr)
        else:
            file_handler.setLevel(logging.DEBUG if debug else logging.INFO)
            handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
    )


@dataclass
class CliState:
    """Stored in ``ctx.obj`` by the main callback."""

    config: SyncConfig
    debug: bool = False

    def orchestrator(self) -> SyncOrchestrator:
        return SyncOrchestrator(self.config, notifier=ConsoleNotifier())


def get_state(ctx: typer.Context) -> CliState:
    state = ctx.find_root().obj
    if not isinstance(state, CliState):
        raise RuntimeError("CLI state not initialized")
    return state
