"""
Content materializers.

A materializer turns the tracked source tree into live files (for chezmoi:
rendering templates into the home directory). The sync engine only needs
three operations: verify, dry-run apply and apply. When the tool is not
installed the engine skips these steps instead of failing.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass
class MaterializeResult:
    """
    Result of a materializer command.

    Attributes:
        ok: Whether the command succeeded.
        output: Combined stdout/stderr, for logs.
    """

    ok: bool
    output: str = ""


class ContentMaterializer(Protocol):
    """Renders the source tree into the live file tree."""

    name: str

    def available(self) -> bool: ...

    def verify(self) -> MaterializeResult: ...

    def apply_dry_run(self) -> MaterializeResult: ...

    def apply(self) -> MaterializeResult: ...


class ChezmoiMaterializer:
    """
    Materializer backed by the ``chezmoi`` CLI.

    Example:
        >>> chezmoi = ChezmoiMaterializer(Path("~/.local/share/chezmoi").expanduser())
        >>> if chezmoi.available() and chezmoi.verify().ok:
        ...     chezmoi.apply()
    """

    name = "chezmoi"

    def __init__(self, source_dir: Path, executable: str = "chezmoi", timeout: int = 300) -> None:
        self.source_dir = source_dir
        self.executable = executable
        self.timeout = timeout

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    def _run(self, args: list[str]) -> MaterializeResult:
        cmd = [self.executable] + args + ["--source", str(self.source_dir)]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            return MaterializeResult(ok=False, output=f"{' '.join(cmd)} timed out")
        except FileNotFoundError:
            return MaterializeResult(ok=False, output=f"{self.executable} not found in PATH")

        output = "\n".join(part.strip() for part in (result.stdout, result.stderr) if part)
        if output:
            logger.debug("%s output:\n%s", self.executable, output)
        return MaterializeResult(ok=result.returncode == 0, output=output)

    def verify(self) -> MaterializeResult:
        return self._run(["verify"])

    def apply_dry_run(self) -> MaterializeResult:
        return self._run(["apply", "--dry-run"])

    def apply(self) -> MaterializeResult:
        return self._run(["apply"])


class NullMaterializer:
    """Placeholder used when no materializer is configured; never available."""

    name = "none"

    def available(self) -> bool:
        return False

    def verify(self) -> MaterializeResult:
        return MaterializeResult(ok=True)

    def apply_dry_run(self) -> MaterializeResult:
        return MaterializeResult(ok=True)

    def apply(self) -> MaterializeResult:
        return MaterializeResult(ok=True)


def create_materializer(kind: str, source_dir: Path) -> ContentMaterializer:
    """Build the materializer named in the configuration."""
    if kind == "chezmoi":
        return ChezmoiMaterializer(source_dir)
    if kind == "none":
        return NullMaterializer()
    raise ValueError(f"Unknown materializer: {kind}")
