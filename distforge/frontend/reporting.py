"""
User-facing build output.

Progress and errors go to stderr, ``--list`` output to stdout. A reporter is
created per run and passed down explicitly; per-package views add a
``[name] `` prefix when more than one package is built.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape


class BuildReporter:
    """Writes progress, build logs, listings and results for one run."""

    def __init__(
        self,
        quiet: bool = False,
        no_build_logs: bool = False,
        stderr: Optional[Console] = None,
        stdout: Optional[Console] = None,
        cwd: Optional[Path] = None,
        prefix: str = "",
    ):
        self.quiet = quiet
        self.no_build_logs = no_build_logs
        self.stderr = stderr or Console(stderr=True, highlight=False, soft_wrap=True)
        self.stdout = stdout or Console(highlight=False, soft_wrap=True)
        self.cwd = cwd or Path.cwd()
        self.prefix = prefix

    def for_package(self, name: str, prefixed: bool) -> "BuildReporter":
        """A view of this reporter for one package."""
        return BuildReporter(
            quiet=self.quiet,
            no_build_logs=self.no_build_logs,
            stderr=self.stderr,
            stdout=self.stdout,
            cwd=self.cwd,
            prefix=f"[{name}] " if prefixed else "",
        )

    def _err(self, text: str, style: Optional[str] = None) -> None:
        self.stderr.print(escape(text), style=style)

    def progress(self, message: str) -> None:
        if not self.quiet:
            self._err(f"{self.prefix}{message}", style="bold")

    def build_log(self, line: str) -> None:
        """One line of backend output."""
        if not (self.quiet or self.no_build_logs):
            self._err(f"{self.prefix}{line}", style="dim")

    def warning(self, message: str) -> None:
        if not self.quiet:
            self._err(f"warning: {message}", style="yellow")

    def listing(self, lines) -> None:
        for line in lines:
            self.stdout.print(escape(line))

    def display_path(self, path: Path) -> str:
        """Render a path relative to the working directory when it is inside it."""
        try:
            return path.relative_to(self.cwd).as_posix()
        except ValueError:
            return str(path)

    def built(self, path: Path) -> None:
        if not self.quiet:
            self._err(f"Successfully built {self.display_path(path)}", style="green")

    def error(self, rendered: str) -> None:
        self._err(rendered, style="red")
