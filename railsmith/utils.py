"""Shared utility functions for railsmith.

Provides async execution of delegated commands, the prefixed status-line
reporter, Rich-based summary output, and small file-system helpers.
"""

from __future__ import annotations

import asyncio
import os
import shlex
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Delegated commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a delegated command."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class ExternalCommand:
    """An external tool invocation: argv, working directory and timeout."""

    argv: tuple[str, ...]
    cwd: Path | None = None
    timeout: int = 900
    env: dict[str, str] = field(default_factory=dict)

    def display(self) -> str:
        """Shell-quoted rendering of ``argv`` for status lines."""
        return shlex.join(self.argv)


class CommandRunner(Protocol):
    """Anything that can execute an ``ExternalCommand``."""

    async def __call__(self, command: ExternalCommand) -> CommandResult: ...


async def run_command(
    cmd: list[str] | tuple[str, ...],
    cwd: str | Path | None = None,
    timeout: int = 900,
    env: dict[str, str] | None = None,
) -> CommandResult:
    """Run an external command asynchronously and wait for it to exit.

    Args:
        cmd: Argument vector. Never passed through a shell.
        cwd: Working directory for the child process.
        timeout: Maximum wall-clock seconds before the process is killed.
        env: Optional extra environment variables merged on top of ``os.environ``.

    Returns:
        A ``CommandResult``.  A timeout yields exit code ``-1``; a missing
        executable yields exit code ``127`` with the OS error on stderr.
    """
    merged_env: dict[str, str] | None = None
    if env:
        merged_env = {**os.environ, **env}

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
        )
    except (FileNotFoundError, PermissionError) as exc:
        return CommandResult(127, "", f"{cmd[0]}: {exc.strerror or exc}")

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return CommandResult(
            -1,
            "",
            f"Command timed out after {timeout}s: {shlex.join(cmd)}",
        )

    stdout_str = (stdout_bytes or b"").decode("utf-8", errors="replace").strip()
    stderr_str = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()
    return CommandResult(process.returncode or 0, stdout_str, stderr_str)


async def execute(command: ExternalCommand) -> CommandResult:
    """Default ``CommandRunner``: run *command* with :func:`run_command`."""
    return await run_command(
        list(command.argv),
        cwd=command.cwd,
        timeout=command.timeout,
        env=command.env or None,
    )


# ---------------------------------------------------------------------------
# Status lines
# ---------------------------------------------------------------------------


class Reporter:
    """Prints short, consistently prefixed status lines.

    Holds no state beyond the console it writes to, and is handed to every
    component that reports progress.
    """

    def __init__(self, out: Console | None = None, *, verbose: bool = False) -> None:
        self.console = out or console
        self.verbose = verbose

    def info(self, message: str) -> None:
        self.console.print(f"[bold blue]\\[INFO][/bold blue] {escape(message)}")

    def success(self, message: str) -> None:
        self.console.print(f"[bold green]\\[SUCCESS][/bold green] {escape(message)}")

    def warning(self, message: str) -> None:
        self.console.print(f"[bold yellow]\\[WARNING][/bold yellow] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]\\[ERROR][/bold red] {escape(message)}")

    def detail(self, message: str) -> None:
        """Indented plain line, e.g. a conflict or a next step."""
        self.console.print(f"  {escape(message)}")

    def verbatim(self, text: str) -> None:
        """Print *text* exactly as given, without markup or highlighting."""
        if text:
            self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    def output(self, text: str) -> None:
        """Echo delegated command output, only in verbose mode."""
        if self.verbose and text:
            self.console.print(f"[dim]{escape(text)}[/dim]")

    def ask(self, prompt: str) -> str:
        return self.console.input(prompt)


def print_summary_table(
    data: dict[str, str], title: str = "Summary", out: Console | None = None
) -> None:
    """Print a two-column key/value summary table.

    Args:
        data: Mapping of label -> value.
        title: Table title.
        out: Console to print to (defaults to the module console).
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    target = out or console
    target.print(table)
    target.print()


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
        format_duration(3661.0) -> "1h 1m 1s"
    """
    if seconds < 0:
        return "0.0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    if hours > 0 or minutes > 0:
        parts.append(f"{int(secs)}s")
    else:
        parts.append(f"{secs:.1f}s")

    return " ".join(parts)


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def write_if_changed(path: Path, content: str) -> bool:
    """Write *content* to *path* unless it already holds exactly that text.

    Parent directories are created automatically.

    Returns:
        ``True`` if the file was (re)written.
    """
    if path.is_file() and path.read_text(encoding="utf-8") == content:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return True


def make_executable(path: Path) -> None:
    """Set the executable bit on a file."""
    current = path.stat().st_mode
    path.chmod(current | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def is_within(path: Path, other: Path) -> bool:
    """Return ``True`` if *path* equals *other* or lies beneath it."""
    try:
        path.relative_to(other)
    except ValueError:
        return False
    return True
