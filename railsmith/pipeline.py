"""railsmith pipeline driver.

Runs the three stages of a generation in order:

Probe   -- look for an existing directory or database with the same name.
Consent -- ask before overwriting anything the probe found.
Emit    -- scaffold the Rails 8 application and write the authentication payload.

This module is the only place where errors become an exit code and the
failure summary is printed.

Usage::

    railsmith BlogApp
    railsmith BlogApp sqlite --yes
    python -m railsmith.pipeline BlogApp
"""

from __future__ import annotations

import asyncio
import sys
from collections import Counter
from pathlib import Path

from pydantic import ValidationError

from railsmith.config import (
    ALTERNATE_DATABASE_TOKEN,
    Config,
    DatabaseKind,
    RunRequest,
    TargetLocation,
)
from railsmith.consent import (
    ConfirmCallback,
    ConsentGate,
    always_accept,
    clear_target,
    interactive_confirm,
)
from railsmith.emitter import ArtifactEmitter, RunResult
from railsmith.errors import ConflictDeclined, StepFailure, UsageError
from railsmith.naming import DerivedNaming, derive_naming, resolve_target
from railsmith.prober import ConflictProber
from railsmith.utils import (
    CommandRunner,
    Reporter,
    execute,
    format_duration,
    print_summary_table,
)

PACKAGE_DIR = Path(__file__).resolve().parent


class Pipeline:
    """Drives one or more generation runs.

    Attributes:
        config: Global railsmith configuration.
        runner: Executes delegated commands (``rails``, ``bundle``).
        confirm: Answers the overwrite prompt.
        reporter: Status-line output shared by every stage.
    """

    def __init__(
        self,
        config: Config,
        runner: CommandRunner = execute,
        confirm: ConfirmCallback | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        self.config = config
        self.runner = runner
        self.reporter = reporter or Reporter()
        if confirm is None:
            confirm = always_accept if config.assume_yes else interactive_confirm(self.reporter)
        self.confirm = confirm
        self.prober = ConflictProber(config, self.reporter, runner)
        self.emitter = ArtifactEmitter(config, self.reporter, runner)
        self._locks: dict[Path, asyncio.Lock] = {}
        self._lock_users: Counter[Path] = Counter()

    async def run(self, request: RunRequest, cwd: Path | None = None) -> int:
        """Generate the application described by *request*.

        Runs targeting the same directory are serialized.

        Returns:
            Process exit code: 0 on success, 1 otherwise.
        """
        cwd = Path(cwd) if cwd is not None else Path.cwd()
        try:
            naming = derive_naming(request.app_name)
            target = resolve_target(naming, cwd, protected=(PACKAGE_DIR,))
        except UsageError as exc:
            self.reporter.error(str(exc))
            return 1

        path = target.path
        lock = self._locks.setdefault(path, asyncio.Lock())
        self._lock_users[path] += 1
        try:
            async with lock:
                return await self._run_locked(request, naming, target, cwd)
        finally:
            # Forget the lock once no run holds or waits on it.
            self._lock_users[path] -= 1
            if not self._lock_users[path]:
                del self._lock_users[path]
                del self._locks[path]

    async def _run_locked(
        self,
        request: RunRequest,
        naming: DerivedNaming,
        target: TargetLocation,
        cwd: Path,
    ) -> int:
        self.reporter.info(f"Creating Rails 8 app: {naming.app_name}")
        self.reporter.info(f"Database: {request.database.value}")
        self.reporter.info("Checking for existing artifacts...")

        report = await self.prober.probe(target, naming, cwd)
        decision = ConsentGate(self.confirm, self.reporter).decide(report)

        try:
            if not decision.proceed:
                raise ConflictDeclined(report.describe())
            if decision.overwrite:
                await asyncio.to_thread(clear_target, target, self.reporter)
            result = await self.emitter.emit(
                request, naming, target, overwrite=decision.overwrite
            )
        except ConflictDeclined as exc:
            self.reporter.error(str(exc))
            return 1
        except StepFailure as exc:
            self.reporter.error(str(exc))
            self.reporter.verbatim(exc.diagnostics)
            self.reporter.error(f"Partially generated application left in {target.display}")
            return 1
        except OSError as exc:
            self.reporter.error(f"Could not remove {target.display}: {exc}")
            return 1

        self._print_summary(request, naming, target, result, overwrite=decision.overwrite)
        return 0

    def _print_summary(
        self,
        request: RunRequest,
        naming: DerivedNaming,
        target: TargetLocation,
        result: RunResult,
        *,
        overwrite: bool,
    ) -> None:
        print_summary_table(
            {
                "Application": naming.display_name,
                "Directory": target.display,
                "Database": request.database.value,
                "Overwrite": "yes" if overwrite else "no",
                "Steps completed": str(len(result.steps_completed)),
                "Files written": str(len(set(result.files_written))),
                "Best-effort failures": ", ".join(result.steps_skipped_best_effort) or "none",
                "Duration": format_duration(result.duration),
            },
            title="railsmith",
            out=self.reporter.console,
        )
        self.reporter.success(f"Rails 8 app '{naming.app_name}' created successfully!")
        self.reporter.info("Next steps:")
        self.reporter.detail(f"cd {target.display}")
        self.reporter.detail("bin/dev")
        self.reporter.detail(f"Visit http://localhost:{self.config.dev_port}")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``railsmith``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="railsmith",
        description="Generate a Rails 8 application with built-in authentication",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  railsmith BlogApp\n"
            f"  railsmith BlogApp {ALTERNATE_DATABASE_TOKEN}\n"
            "  railsmith BlogApp --yes --verbose\n"
        ),
    )
    parser.add_argument(
        "app_name",
        nargs="?",
        help="Application name; the app is created in ../<lowercased name>",
    )
    parser.add_argument(
        "database",
        nargs="?",
        default=None,
        help=f"Pass '{ALTERNATE_DATABASE_TOKEN}' for SQLite (default: PostgreSQL)",
    )
    parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Overwrite existing artifacts without asking",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Echo output of the delegated rails/bundle commands",
    )

    args = parser.parse_args(argv)
    reporter = Reporter(verbose=args.verbose)

    if not args.app_name or not args.app_name.strip():
        reporter.error("Please provide an app name")
        reporter.detail(parser.format_usage().strip())
        sys.exit(1)

    try:
        config = Config.from_env()
    except (ValidationError, ValueError) as exc:
        reporter.error(f"Invalid RAILSMITH_* environment setting: {exc}")
        sys.exit(1)
    if args.yes:
        config.assume_yes = True

    request = RunRequest(
        app_name=args.app_name,
        database=DatabaseKind.from_token(args.database),
    )
    pipeline = Pipeline(config, reporter=reporter)
    sys.exit(asyncio.run(pipeline.run(request, Path.cwd())))


if __name__ == "__main__":
    main()
