"""Post-generation checks for a railsmith application.

Boots the generated app through ``rails`` and confirms the pieces the
authentication payload depends on: database connectivity, applied
migrations, the User/Session models and the session routes.  The Tailwind
build is checked too but is not critical.

Usage::

    railsmith-verify ../blogapp
"""

from __future__ import annotations

import asyncio
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from railsmith.config import Config
from railsmith.errors import UsageError
from railsmith.prober import DATABASE_MARKER
from railsmith.utils import CommandRunner, ExternalCommand, Reporter, execute, print_summary_table


@dataclass(frozen=True)
class VerificationCheck:
    """One command run inside the application directory.

    The check passes when the command exits 0 and, if ``expect`` is set, its
    stdout matches that regular expression (multi-line mode).
    """

    name: str
    argv: tuple[str, ...]
    expect: str | None = None
    critical: bool = True

    def evaluate(self, exit_code: int, stdout: str) -> bool:
        if exit_code != 0:
            return False
        if self.expect is None:
            return True
        return re.search(self.expect, stdout, re.MULTILINE) is not None


@dataclass(frozen=True)
class CheckOutcome:
    check: VerificationCheck
    passed: bool
    detail: str = ""


@dataclass
class VerificationReport:
    outcomes: list[CheckOutcome] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        """True when every critical check passed."""
        return all(o.passed for o in self.outcomes if o.check.critical)

    @property
    def failures(self) -> list[CheckOutcome]:
        return [o for o in self.outcomes if not o.passed]


def default_checks(config: Config) -> tuple[VerificationCheck, ...]:
    rails = config.rails_bin
    return (
        VerificationCheck(
            "Database connection",
            (rails, "runner", f"puts '{DATABASE_MARKER}'"),
            expect=re.escape(DATABASE_MARKER),
        ),
        VerificationCheck(
            "Migrations",
            (rails, "db:migrate:status"),
            expect=r"^\s*up\b",
        ),
        VerificationCheck(
            "Tailwind CSS",
            (rails, "tailwindcss:build"),
            critical=False,
        ),
        VerificationCheck(
            "Authentication models",
            (rails, "runner", "puts User.count; puts Session.count"),
            expect=r"^\d+\n\d+$",
        ),
        VerificationCheck(
            "Routes",
            (rails, "routes"),
            expect="session",
        ),
    )


class AppVerifier:
    """Runs ``default_checks`` against a generated application."""

    def __init__(
        self,
        config: Config,
        reporter: Reporter,
        runner: CommandRunner = execute,
        checks: tuple[VerificationCheck, ...] | None = None,
    ) -> None:
        self.config = config
        self.reporter = reporter
        self.runner = runner
        self.checks = checks if checks is not None else default_checks(config)

    async def verify(self, app_dir: Path) -> VerificationReport:
        """Run every check, in order, and collect the outcomes.

        Raises:
            UsageError: If *app_dir* is not a directory.
        """
        if not app_dir.is_dir():
            raise UsageError(f"Application directory not found: {app_dir}")

        report = VerificationReport()
        for check in self.checks:
            self.reporter.info(f"Testing {check.name.lower()}...")
            result = await self.runner(
                ExternalCommand(check.argv, cwd=app_dir, timeout=self.config.command_timeout)
            )
            self.reporter.output(result.stdout)
            passed = check.evaluate(result.exit_code, result.stdout)
            report.outcomes.append(CheckOutcome(check, passed, result.stderr))

            if passed:
                self.reporter.success(f"{check.name}: OK")
            elif check.critical:
                self.reporter.error(f"{check.name}: FAILED")
                self.reporter.verbatim(result.stderr)
            else:
                self.reporter.warning(f"{check.name}: WARNING (may not be critical)")
        return report


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``railsmith-verify``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="railsmith-verify",
        description="Check that a generated Rails application boots and is wired up",
    )
    parser.add_argument("app_dir", help="Path to the generated application")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    reporter = Reporter(verbose=args.verbose)
    try:
        config = Config.from_env()
    except (ValidationError, ValueError) as exc:
        reporter.error(f"Invalid RAILSMITH_* environment setting: {exc}")
        sys.exit(1)
    verifier = AppVerifier(config, reporter)
    try:
        report = asyncio.run(verifier.verify(Path(args.app_dir)))
    except UsageError as exc:
        reporter.error(str(exc))
        sys.exit(1)

    print_summary_table(
        {o.check.name: "OK" if o.passed else "FAILED" for o in report.outcomes},
        title="Verification",
        out=reporter.console,
    )
    if not report.passed:
        reporter.error("Verification failed.")
        sys.exit(1)
    reporter.success("All critical checks passed.")


if __name__ == "__main__":
    main()
