"""Conflict Prober -- looks for artifacts a run would clobber.

The probe is read-only and best-effort.  Each check fails open: when it
cannot complete, the conflict is assumed absent and a warning is printed.
The database check runs ``rails runner`` in the invoking directory, before
the target application exists, so it frequently cannot see a same-named
database; that false-negative is accepted rather than blocking the run.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from railsmith.config import Config, TargetLocation
from railsmith.naming import DerivedNaming
from railsmith.utils import CommandRunner, ExternalCommand, Reporter, execute

DATABASE_MARKER = "Database connection successful"


class ConflictReport(BaseModel):
    """Result of a probe. Consumed once by the consent gate."""

    directory_exists: bool = False
    database_reachable: bool = False
    directory: str = ""
    database: str = ""
    uncertain: list[str] = Field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return self.directory_exists or self.database_reachable

    def describe(self) -> list[str]:
        """Human-readable list of the conflicts found."""
        found: list[str] = []
        if self.directory_exists:
            found.append(f"Directory: {self.directory}")
        if self.database_reachable:
            found.append(f"Database: {self.database}")
        return found


class ConflictProber:
    """Checks the filesystem and the database for prior artifacts."""

    def __init__(
        self,
        config: Config,
        reporter: Reporter,
        runner: CommandRunner = execute,
    ) -> None:
        self.config = config
        self.reporter = reporter
        self.runner = runner

    async def probe(
        self,
        target: TargetLocation,
        naming: DerivedNaming,
        cwd: Path | None = None,
    ) -> ConflictReport:
        """Return a best-effort ``ConflictReport``. Never raises."""
        report = ConflictReport(directory=target.display, database=naming.lowercase_slug)
        report.directory_exists = self._directory_exists(target, report)
        report.database_reachable = await self._database_reachable(report, cwd)

        if report.directory_exists:
            self.reporter.warning(f"Directory {target.display} already exists!")
        if report.database_reachable:
            self.reporter.warning(f"Database {naming.lowercase_slug} already exists!")
        return report

    def _directory_exists(self, target: TargetLocation, report: ConflictReport) -> bool:
        try:
            return target.path.is_dir()
        except OSError as exc:
            report.uncertain.append("directory")
            self.reporter.warning(
                f"Could not check {target.display} ({exc}); assuming it does not exist"
            )
            return False

    async def _database_reachable(self, report: ConflictReport, cwd: Path | None) -> bool:
        command = ExternalCommand(
            (self.config.rails_bin, "runner", f"puts '{DATABASE_MARKER}'"),
            cwd=cwd,
            timeout=self.config.probe_timeout,
        )
        try:
            outcome = await self.runner(command)
        except Exception as exc:  # fail open on anything the runner raises
            return self._inconclusive(report, str(exc) or type(exc).__name__)

        if not outcome.ok:
            reason = outcome.stderr.strip() or f"exit status {outcome.exit_code}"
            return self._inconclusive(report, reason)
        return DATABASE_MARKER in outcome.stdout

    def _inconclusive(self, report: ConflictReport, reason: str) -> bool:
        report.uncertain.append("database")
        self.reporter.warning(
            f"Database check could not complete ({reason}); assuming no existing database"
        )
        return False
