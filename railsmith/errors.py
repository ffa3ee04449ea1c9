"""Exception hierarchy for railsmith.

Only the pipeline driver turns these into exit codes; every other component
raises and lets them propagate.
"""

from __future__ import annotations


class RailsmithError(Exception):
    """Base class for all railsmith errors."""


class UsageError(RailsmithError):
    """Raised for a missing or invalid command-line argument."""


class ConflictDeclined(RailsmithError):
    """Raised when the user refuses to overwrite existing artifacts."""

    def __init__(self, conflicts: list[str]) -> None:
        self.conflicts = conflicts
        super().__init__("Operation cancelled by user.")


class StepFailure(RailsmithError):
    """Raised when a pipeline step fails and is not marked best-effort.

    Carries the failing step id and the delegated tool's diagnostic output
    verbatim so the driver can surface it.
    """

    def __init__(
        self,
        step_id: str,
        message: str,
        *,
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.step_id = step_id
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"Step '{step_id}' failed: {message}")

    @property
    def diagnostics(self) -> str:
        """Combined stderr/stdout of the failing command, stderr first."""
        return "\n".join(part for part in (self.stderr, self.stdout) if part)
