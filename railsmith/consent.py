"""Consent Gate -- decides whether a run may overwrite existing artifacts."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from railsmith.config import TargetLocation
from railsmith.prober import ConflictReport
from railsmith.utils import Reporter

OVERWRITE_PROMPT = "Do you want to proceed and overwrite existing files/database? (y/N): "

ConfirmCallback = Callable[[str], str]


class GateState(str, Enum):
    AWAITING = "awaiting"
    PROCEED = "proceed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class ConsentDecision:
    state: GateState
    overwrite: bool = False

    @property
    def proceed(self) -> bool:
        return self.state is GateState.PROCEED


def is_affirmative(answer: str | None) -> bool:
    """Any answer starting with ``y`` or ``Y``, leading whitespace ignored."""
    return (answer or "").strip().lower().startswith("y")


def interactive_confirm(reporter: Reporter) -> ConfirmCallback:
    """Confirm callback that reads one line from the terminal.

    End of input counts as an empty answer, which declines.
    """

    def confirm(prompt: str) -> str:
        try:
            return reporter.ask(prompt)
        except EOFError:
            return ""

    return confirm


def always_accept(prompt: str) -> str:
    return "y"


def always_decline(prompt: str) -> str:
    return "n"


class ConsentGate:
    """One-shot gate between the prober and the emitter.

    ``AWAITING`` moves to ``PROCEED`` or ``ABORTED`` exactly once; the
    confirm callback is only consulted when the report lists conflicts.
    """

    def __init__(self, confirm: ConfirmCallback, reporter: Reporter) -> None:
        self.confirm = confirm
        self.reporter = reporter
        self.state = GateState.AWAITING

    def decide(self, report: ConflictReport) -> ConsentDecision:
        if self.state is not GateState.AWAITING:
            raise RuntimeError(f"consent already decided: {self.state.value}")

        if not report.has_conflicts:
            self.reporter.success("No conflicts detected. Proceeding with creation...")
            return self._settle(GateState.PROCEED, overwrite=False)

        self.reporter.warning("The following conflicts were detected:")
        for conflict in report.describe():
            self.reporter.detail(f"- {conflict}")

        if is_affirmative(self.confirm(OVERWRITE_PROMPT)):
            self.reporter.info("Proceeding with overwrite...")
            return self._settle(GateState.PROCEED, overwrite=True)
        return self._settle(GateState.ABORTED, overwrite=False)

    def _settle(self, state: GateState, *, overwrite: bool) -> ConsentDecision:
        self.state = state
        return ConsentDecision(state, overwrite)


def clear_target(target: TargetLocation, reporter: Reporter) -> bool:
    """Remove an existing target directory before regeneration.

    Only the directory is removed; the database is reset later by the
    emitter's ``db:drop db:create`` step.

    Returns:
        ``True`` if a directory was removed.
    """
    if not target.path.is_dir():
        return False
    reporter.info(f"Removing existing directory {target.display}...")
    shutil.rmtree(target.path)
    return True
