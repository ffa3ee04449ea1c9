"""Artifact Emitter -- the fixed, ordered list of generation steps.

Every step is either a delegated command (``rails new``, ``bundle install``,
``rails db:migrate`` ...) that must exit 0, or a file step that makes a path
hold canonical content.  Steps run strictly in order; the first failure of a
step that is not best-effort stops the pipeline.  Completed steps are not
rolled back, so a failed run leaves the partial application on disk for
inspection.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from railsmith.config import Config, RunRequest, TargetLocation
from railsmith.errors import StepFailure
from railsmith.naming import DerivedNaming
from railsmith.scaffolder import (
    ASSET_ARTIFACTS,
    AUTH_ARTIFACTS,
    LAUNCHER_ARTIFACTS,
    MAILER_BLOCKS,
    MIGRATION_ARTIFACTS,
    BlockArtifact,
    FileArtifact,
    TemplateRenderer,
    ensure_block,
    merge_gemfile,
)
from railsmith.utils import (
    CommandRunner,
    ExternalCommand,
    Reporter,
    execute,
    make_executable,
    write_if_changed,
)

# ---------------------------------------------------------------------------
# Step definitions
# ---------------------------------------------------------------------------


class StepKind(str, Enum):
    COMMAND = "command"
    WRITE = "write"
    MERGE = "merge"
    BLOCK = "block"


@dataclass(frozen=True)
class ArtifactStep:
    """One entry of the generation pipeline."""

    id: str
    kind: StepKind
    description: str
    argv: tuple[str, ...] = ()
    in_parent: bool = False
    artifact: FileArtifact | BlockArtifact | None = None
    best_effort: bool = False

    @property
    def target(self) -> str | None:
        """Path (or glob) relative to the application root, if any."""
        if self.kind is StepKind.MERGE:
            return "Gemfile"
        return self.artifact.target if self.artifact else None


USER_MODEL_FIELDS = (
    "first_name:string",
    "last_name:string",
    "email_address:string:uniq",
    "password_digest:string",
    "admin:boolean",
    "unconfirmed_email:string",
    "email_confirmed_at:datetime",
)
SESSION_MODEL_FIELDS = ("user:references", "user_agent:string", "ip_address:string")


def _write_step(artifact: FileArtifact) -> ArtifactStep:
    verb = "Updating" if artifact.locate else "Writing"
    return ArtifactStep(
        artifact.step_id, StepKind.WRITE, f"{verb} {artifact.target}", artifact=artifact
    )


def build_steps(
    request: RunRequest,
    target: TargetLocation,
    config: Config,
    *,
    overwrite: bool = False,
) -> tuple[ArtifactStep, ...]:
    """Return the generation pipeline for *request*, in execution order.

    Order: framework scaffold, Gemfile merge, dependency install, database,
    model/migration generators, authentication files, migration bodies,
    migrate, assets, asset build (best-effort), launcher and README.
    """
    rails = config.rails_bin
    if overwrite:
        database = ArtifactStep(
            "database",
            StepKind.COMMAND,
            "Resetting database for clean state...",
            argv=(rails, "db:drop", "db:create"),
        )
    else:
        database = ArtifactStep(
            "database",
            StepKind.COMMAND,
            "Creating fresh database...",
            argv=(rails, "db:create"),
        )

    steps: list[ArtifactStep] = [
        ArtifactStep(
            "scaffold",
            StepKind.COMMAND,
            f"Generating Rails application in {target.display}...",
            argv=(
                rails,
                "new",
                str(target.path),
                f"--database={request.database.value}",
                *config.rails_new_options,
            ),
            in_parent=True,
        ),
        ArtifactStep("gemfile", StepKind.MERGE, "Adding gems to Gemfile..."),
        ArtifactStep(
            "bundle-install",
            StepKind.COMMAND,
            "Installing gems...",
            argv=(config.bundle_bin, "install"),
        ),
        database,
        ArtifactStep(
            "generate-user",
            StepKind.COMMAND,
            "Generating User model...",
            argv=(rails, "generate", "model", "User", *USER_MODEL_FIELDS),
        ),
        ArtifactStep(
            "generate-session",
            StepKind.COMMAND,
            "Generating Session model...",
            argv=(rails, "generate", "model", "Session", *SESSION_MODEL_FIELDS),
        ),
        ArtifactStep(
            "generate-user-indexes",
            StepKind.COMMAND,
            "Generating AddIndexesToUsers migration...",
            argv=(rails, "generate", "migration", "AddIndexesToUsers"),
        ),
        ArtifactStep(
            "generate-session-indexes",
            StepKind.COMMAND,
            "Generating AddIndexesToSessions migration...",
            argv=(rails, "generate", "migration", "AddIndexesToSessions"),
        ),
    ]
    steps.extend(_write_step(artifact) for artifact in AUTH_ARTIFACTS)
    steps.extend(
        ArtifactStep(
            block.step_id,
            StepKind.BLOCK,
            f"Configuring mailer in {block.target}",
            artifact=block,
        )
        for block in MAILER_BLOCKS
    )
    steps.extend(_write_step(artifact) for artifact in MIGRATION_ARTIFACTS)
    steps.append(
        ArtifactStep(
            "migrate",
            StepKind.COMMAND,
            "Running migrations...",
            argv=(rails, "db:migrate"),
        )
    )
    steps.extend(_write_step(artifact) for artifact in ASSET_ARTIFACTS)
    steps.append(
        ArtifactStep(
            "tailwind-build",
            StepKind.COMMAND,
            "Building Tailwind CSS...",
            argv=(rails, "tailwindcss:build"),
            best_effort=True,
        )
    )
    steps.extend(_write_step(artifact) for artifact in LAUNCHER_ARTIFACTS)
    return tuple(steps)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass
class RunResult:
    """What a successful emission did."""

    steps_completed: list[str] = field(default_factory=list)
    steps_skipped_best_effort: list[str] = field(default_factory=list)
    files_written: list[str] = field(default_factory=list)
    duration: float = 0.0


# ---------------------------------------------------------------------------
# Emitter
# ---------------------------------------------------------------------------


class ArtifactEmitter:
    """Runs the generation pipeline against a clean target directory."""

    def __init__(
        self,
        config: Config,
        reporter: Reporter,
        runner: CommandRunner = execute,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.config = config
        self.reporter = reporter
        self.runner = runner
        self.renderer = renderer or TemplateRenderer()

    def context(self, naming: DerivedNaming) -> dict[str, Any]:
        """Template context: naming plus the configuration values templates use."""
        return {**naming.template_context(), **self.config.template_context()}

    async def emit(
        self,
        request: RunRequest,
        naming: DerivedNaming,
        target: TargetLocation,
        *,
        overwrite: bool = False,
    ) -> RunResult:
        """Execute every step in order.

        Raises:
            StepFailure: On the first failing step that is not best-effort.
                Later steps are not executed.
        """
        start = time.monotonic()
        context = self.context(naming)
        result = RunResult()

        for step in build_steps(request, target, self.config, overwrite=overwrite):
            self.reporter.info(step.description)
            try:
                written = await self.run_step(step, target.path, context)
            except StepFailure as exc:
                if not step.best_effort:
                    raise
                self.reporter.warning(f"{exc} (not critical, continuing)")
                result.steps_skipped_best_effort.append(step.id)
                continue
            result.steps_completed.append(step.id)
            result.files_written.extend(written)

        result.duration = time.monotonic() - start
        return result

    async def run_step(
        self, step: ArtifactStep, root: Path, context: dict[str, Any]
    ) -> list[str]:
        """Run a single step against the application at *root*.

        Returns:
            Paths (relative to *root*) of the files the step changed on disk.
        """
        if step.kind is StepKind.COMMAND:
            await self._run_command(step, root)
            return []

        if not root.is_dir():
            raise StepFailure(step.id, f"application directory {root} does not exist")

        try:
            if step.kind is StepKind.MERGE:
                return await asyncio.to_thread(self._merge_gemfile, step, root)
            if step.kind is StepKind.BLOCK:
                return await self._ensure_block(step, root, context)
            return await self._write_file(step, root, context)
        except OSError as exc:
            raise StepFailure(step.id, str(exc)) from exc

    # -- Step kinds --------------------------------------------------------

    async def _run_command(self, step: ArtifactStep, root: Path) -> None:
        cwd = root.parent if step.in_parent else root
        if not cwd.is_dir():
            raise StepFailure(step.id, f"working directory {cwd} does not exist")

        command = ExternalCommand(step.argv, cwd=cwd, timeout=self.config.command_timeout)
        outcome = await self.runner(command)
        self.reporter.output(outcome.stdout)
        if not outcome.ok:
            raise StepFailure(
                step.id,
                f"`{command.display()}` exited with status {outcome.exit_code}",
                exit_code=outcome.exit_code,
                stdout=outcome.stdout,
                stderr=outcome.stderr,
            )

    def _merge_gemfile(self, step: ArtifactStep, root: Path) -> list[str]:
        gemfile = root / "Gemfile"
        if not gemfile.is_file():
            raise StepFailure(step.id, f"{gemfile} not found")
        changed = write_if_changed(gemfile, merge_gemfile(gemfile.read_text(encoding="utf-8")))
        return ["Gemfile"] if changed else []

    async def _ensure_block(
        self, step: ArtifactStep, root: Path, context: dict[str, Any]
    ) -> list[str]:
        block = step.artifact
        assert isinstance(block, BlockArtifact)
        path = root / block.target
        if not path.is_file():
            raise StepFailure(step.id, f"{block.target} not found")
        body = self.renderer.render(block.template, context)
        text = path.read_text(encoding="utf-8")
        changed = await asyncio.to_thread(
            write_if_changed, path, ensure_block(text, block.block, body)
        )
        return [block.target] if changed else []

    async def _write_file(
        self, step: ArtifactStep, root: Path, context: dict[str, Any]
    ) -> list[str]:
        artifact = step.artifact
        assert isinstance(artifact, FileArtifact)
        if artifact.locate:
            matches = sorted(root.glob(artifact.target))
            if not matches:
                raise StepFailure(step.id, f"no file matches {artifact.target}")
            path = matches[0]
        else:
            path = root / artifact.target

        changed = await self.renderer.render_to_file(artifact.template, path, context)
        if artifact.executable:
            await asyncio.to_thread(make_executable, path)
        return [path.relative_to(root).as_posix()] if changed else []
