"""Unit tests for the Artifact Emitter (railsmith.emitter).

Tests cover:
- build_steps ordering, argv and the overwrite database reset
- A full emission against the scripted runner
- Halting on the first failing step, with no rollback
- Best-effort steps continue on failure
- Located migrations: precondition failure when the generator produced none
- Idempotent file steps (byte-identical on re-run)
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from railsmith.config import Config, DatabaseKind, RunRequest, TargetLocation
from railsmith.emitter import ArtifactEmitter, StepKind, build_steps
from railsmith.errors import StepFailure
from railsmith.naming import resolve_target


@pytest.fixture
def target(naming, tool_dir: Path) -> TargetLocation:
    return resolve_target(naming, tool_dir)


@pytest.fixture
def request_() -> RunRequest:
    return RunRequest(app_name="BlogApp")


@pytest.fixture
def emitter(config: Config, reporter, fake_runner) -> ArtifactEmitter:
    return ArtifactEmitter(config, reporter, fake_runner)


def _snapshot(root: Path) -> dict[str, bytes]:
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


# ---------------------------------------------------------------------------
# build_steps
# ---------------------------------------------------------------------------


class TestBuildSteps:
    @pytest.mark.unit
    def test_dependency_order(self, request_, target, config):
        ids = [step.id for step in build_steps(request_, target, config)]
        assert ids[:8] == [
            "scaffold",
            "gemfile",
            "bundle-install",
            "database",
            "generate-user",
            "generate-session",
            "generate-user-indexes",
            "generate-session-indexes",
        ]
        assert ids.index("migration-user-indexes") < ids.index("migrate")
        assert ids.index("migration-session-indexes") < ids.index("migrate")
        assert ids.index("development-mailer") < ids.index("migrate")
        assert ids.index("migrate") < ids.index("procfile") < ids.index("tailwind-build")
        assert ids[-2:] == ["bin-dev", "readme"]
        assert len(ids) == len(set(ids))

    @pytest.mark.unit
    def test_scaffold_command(self, target, config):
        request = RunRequest(app_name="BlogApp", database=DatabaseKind.ALTERNATE)
        scaffold = build_steps(request, target, config)[0]
        assert scaffold.kind is StepKind.COMMAND
        assert scaffold.in_parent
        assert scaffold.argv[:4] == ("rails", "new", str(target.path), "--database=sqlite3")
        assert "--skip-bundle" in scaffold.argv

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "overwrite,argv",
        [(False, ("rails", "db:create")), (True, ("rails", "db:drop", "db:create"))],
    )
    def test_database_step(self, request_, target, config, overwrite, argv):
        steps = {s.id: s for s in build_steps(request_, target, config, overwrite=overwrite)}
        assert steps["database"].argv == argv

    @pytest.mark.unit
    def test_only_asset_build_is_best_effort(self, request_, target, config):
        best_effort = [s.id for s in build_steps(request_, target, config) if s.best_effort]
        assert best_effort == ["tailwind-build"]

    @pytest.mark.unit
    def test_targets(self, request_, target, config):
        steps = {s.id: s for s in build_steps(request_, target, config)}
        assert steps["gemfile"].target == "Gemfile"
        assert steps["routes"].target == "config/routes.rb"
        assert steps["scaffold"].target is None


# ---------------------------------------------------------------------------
# emit
# ---------------------------------------------------------------------------


class TestEmit:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_full_run(self, emitter, request_, naming, target, fake_runner, config):
        result = await emitter.emit(request_, naming, target)
        root = target.path

        assert result.steps_completed == [s.id for s in build_steps(request_, target, config)]
        assert result.steps_skipped_best_effort == []
        assert 'gem "bcrypt", "~> 3.1.7"' in (root / "Gemfile").read_text()
        assert "railsmith:mailer" in (root / "config/environments/development.rb").read_text()
        assert "railsmith:mailer" in (root / "config/environments/production.rb").read_text()
        assert (root / "app/controllers/concerns/authentication.rb").is_file()
        assert (root / "README.md").read_text().startswith("# Blog App")
        assert "bin/dev" in result.files_written

        (users_migration,) = root.glob("db/migrate/*_add_indexes_to_users.rb")
        assert "add_index :users" in users_migration.read_text()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_commands_run_inside_target(self, emitter, request_, naming, target, fake_runner, config):
        await emitter.emit(request_, naming, target)
        scaffold, *rest = fake_runner.calls
        assert scaffold.cwd == target.path.parent
        assert all(call.cwd == target.path for call in rest)
        assert all(call.timeout == config.command_timeout for call in fake_runner.calls)
        assert fake_runner.invoked[-2:] == ["db:migrate", "tailwindcss:build"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    async def test_bin_dev_executable(self, emitter, request_, naming, target):
        await emitter.emit(request_, naming, target)
        assert os.access(target.path / "bin" / "dev", os.X_OK)


class TestFailures:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_migrate_failure_halts(self, emitter, request_, naming, target, fake_runner):
        fake_runner.fail("db:migrate", stderr="PG::ConnectionBad: could not connect")
        with pytest.raises(StepFailure) as excinfo:
            await emitter.emit(request_, naming, target)

        assert excinfo.value.step_id == "migrate"
        assert excinfo.value.exit_code == 1
        assert "PG::ConnectionBad" in excinfo.value.diagnostics
        assert "tailwindcss:build" not in fake_runner.invoked
        assert not (target.path / "Procfile.dev").exists()
        # No rollback: earlier artifacts stay on disk.
        assert (target.path / "config" / "routes.rb").is_file()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bundle_failure_stops_before_generators(self, emitter, request_, naming, target, fake_runner):
        fake_runner.fail("install", exit_code=5, stderr="Could not find gem 'bcrypt'")
        with pytest.raises(StepFailure, match="Step 'bundle-install' failed"):
            await emitter.emit(request_, naming, target)
        assert not any(key.startswith("generate") for key in fake_runner.invoked)
        assert target.path.is_dir()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_executable(self, emitter, request_, naming, target, fake_runner):
        fake_runner.fail("new", exit_code=127, stderr="rails: No such file or directory")
        with pytest.raises(StepFailure) as excinfo:
            await emitter.emit(request_, naming, target)
        assert excinfo.value.step_id == "scaffold"
        assert excinfo.value.exit_code == 127

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_best_effort_failure_continues(self, emitter, request_, naming, target, fake_runner, reporter):
        fake_runner.fail("tailwindcss:build", stderr="tailwindcss: command not found")
        result = await emitter.emit(request_, naming, target)
        assert result.steps_skipped_best_effort == ["tailwind-build"]
        assert "tailwind-build" not in result.steps_completed
        assert (target.path / "README.md").is_file()
        assert "[WARNING] Step 'tailwind-build' failed" in reporter.console.export_text()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_generated_migration(self, emitter, request_, naming, target, fake_runner):
        fake_runner.respond("generate migration AddIndexesToUsers")
        with pytest.raises(StepFailure) as excinfo:
            await emitter.emit(request_, naming, target)
        assert excinfo.value.step_id == "migration-user-indexes"
        assert "db:migrate" not in fake_runner.invoked

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_file_step_without_application(self, emitter, naming, target, config, request_):
        step = next(s for s in build_steps(request_, target, config) if s.id == "routes")
        with pytest.raises(StepFailure, match="does not exist"):
            await emitter.run_step(step, target.path, emitter.context(naming))


class TestIdempotence:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_file_steps_are_byte_identical_on_rerun(self, emitter, request_, naming, target, config):
        await emitter.emit(request_, naming, target)
        before = _snapshot(target.path)

        context = emitter.context(naming)
        for step in build_steps(request_, target, config):
            if step.kind is not StepKind.COMMAND:
                assert await emitter.run_step(step, target.path, context) == [], step.id

        assert _snapshot(target.path) == before

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unchanged_gemfile_not_reported(self, emitter, request_, naming, target, config):
        result = await emitter.emit(request_, naming, target)
        assert "Gemfile" in result.files_written

        gemfile = next(s for s in build_steps(request_, target, config) if s.id == "gemfile")
        assert await emitter.run_step(gemfile, target.path, emitter.context(naming)) == []
