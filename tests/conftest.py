"""Shared pytest fixtures for the railsmith test suite.

Provides reusable fixtures for:
- A tool directory to invoke railsmith from (the app lands next to it)
- A scripted command runner standing in for ``rails`` and ``bundle``
- Recording reporters and default configuration
- Mock subprocess helpers
"""

from __future__ import annotations

import io
import re
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from rich.console import Console

from railsmith.config import Config
from railsmith.naming import derive_naming
from railsmith.utils import CommandResult, ExternalCommand, Reporter

# ---------------------------------------------------------------------------
# Skeleton written by the fake ``rails new``
# ---------------------------------------------------------------------------

RAILS_NEW_GEMFILE = """\
source "https://rubygems.org"

gem "rails", "~> 8.0.2"
gem "pg", "~> 1.1"
gem "puma", ">= 5.0"
gem "tailwindcss-rails"

# Use Active Model has_secure_password [https://guides.rubyonrails.org/active_model_basics.html#securepassword]
# gem "bcrypt", "~> 3.1.7"

group :development, :test do
  gem "debug", platforms: %i[ mri windows ], require: "debug/prelude"
end
"""

RAILS_NEW_ENVIRONMENT = """\
require "active_support/core_ext/integer/time"

Rails.application.configure do
  config.enable_reloading = true
  config.eager_load = false
end
"""

RAILS_NEW_ROUTES = """\
Rails.application.routes.draw do
  get "up" => "rails/health#show", as: :rails_health_check
end
"""


def _underscore(name: str) -> str:
    return re.sub(r"(?<!^)([A-Z])", r"_\1", name).lower()


class FakeRunner:
    """Scripted ``CommandRunner`` that simulates the Rails toolchain.

    ``rails new`` creates a minimal application tree, ``rails generate``
    creates models and timestamped migrations, everything else succeeds
    with no output.  The database probe reports "no database" by default.

    Usage:
        runner = FakeRunner()
        runner.fail("db:migrate", stderr="PG::ConnectionBad")
        ...
        assert "db:migrate" not in runner.invoked
    """

    def __init__(self) -> None:
        self.calls: list[ExternalCommand] = []
        self.failures: dict[str, CommandResult] = {}
        self.responses: dict[str, CommandResult] = {}
        self.raises: dict[str, BaseException] = {}
        self._migrations = 0

    # -- Scripting ---------------------------------------------------------

    def fail(self, key: str, exit_code: int = 1, stdout: str = "", stderr: str = "") -> None:
        self.failures[key] = CommandResult(exit_code, stdout, stderr)

    def respond(self, key: str, exit_code: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.responses[key] = CommandResult(exit_code, stdout, stderr)

    def raise_on(self, key: str, exc: BaseException) -> None:
        self.raises[key] = exc

    def database_exists(self) -> None:
        self.respond("runner puts 'Database connection successful'",
                     stdout="Database connection successful")

    # -- Inspection --------------------------------------------------------

    @property
    def invoked(self) -> list[str]:
        """Every command as ``"<args after the binary>"``, in call order."""
        return [self.key(call) for call in self.calls]

    @staticmethod
    def key(command: ExternalCommand) -> str:
        return " ".join(command.argv[1:])

    # -- CommandRunner -----------------------------------------------------

    async def __call__(self, command: ExternalCommand) -> CommandResult:
        self.calls.append(command)
        key = self.key(command)

        for prefix, exc in self.raises.items():
            if key.startswith(prefix):
                raise exc
        for prefix, result in self.failures.items():
            if key.startswith(prefix):
                return result
        for prefix, result in self.responses.items():
            if key.startswith(prefix):
                return result

        args = command.argv[1:]
        if args[:1] == ("new",):
            self._rails_new(Path(args[1]))
        elif args[:2] == ("generate", "model"):
            self._generate_model(Path(command.cwd), args[2])
        elif args[:2] == ("generate", "migration"):
            self._generate_migration(Path(command.cwd), args[2])
        elif args[:1] == ("runner",):
            return CommandResult(1, "", "Usage: rails new APP_PATH [options]")
        return CommandResult(0, "", "")

    # -- Simulated generators ----------------------------------------------

    def _rails_new(self, root: Path) -> None:
        root.mkdir(parents=True)
        (root / "Gemfile").write_text(RAILS_NEW_GEMFILE, encoding="utf-8")
        for env in ("development", "production", "test"):
            path = root / "config" / "environments" / f"{env}.rb"
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(RAILS_NEW_ENVIRONMENT, encoding="utf-8")
        (root / "config" / "routes.rb").write_text(RAILS_NEW_ROUTES, encoding="utf-8")
        (root / "bin").mkdir()
        (root / "bin" / "rails").write_text("#!/usr/bin/env ruby\n", encoding="utf-8")
        (root / "db" / "migrate").mkdir(parents=True)
        (root / "app" / "models").mkdir(parents=True)

    def _generate_model(self, root: Path, name: str) -> None:
        snake = _underscore(name)
        model = root / "app" / "models" / f"{snake}.rb"
        model.write_text(f"class {name} < ApplicationRecord\nend\n", encoding="utf-8")
        self._generate_migration(root, f"Create{name}s")

    def _generate_migration(self, root: Path, name: str) -> None:
        self._migrations += 1
        stamp = 20250101000000 + self._migrations
        path = root / "db" / "migrate" / f"{stamp}_{_underscore(name)}.rb"
        path.write_text(
            f"class {name} < ActiveRecord::Migration[8.0]\n  def change\n  end\nend\n",
            encoding="utf-8",
        )


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tool_dir(tmp_path: Path) -> Path:
    """Directory railsmith is invoked from; generated apps land beside it."""
    directory = tmp_path / "railsmith-tool"
    directory.mkdir()
    yield directory


@pytest.fixture
def naming():
    return derive_naming("BlogApp")


# ---------------------------------------------------------------------------
# Runner, reporter, config
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def reporter() -> Reporter:
    """Reporter writing to an in-memory, recording console.

    Read the output with ``reporter.console.export_text()``.
    """
    console = Console(file=io.StringIO(), record=True, width=200, color_system=None)
    return Reporter(console)


@pytest.fixture
def config() -> Config:
    return Config()


# ---------------------------------------------------------------------------
# Mock subprocess
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
