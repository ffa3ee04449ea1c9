"""railsmith configuration and run inputs.

Typed configuration for the generator plus the immutable per-run request.
All settings use Pydantic v2 models so they are validated at construction
time and serialise to/from JSON or environment variables without
boiler-plate.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Token on the command line that selects the alternate database kind.
ALTERNATE_DATABASE_TOKEN = "sqlite"


class DatabaseKind(str, Enum):
    """Database adapter passed to ``rails new --database``."""

    DEFAULT = "postgresql"
    ALTERNATE = "sqlite3"

    @classmethod
    def from_token(cls, token: str | None) -> "DatabaseKind":
        """Map the optional CLI token to a kind.

        Only the reserved alternate token changes behaviour; any other value
        (including ``None``) falls back to the default kind.
        """
        if token is not None and token.strip().lower() == ALTERNATE_DATABASE_TOKEN:
            return cls.ALTERNATE
        return cls.DEFAULT


class RunRequest(BaseModel):
    """What the user asked for. Created once from the command line."""

    model_config = ConfigDict(frozen=True)

    app_name: str = Field(..., min_length=1)
    database: DatabaseKind = Field(default=DatabaseKind.DEFAULT)

    @field_validator("app_name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("application name must not be blank")
        return value


class TargetLocation(BaseModel):
    """Directory the generated application is written to."""

    model_config = ConfigDict(frozen=True)

    path: Path

    @property
    def display(self) -> str:
        """Path as shown to the user, relative to the invocation directory."""
        return f"../{self.path.name}"


class Config(BaseModel):
    """Global railsmith configuration.

    Holds the external tool names and the tuning knobs for delegated
    commands.  Instances are created once by the CLI entry point and passed
    to every component.
    """

    rails_bin: str = Field(default="rails")
    bundle_bin: str = Field(default="bundle")
    command_timeout: int = Field(
        default=900, ge=10, description="Per delegated command timeout in seconds"
    )
    probe_timeout: int = Field(
        default=30, ge=1, description="Timeout for the database reachability probe"
    )
    rails_new_options: list[str] = Field(
        default_factory=lambda: [
            "--css=tailwind",
            "--javascript=importmap",
            "--skip-git",
            "--skip-test",
            "--skip-system-test",
            "--skip-bundle",
        ]
    )
    migration_version: str = Field(default="8.0")
    dev_port: int = Field(default=3000, ge=1, le=65535)
    assume_yes: bool = Field(
        default=False, description="Accept the overwrite prompt without asking"
    )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def template_context(self) -> dict[str, Any]:
        """Values from the configuration that generated files depend on."""
        return {
            "migration_version": self.migration_version,
            "dev_port": self.dev_port,
        }

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file.

        Returns:
            The path where the file was written.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            RAILSMITH_RAILS_BIN, RAILSMITH_BUNDLE_BIN,
            RAILSMITH_COMMAND_TIMEOUT, RAILSMITH_PROBE_TIMEOUT,
            RAILSMITH_DEV_PORT, RAILSMITH_ASSUME_YES.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("RAILSMITH_RAILS_BIN"):
            kwargs["rails_bin"] = os.environ["RAILSMITH_RAILS_BIN"]
        if os.environ.get("RAILSMITH_BUNDLE_BIN"):
            kwargs["bundle_bin"] = os.environ["RAILSMITH_BUNDLE_BIN"]
        if os.environ.get("RAILSMITH_COMMAND_TIMEOUT"):
            kwargs["command_timeout"] = int(os.environ["RAILSMITH_COMMAND_TIMEOUT"])
        if os.environ.get("RAILSMITH_PROBE_TIMEOUT"):
            kwargs["probe_timeout"] = int(os.environ["RAILSMITH_PROBE_TIMEOUT"])
        if os.environ.get("RAILSMITH_DEV_PORT"):
            kwargs["dev_port"] = int(os.environ["RAILSMITH_DEV_PORT"])
        assume_yes = os.environ.get("RAILSMITH_ASSUME_YES", "")
        kwargs["assume_yes"] = assume_yes.strip().lower() in ("1", "true", "yes", "y")
        return cls(**kwargs)
