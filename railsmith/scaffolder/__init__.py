"""railsmith scaffolder -- payload for the generated Rails application.

Holds the template table (which file comes from which template), the Jinja2
renderer and the idempotent manifest edits.  The pipeline that decides when
each artifact is produced lives in ``railsmith.emitter``.

Quick usage::

    from railsmith.scaffolder import TemplateRenderer, AUTH_ARTIFACTS

    renderer = TemplateRenderer()
    text = renderer.render(AUTH_ARTIFACTS[0].template, context)
"""

from railsmith.scaffolder.artifacts import (
    ASSET_ARTIFACTS,
    AUTH_ARTIFACTS,
    LAUNCHER_ARTIFACTS,
    MAILER_BLOCKS,
    MIGRATION_ARTIFACTS,
    BlockArtifact,
    FileArtifact,
)
from railsmith.scaffolder.manifest import GEMFILE_ADDITIONS, GemDeclaration, ensure_block, merge_gemfile
from railsmith.scaffolder.templates import TemplateRenderer

__all__ = [
    "ASSET_ARTIFACTS",
    "AUTH_ARTIFACTS",
    "BlockArtifact",
    "FileArtifact",
    "GEMFILE_ADDITIONS",
    "GemDeclaration",
    "LAUNCHER_ARTIFACTS",
    "MAILER_BLOCKS",
    "MIGRATION_ARTIFACTS",
    "TemplateRenderer",
    "ensure_block",
    "merge_gemfile",
]
