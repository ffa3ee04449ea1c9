"""Idempotent edits to files the Rails generator owns.

The Gemfile is treated as a set of gem declarations: merging adds only the
gems that are not declared yet, so re-running never duplicates an entry.
Environment files receive marker-delimited blocks that are inserted once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_GEM_LINE = re.compile(r"""^\s*gem\s+["']([A-Za-z0-9_.\-]+)["']""", re.MULTILINE)


@dataclass(frozen=True)
class GemDeclaration:
    """One ``gem`` line, optionally inside a Bundler group."""

    name: str
    requirement: str | None = None
    group: str | None = None
    comment: str | None = None

    def render(self) -> str:
        line = f'gem "{self.name}"'
        if self.requirement:
            line += f', "{self.requirement}"'
        return line


GEMFILE_ADDITIONS: tuple[GemDeclaration, ...] = (
    GemDeclaration("bcrypt", "~> 3.1.7", comment="Use Active Model has_secure_password"),
    GemDeclaration(
        "letter_opener_web",
        "~> 2.0",
        group="development",
        comment="Open emails in the browser instead of sending them",
    ),
    GemDeclaration("capybara", group="test"),
    GemDeclaration("selenium-webdriver", group="test"),
)


def declared_gems(gemfile: str) -> set[str]:
    """Names of every gem declared (not commented out) in *gemfile*."""
    return set(_GEM_LINE.findall(gemfile))


def merge_gemfile(
    gemfile: str, additions: tuple[GemDeclaration, ...] = GEMFILE_ADDITIONS
) -> str:
    """Return *gemfile* with every missing declaration from *additions*.

    Declarations are matched by gem name only; an existing declaration is
    never rewritten.  Missing top-level gems come first, followed by one
    ``group`` block per Bundler group, in the order the groups first appear
    in *additions*.  Merging an already merged Gemfile returns it unchanged.
    """
    present = declared_gems(gemfile)
    missing = [gem for gem in additions if gem.name not in present]
    if not missing:
        return gemfile

    chunks: list[str] = []
    for gem in missing:
        if gem.group is None:
            lines = [f"# {gem.comment}"] if gem.comment else []
            lines.append(gem.render())
            chunks.append("\n".join(lines))

    groups: dict[str, list[GemDeclaration]] = {}
    for gem in missing:
        if gem.group is not None:
            groups.setdefault(gem.group, []).append(gem)
    for group, gems in groups.items():
        lines = [f"group :{group} do"]
        for gem in gems:
            if gem.comment:
                lines.append(f"  # {gem.comment}")
            lines.append(f"  {gem.render()}")
        lines.append("end")
        chunks.append("\n".join(lines))

    base = gemfile if gemfile.endswith("\n") or not gemfile else gemfile + "\n"
    return base + "\n" + "\n\n".join(chunks) + "\n"


def block_markers(name: str) -> tuple[str, str]:
    return (f"# >>> railsmith:{name}", f"# <<< railsmith:{name}")


def ensure_block(text: str, name: str, body: str) -> str:
    """Return *text* containing the named block exactly once.

    When the block markers are already present the text is returned
    unchanged.  Otherwise the block is inserted before the final ``end`` of
    a ``Rails.application.configure do ... end`` file, or appended when the
    file has no trailing ``end``.
    """
    begin, finish = block_markers(name)
    if begin in text:
        return text

    indent = "  "
    block = f"\n{indent}{begin}\n{body.rstrip()}\n{indent}{finish}\n"

    lines = text.rstrip("\n").split("\n")
    if lines and lines[-1].strip() == "end":
        head = "\n".join(lines[:-1]).rstrip("\n")
        return f"{head}\n{block}{lines[-1]}\n"
    return text.rstrip("\n") + "\n" + block
