"""Name derivation for the generated application.

All values are computed from the application name given on the command
line.  The transforms are pure: the same input always yields the same
``DerivedNaming``.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from railsmith.config import TargetLocation
from railsmith.errors import UsageError
from railsmith.utils import is_within

_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[-_\s]+")


class DerivedNaming(BaseModel):
    """Spellings of the application name used across generated files."""

    model_config = ConfigDict(frozen=True)

    app_name: str
    lowercase_slug: str
    snake_name: str
    class_cased_name: str
    display_name: str

    def template_context(self) -> dict[str, str]:
        return {
            "app_name": self.app_name,
            "app_slug": self.lowercase_slug,
            "app_snake": self.snake_name,
            "app_class": self.class_cased_name,
            "app_title": self.display_name,
        }


def slugify(name: str) -> str:
    """Lowercase the name. Idempotent: ``slugify(slugify(x)) == slugify(x)``."""
    return name.lower()


def snake_case(name: str) -> str:
    """Insert ``_`` at lower/digit-to-upper boundaries, then lowercase.

    ``BlogApp`` -> ``blog_app``; ``HTTPServer`` -> ``httpserver`` (only
    lower-to-upper transitions count).
    """
    return _BOUNDARY.sub(r"\1_\2", name).lower()


def class_case(name: str) -> str:
    """``snake_case`` with the first character upper-cased (``Blog_app``)."""
    snake = snake_case(name)
    return snake[:1].upper() + snake[1:]


def title_case(name: str) -> str:
    """Human-readable title: ``BlogApp`` / ``blog_app`` -> ``Blog App``."""
    spaced = _SEPARATORS.sub(" ", _BOUNDARY.sub(r"\1 \2", name)).strip()
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split(" ") if word)


def derive_naming(app_name: str) -> DerivedNaming:
    """Compute every spelling of *app_name*.

    Raises:
        UsageError: If the name is empty.
    """
    if not app_name or not app_name.strip():
        raise UsageError("Please provide an app name")
    return DerivedNaming(
        app_name=app_name,
        lowercase_slug=slugify(app_name),
        snake_name=snake_case(app_name),
        class_cased_name=class_case(app_name),
        display_name=title_case(app_name),
    )


def resolve_target(
    naming: DerivedNaming,
    cwd: Path,
    protected: tuple[Path, ...] = (),
) -> TargetLocation:
    """Resolve the sibling directory the application is generated into.

    The target is ``<cwd>/../<lowercase_slug>``.  It must not equal, contain,
    or sit inside the invocation directory or any *protected* directory,
    otherwise clearing it on overwrite would delete the tool itself.

    Raises:
        UsageError: If the slug is not a plain directory name or the target
            overlaps a protected directory.
    """
    slug = naming.lowercase_slug
    if slug in (".", "..") or "/" in slug or "\\" in slug:
        raise UsageError(f"'{naming.app_name}' cannot be used as a directory name")

    base = cwd.resolve()
    target = (base.parent / slug).resolve()
    for guarded in (base, *protected):
        guarded = guarded.resolve()
        if is_within(target, guarded) or is_within(guarded, target):
            raise UsageError(
                f"Target directory {target} overlaps {guarded}; "
                "choose a different app name or run from another directory"
            )
    return TargetLocation(path=target)
