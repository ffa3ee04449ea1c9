"""Template table for the generated Rails application.

Maps every file railsmith writes to the Jinja2 template that produces it.
This is pure data: ordering and failure policy live in
``railsmith.emitter``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FileArtifact:
    """A file whose whole content is rendered from one template.

    ``target`` is relative to the application root.  When ``locate`` is set,
    ``target`` is a glob that must match a file created by an earlier
    generator step; that file is overwritten.
    """

    step_id: str
    target: str
    template: str
    executable: bool = False
    locate: bool = False


@dataclass(frozen=True)
class BlockArtifact:
    """A marker-delimited block inserted once into an existing file."""

    step_id: str
    target: str
    template: str
    block: str


# Authentication concern, models, controllers, mailers, views and routes.
AUTH_ARTIFACTS: tuple[FileArtifact, ...] = (
    FileArtifact("authentication-concern", "app/controllers/concerns/authentication.rb", "app/controllers/concerns/authentication.rb.j2"),
    FileArtifact("current-model", "app/models/current.rb", "app/models/current.rb.j2"),
    FileArtifact("user-model", "app/models/user.rb", "app/models/user.rb.j2"),
    FileArtifact("session-model", "app/models/session.rb", "app/models/session.rb.j2"),
    FileArtifact("application-controller", "app/controllers/application_controller.rb", "app/controllers/application_controller.rb.j2"),
    FileArtifact("home-controller", "app/controllers/home_controller.rb", "app/controllers/home_controller.rb.j2"),
    FileArtifact("sessions-controller", "app/controllers/sessions_controller.rb", "app/controllers/sessions_controller.rb.j2"),
    FileArtifact("sign-ups-controller", "app/controllers/sign_ups_controller.rb", "app/controllers/sign_ups_controller.rb.j2"),
    FileArtifact("password-resets-controller", "app/controllers/password_resets_controller.rb", "app/controllers/password_resets_controller.rb.j2"),
    FileArtifact("email-confirmations-controller", "app/controllers/email_confirmations_controller.rb", "app/controllers/email_confirmations_controller.rb.j2"),
    FileArtifact("application-helper", "app/helpers/application_helper.rb", "app/helpers/application_helper.rb.j2"),
    FileArtifact("application-mailer", "app/mailers/application_mailer.rb", "app/mailers/application_mailer.rb.j2"),
    FileArtifact("password-resets-mailer", "app/mailers/password_resets_mailer.rb", "app/mailers/password_resets_mailer.rb.j2"),
    FileArtifact("email-confirmations-mailer", "app/mailers/email_confirmations_mailer.rb", "app/mailers/email_confirmations_mailer.rb.j2"),
    FileArtifact("application-layout", "app/views/layouts/application.html.erb", "app/views/layouts/application.html.erb.j2"),
    FileArtifact("mailer-layout-html", "app/views/layouts/mailer.html.erb", "app/views/layouts/mailer.html.erb.j2"),
    FileArtifact("mailer-layout-text", "app/views/layouts/mailer.text.erb", "app/views/layouts/mailer.text.erb.j2"),
    FileArtifact("home-view", "app/views/home/index.html.erb", "app/views/home/index.html.erb.j2"),
    FileArtifact("sessions-view", "app/views/sessions/new.html.erb", "app/views/sessions/new.html.erb.j2"),
    FileArtifact("sign-ups-view", "app/views/sign_ups/new.html.erb", "app/views/sign_ups/new.html.erb.j2"),
    FileArtifact("password-reset-new-view", "app/views/password_resets/new.html.erb", "app/views/password_resets/new.html.erb.j2"),
    FileArtifact("password-reset-edit-view", "app/views/password_resets/edit.html.erb", "app/views/password_resets/edit.html.erb.j2"),
    FileArtifact("email-confirmation-view", "app/views/email_confirmations/new.html.erb", "app/views/email_confirmations/new.html.erb.j2"),
    FileArtifact("password-reset-email", "app/views/password_resets_mailer/reset_email.html.erb", "app/views/password_resets_mailer/reset_email.html.erb.j2"),
    FileArtifact("confirmation-email", "app/views/email_confirmations_mailer/confirmation_email.html.erb", "app/views/email_confirmations_mailer/confirmation_email.html.erb.j2"),
    FileArtifact("routes", "config/routes.rb", "config/routes.rb.j2"),
    FileArtifact("smtp-initializer", "config/initializers/smtp.rb", "config/initializers/smtp.rb.j2"),
)

MAILER_BLOCKS: tuple[BlockArtifact, ...] = (
    BlockArtifact("development-mailer", "config/environments/development.rb", "config/environments/development_mailer.rb.j2", "mailer"),
    BlockArtifact("production-mailer", "config/environments/production.rb", "config/environments/production_mailer.rb.j2", "mailer"),
)

# Overwrite the empty migrations created by ``rails generate migration``.
MIGRATION_ARTIFACTS: tuple[FileArtifact, ...] = (
    FileArtifact("migration-user-indexes", "db/migrate/*_add_indexes_to_users.rb", "db/migrate/add_indexes_to_users.rb.j2", locate=True),
    FileArtifact("migration-session-indexes", "db/migrate/*_add_indexes_to_sessions.rb", "db/migrate/add_indexes_to_sessions.rb.j2", locate=True),
)

ASSET_ARTIFACTS: tuple[FileArtifact, ...] = (
    FileArtifact("procfile", "Procfile.dev", "Procfile.dev.j2"),
    FileArtifact("tailwind-css", "app/assets/tailwind/application.css", "app/assets/tailwind/application.css.j2"),
)

LAUNCHER_ARTIFACTS: tuple[FileArtifact, ...] = (
    FileArtifact("bin-dev", "bin/dev", "bin/dev.j2", executable=True),
    FileArtifact("readme", "README.md", "README.md.j2"),
)


def all_templates() -> list[str]:
    """Every template name referenced by the table, sorted."""
    names = [
        artifact.template
        for group in (AUTH_ARTIFACTS, MIGRATION_ARTIFACTS, ASSET_ARTIFACTS, LAUNCHER_ARTIFACTS)
        for artifact in group
    ]
    names.extend(block.template for block in MAILER_BLOCKS)
    return sorted(names)
