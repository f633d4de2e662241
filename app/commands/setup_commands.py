import os

import click
from flask import current_app
from flask.cli import with_appcontext
from flask_migrate import upgrade as alembic_upgrade

from app.extensions import db
from app.utils.model_utils.content_utils import seed_service_areas
from app.utils.model_utils.tracking_number_utils import seed_tracking_numbers
from app.utils.model_utils.user_utils import ensure_admin_user


@click.command("setup")
@click.option("--create-admin/--no-create-admin", default=True, help="Create the admin account from ADMIN_* settings")
@click.option("--admin-password", default=None, help="Admin password (falls back to ADMIN_PASSWORD env)")
@click.option("--seed/--no-seed", default=True, help="Seed tracking numbers and service areas")
@with_appcontext
def setup_command(create_admin: bool, admin_password: str | None, seed: bool):
    """One-shot project setup for fresh systems.

    - Upgrades DB schema to head (Alembic) or creates tables when no
      migrations directory exists
    - Creates the admin account and whitelists its e-mail
    - Seeds tracking numbers and service areas

    Safe to run multiple times; all steps are idempotent.
    """
    current_app.logger.info("setup: starting (engine=%s)", db.engine.name)

    # 1) Schema
    migrations_dir = os.path.join(current_app.root_path, "..", "migrations")
    try:
        if os.path.isdir(migrations_dir):
            alembic_upgrade(directory=migrations_dir)
            click.echo("✔ Database upgraded to head")
        else:
            db.create_all()
            click.echo("✔ Tables created (no migrations directory)")
    except Exception as e:
        current_app.logger.exception("setup: schema step failed: %s", e)
        raise click.ClickException(f"Schema setup failed: {e}")

    # 2) Admin account
    if create_admin:
        pwd = admin_password or current_app.config.get("ADMIN_PASSWORD")
        if pwd:
            try:
                user = ensure_admin_user(
                    current_app.config.get("ADMIN_USERNAME", "admin"),
                    current_app.config.get("ADMIN_EMAIL", "admin@example.com"),
                    pwd,
                )
                click.echo(f"✔ Admin '{user.username}' ready")
            except ValueError as e:
                db.session.rollback()
                current_app.logger.warning("setup: admin creation failed: %s", e)
                click.echo(f"⚠ Admin creation failed: {e}")
        else:
            click.echo("ℹ ADMIN_PASSWORD not provided; skipping admin creation")

    # 3) Reference data
    if seed:
        click.echo(f"✔ Seeded {len(seed_tracking_numbers())} tracking numbers, "
                   f"{len(seed_service_areas())} service areas")

    click.echo("✅ Setup complete")
