import click
from flask import current_app
from flask.cli import with_appcontext

from app.extensions import db
from app.utils.model_utils.token_utils import purge_expired_tokens
from app.utils.model_utils.user_utils import ensure_admin_user, whitelist_email


@click.command("create-admin")
@click.option("--username", prompt=True)
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--superadmin", is_flag=True, default=False, help="Also grant the superadmin role")
@with_appcontext
def create_admin(username, email, password, superadmin):
    """Create (or promote) an admin account and whitelist its e-mail."""
    try:
        user = ensure_admin_user(username, email, password, superadmin=superadmin)
    except ValueError as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    click.echo(f"✔ Admin '{user.username}' ready with roles: {[r.value for r in user.roles]}")


@click.command("whitelist-admin")
@click.argument("email")
@click.option("--note", default=None)
@with_appcontext
def whitelist_admin(email, note):
    """Allow an e-mail to hold an admin session."""
    entry = whitelist_email(email, note=note)
    db.session.commit()
    current_app.logger.info("Admin whitelist entry added: %s", entry.email)
    click.echo(f"✔ {entry.email} whitelisted")


@click.command("purge-tokens")
@with_appcontext
def purge_tokens():
    """Drop block-list entries whose JWT has expired anyway."""
    removed = purge_expired_tokens()
    click.echo(f"✔ Removed {removed} expired block-list entries")
