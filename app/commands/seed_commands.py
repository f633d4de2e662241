import click
from flask.cli import with_appcontext

from app.utils.model_utils.content_utils import seed_service_areas
from app.utils.model_utils.tracking_number_utils import seed_tracking_numbers


@click.command("seed")
@with_appcontext
def seed_command():
    """Seed tracking numbers and service areas on an empty database."""
    numbers = seed_tracking_numbers()
    if numbers:
        click.echo(f"Seeded {len(numbers)} tracking numbers.")
    else:
        click.echo("Tracking numbers already present; skipped.")

    areas = seed_service_areas()
    if areas:
        click.echo(f"Seeded {len(areas)} service areas.")
    else:
        click.echo("Service areas already present; skipped.")
