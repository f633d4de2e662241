import click
from flask.cli import with_appcontext

from app.utils.logging_utils import archive_logs, clear_all_logs, clear_log


@click.group("logs")
def logs_group():
    """Categorized log file housekeeping."""


@logs_group.command("archive")
@click.option("--older-than-days", default=7, show_default=True, type=int)
@with_appcontext
def archive_command(older_than_days):
    moved = archive_logs(older_than_days)
    click.echo(f"Archived {len(moved)} log files")


@logs_group.command("clear")
@click.option("--category", default=None, help="Only this category (e.g. cleanup, social)")
@click.confirmation_option(prompt="Delete category log files?")
@with_appcontext
def clear_command(category):
    removed = clear_log(category) if category else clear_all_logs()
    click.echo(f"Removed {len(removed)} log files")
