import json

import click
from flask.cli import with_appcontext

from app.extensions import db
from app.services.before_after_composer import create_composites_for_job
from app.services.errors import NoCompositeAvailable, PhotoLoadError, SocialPostError
from app.services.photo_analysis import analyze_photo
from app.services.photo_cleanup import execute_photo_cleanup
from app.services.social_scheduler import manually_post_best
from app.utils.model_utils import photo_utils


@click.group("photos")
def photos_group():
    """Photo pipeline maintenance."""


@photos_group.command("cleanup")
@click.option("--dry-run", is_flag=True, default=False, help="Report duplicate groups without deleting")
@with_appcontext
def cleanup_command(dry_run):
    result = execute_photo_cleanup(dry_run=dry_run)
    click.echo(result["message"])
    for group in result.get("groups", []):
        click.echo(f"  kept {group['kept_photo_id']} of {group['photo_count']} (deleted {group['deleted_count']})")


@photos_group.command("rehash")
@click.option("--all", "rehash_all", is_flag=True, default=False, help="Recompute photos that already have a hash")
@with_appcontext
def rehash_command(rehash_all):
    """Compute perceptual hashes and quality scores."""
    done = failed = 0
    for photo in photo_utils.all_photos():
        if photo.phash and not rehash_all:
            continue
        try:
            analyze_photo(photo)
            done += 1
        except PhotoLoadError as e:
            failed += 1
            click.echo(f"⚠ {photo.id}: {e}")
    db.session.commit()
    click.echo(f"✔ Analyzed {done} photos, {failed} unavailable")


@photos_group.command("composites")
@click.option("--job-id", required=True, help="CRM job id whose photos should be paired")
@with_appcontext
def composites_command(job_id):
    composites = create_composites_for_job(job_id)
    click.echo(f"✔ Created {len(composites)} composites for job {job_id}")
    for composite in composites:
        click.echo(f"  {composite.id} {composite.composite_url}")


@click.group("social")
def social_group():
    """Social media posting."""


@social_group.command("post-best")
@with_appcontext
def post_best_command():
    try:
        composite, result = manually_post_best()
    except NoCompositeAvailable as e:
        raise click.ClickException(str(e))
    except SocialPostError as e:
        db.session.rollback()
        raise click.ClickException(f"{e} (composite {e.composite_id})")
    click.echo(json.dumps({"composite_id": str(composite.id), **result}))
