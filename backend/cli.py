import click
import json
import logging
from pathlib import Path
from flask import current_app
from flask.cli import with_appcontext
from .models import db, ensure_schema, ensure_admin_user
from .services.cloud_storage import get_cloud_storage
from shared.models import Survey, now
from shared.owner_details import (
    slots_are_healthy, repair_fragmented_details, mask_owner_details, serialize_owner_slots,
)
from shared.utils import split_csv

logger = logging.getLogger(__name__)


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create missing tables and columns and bootstrap the admin account."""
    logger.info("Starting database initialization")
    added = ensure_schema()
    if added:
        click.echo(f"Added columns: {', '.join(added)}")
    ensure_admin_user(current_app.config['ADMIN_EMAIL'], current_app.config['ADMIN_PASSWORD'])
    logger.info("Database initialization completed successfully")
    click.echo('Initialized the database.')


def _stored_owners(survey):
    """Owners held by a survey's detail slots, repaired when fragmented.

    Returns:
        tuple: (owners or None when unrecoverable, True if the slots were fragmented)
    """
    fragments = survey.slot_values(Survey.owner_columns('details'))
    if slots_are_healthy(fragments):
        return [json.loads(fragment) for fragment in fragments], False
    return repair_fragmented_details(fragments), True


@click.command('fix-owner-details')
@click.option('--dry-run', is_flag=True, help='Report what would change without writing')
@with_appcontext
def fix_owner_details_command(dry_run):
    """Repair owner details split across slots and mask stored identifiers."""
    logger.info(f"Starting owner details repair (dry_run={dry_run})")
    surveys = Survey.query.order_by(Survey.id).all()
    repaired = 0
    unrecoverable = 0

    for survey in surveys:
        owners, fragmented = _stored_owners(survey)
        if owners is None:
            unrecoverable += 1
            logger.warning(f"Could not rebuild owner details for survey {survey.id}")
            click.echo(f"  Survey {survey.id}: owner details could not be parsed, skipped")
            continue

        masked = mask_owner_details(owners)
        if not fragmented and masked == owners:
            continue

        repaired += 1
        click.echo(f"  Survey {survey.id}: {len(masked)} owner(s)"
                   f"{' rebuilt from fragments' if fragmented else ' masked'}")
        if dry_run:
            continue
        if len(masked) > len(Survey.owner_columns('details')):
            logger.warning(f"Survey {survey.id} has {len(masked)} owners; extra owners are dropped")
        survey.fill_slots(Survey.owner_columns('details'), serialize_owner_slots(masked))

    if not dry_run and repaired:
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.error("Failed to save repaired owner details", exc_info=True)
            raise

    logger.info(f"Owner details repair finished: {repaired} changed, {unrecoverable} unrecoverable")
    verb = 'Would update' if dry_run else 'Updated'
    click.echo(f"{verb} {repaired} of {len(surveys)} surveys")
    if unrecoverable:
        click.echo(f"{unrecoverable} surveys could not be repaired")


def _legacy_url(value, base_url):
    if not value or value.startswith('http'):
        return value
    return f"{base_url}/uploads/{value}"


@click.command('rewrite-legacy-urls')
@click.option('--base-url', envvar='CLOUD_STORAGE_PUBLIC_URL', required=True,
              help='Public bucket URL, e.g. https://storage.googleapis.com/<bucket>')
@with_appcontext
def rewrite_legacy_urls_command(base_url):
    """Point bare filenames from local uploads at the bucket's uploads/ folder."""
    base_url = base_url.rstrip('/')
    logger.info(f"Rewriting legacy file references under {base_url}/uploads/")
    updated = 0

    for survey in Survey.query.order_by(Survey.id).all():
        changed = False
        images = split_csv(survey.images)
        rewritten = [_legacy_url(image, base_url) for image in images]
        if rewritten != images:
            survey.images = ','.join(rewritten)
            changed = True

        for column in Survey.owner_columns('image'):
            value = (getattr(survey, column) or '').strip()
            new_value = _legacy_url(value, base_url)
            if new_value != value:
                setattr(survey, column, new_value)
                changed = True

        if changed:
            updated += 1
            logger.debug(f"Rewrote file references of survey {survey.id}")

    if updated:
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.error("Failed to save rewritten file references", exc_info=True)
            raise

    logger.info(f"Rewrote file references of {updated} surveys")
    click.echo(f"Updated {updated} surveys")


@click.command('migrate-uploads')
@click.option('--directory', type=click.Path(file_okay=False, path_type=Path),
              help='Local uploads directory (defaults to LEGACY_UPLOADS_DIR)')
@with_appcontext
def migrate_uploads_command(directory):
    """Copy every file of the local uploads directory into the bucket."""
    directory = directory or Path(current_app.config['LEGACY_UPLOADS_DIR'])
    if not directory.is_dir():
        raise click.ClickException(f"Uploads directory not found: {directory}")

    files = sorted(path for path in directory.iterdir() if path.is_file())
    logger.info(f"Migrating {len(files)} files from {directory}")
    storage = get_cloud_storage()
    failed = []

    for path in files:
        try:
            url = storage.upload_path(path, folder='uploads')
        except Exception as e:
            logger.error(f"Failed to migrate {path.name}: {e}", exc_info=True)
            click.echo(f"  Failed: {path.name}: {e}")
            failed.append(path.name)
            continue
        click.echo(f"  Uploaded: {path.name} -> {url}")

    click.echo(f"Migrated {len(files) - len(failed)} of {len(files)} files")
    if failed:
        raise click.ClickException(f"{len(failed)} files failed to upload")


@click.command('check-timestamps')
@click.option('--limit', default=5, show_default=True, help='Number of recent surveys to show')
@with_appcontext
def check_timestamps_command(limit):
    """Show the newest surveys with their age according to the server clock."""
    current = now()
    # Stored values are naive IST wall-clock times
    current_naive = current.replace(tzinfo=None)
    click.echo(f"Server time: {current.isoformat()}")

    surveys = Survey.query.order_by(Survey.created_at.desc(), Survey.id.desc()).limit(limit).all()
    if not surveys:
        click.echo("No surveys found")
        return

    for survey in surveys:
        created = survey.created_at
        if created is None:
            click.echo(f"  Survey {survey.id}: no creation time")
            continue
        if created.tzinfo is not None:
            created = created.astimezone(current.tzinfo).replace(tzinfo=None)
        hours = (current_naive - created).total_seconds() / 3600
        click.echo(f"  Survey {survey.id} ({survey.name}): created {created.isoformat()}, "
                   f"{hours:.2f} hours ago")
