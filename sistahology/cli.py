"""Maintenance commands for Sistahology.

Every command opens its own session and acts as the service actor, the
same identity a scheduled job or an operator's script would use.
"""

import logging
import uuid
from contextlib import contextmanager

import click

from . import crud, models, seed, tokens, trash
from .core import get_settings
from .database import SessionLocal, engine
from .errors import NotFound
from .guard import bind_principal
from .policy import SERVICE


@contextmanager
def service_session():
    db = bind_principal(SessionLocal(), SERVICE)
    try:
        yield db
    finally:
        db.close()


def _resolve_profile_id(db, who: str) -> uuid.UUID:
    try:
        return uuid.UUID(who)
    except ValueError:
        account = crud.get_account_by_email(db, who)
        if account is None:
            raise click.ClickException(f"No account for {who}")
        return account.id


def _set_admin(db, who: str, is_admin: bool):
    try:
        return crud.set_admin_flag(db, _resolve_profile_id(db, who), is_admin)
    except NotFound:
        raise click.ClickException(f"No profile for {who}")


@click.group()
@click.option("--verbose", is_flag=True, default=False, help="Log at DEBUG level")
def main(verbose):
    """Sistahology maintenance utilities"""
    level = logging.DEBUG if verbose else getattr(logging, get_settings().LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")


@main.command("init-db")
def init_db():
    """Create all tables."""
    models.Base.metadata.create_all(bind=engine)
    click.echo("Tables created.")


@main.command("seed")
def seed_content():
    """Load the initial pages, sections, blog posts and writing prompts."""
    with service_session() as db:
        inserted = seed.seed_all(db)
    for table, count in inserted.items():
        click.echo(f"{table}: {count} inserted")


@main.command("grant-admin")
@click.argument("who")
def grant_admin(who):
    """Give the admin flag to WHO (account email or profile id)."""
    with service_session() as db:
        profile = _set_admin(db, who, True)
        click.echo(f"{profile.email} is now an admin.")


@main.command("revoke-admin")
@click.argument("who")
def revoke_admin(who):
    """Remove the admin flag from WHO (account email or profile id)."""
    with service_session() as db:
        profile = _set_admin(db, who, False)
        click.echo(f"{profile.email} is no longer an admin.")


@main.command("issue-token")
@click.option("--email", default=None, help="Reserve the token for this email")
@click.option("--days", default=None, type=click.IntRange(min=1), help="Lifetime in days")
def issue_token(email, days):
    """Issue an admin registration token and print its registration link."""
    with service_session() as db:
        row = tokens.issue(db, email=email, ttl_days=days)
        click.echo(f"Token:   {row.token}")
        click.echo(f"Expires: {row.expires_at.isoformat()}")
        click.echo(f"Link:    {get_settings().BASE_URL}/admin/register?token={row.token}")


@main.command("cleanup-tokens")
def cleanup_tokens():
    """Delete expired admin tokens that were never used."""
    with service_session() as db:
        deleted = tokens.cleanup_expired(db)
    click.echo(f"Deleted {deleted} expired tokens.")


@main.command("purge-trash")
@click.option("--days", default=None, type=click.IntRange(min=0), help="Retention in days (default TRASH_RETENTION_DAYS)")
@click.option("--dry-run", is_flag=True, default=False, help="Only count the entries")
def purge_trash(days, dry_run):
    """Permanently delete entries that have been in the trash too long."""
    days = days if days is not None else get_settings().TRASH_RETENTION_DAYS
    with service_session() as db:
        if dry_run:
            count = len(trash.list_expired_trash(db, days))
            click.echo(f"{count} entries older than {days} days would be purged.")
            return
        purged = trash.purge_expired_trash(db, days)
    click.echo(f"Purged {purged} entries older than {days} days.")


if __name__ == "__main__":
    main()
