"""Soft-delete lifecycle for journal entries.

An entry is active while ``deleted_at`` is NULL and trashed once it is
set. Trashed entries can be restored or purged; active entries can never
be hard-deleted directly.
"""

import logging
import uuid
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from . import models
from .errors import EntryStateError, NotFound

logger = logging.getLogger(__name__)


def _get_entry(db: Session, entry_id: uuid.UUID) -> models.Entry:
    entry = db.scalars(
        select(models.Entry).where(models.Entry.id == entry_id)
    ).first()
    if entry is None:
        raise NotFound("Entry not found")
    return entry


def _get_entries(db: Session, entry_ids: list[uuid.UUID]) -> list[models.Entry]:
    if not entry_ids:
        return []
    return list(
        db.scalars(select(models.Entry).where(models.Entry.id.in_(set(entry_ids)))).all()
    )


def soft_delete(db: Session, entry_id: uuid.UUID) -> models.Entry:
    """
    Move an entry to the trash.

    Trashing an entry that is already in the trash keeps its original
    ``deleted_at``.

    Args:
        db (Session): Database session bound to the entry owner.
        entry_id (uuid.UUID): Entry identifier.

    Raises:
        NotFound: If the entry is not visible to the principal.

    Returns:
        Entry: The trashed entry.
    """
    entry = _get_entry(db, entry_id)
    if entry.deleted_at is None:
        entry.deleted_at = models.utcnow()
        db.commit()
        db.refresh(entry)
    return entry


def restore(db: Session, entry_id: uuid.UUID) -> models.Entry:
    """
    Bring a trashed entry back.

    Raises:
        NotFound: If the entry is not visible to the principal.
        EntryStateError: If the entry is not in the trash.
    """
    entry = _get_entry(db, entry_id)
    if entry.deleted_at is None:
        raise EntryStateError("Entry is not in the trash")
    entry.deleted_at = None
    db.commit()
    db.refresh(entry)
    return entry


def soft_delete_many(db: Session, entry_ids: list[uuid.UUID]) -> list[models.Entry]:
    """
    Move several entries to the trash at once.

    Ids the principal cannot see are skipped. Entries already in the trash
    keep their original ``deleted_at``.

    Returns:
        list[Entry]: The visible entries among ``entry_ids``, all trashed.
    """
    entries = _get_entries(db, entry_ids)
    now = models.utcnow()
    for entry in entries:
        if entry.deleted_at is None:
            entry.deleted_at = now
    db.commit()
    logger.info("Trashed %d of %d requested entries", len(entries), len(set(entry_ids)))
    return entries


def restore_many(db: Session, entry_ids: list[uuid.UUID]) -> list[models.Entry]:
    """
    Bring several trashed entries back.

    Ids that are not visible or not in the trash are skipped.

    Returns:
        list[Entry]: The entries that were restored.
    """
    entries = [entry for entry in _get_entries(db, entry_ids) if entry.deleted_at is not None]
    for entry in entries:
        entry.deleted_at = None
    db.commit()
    return entries


def purge(db: Session, entry_id: uuid.UUID) -> None:
    """
    Permanently delete a trashed entry.

    Raises:
        NotFound: If the entry is not visible to the principal.
        EntryStateError: If the entry is still active.
    """
    entry = _get_entry(db, entry_id)
    if entry.deleted_at is None:
        raise EntryStateError("Only entries in the trash can be deleted permanently")
    db.delete(entry)
    db.commit()
    logger.info("Purged entry %s", entry_id)


def list_active(
    db: Session,
    journal_id: uuid.UUID,
    include_archived: bool = False,
    skip: int = 0,
    limit: int = 100,
) -> list[models.Entry]:
    """Entries of a journal that are not in the trash, newest first.

    Archived entries are left out unless ``include_archived`` is set.
    """
    stmt = select(models.Entry).where(
        models.Entry.journal_id == journal_id,
        models.Entry.deleted_at.is_(None),
    )
    if not include_archived:
        stmt = stmt.where(models.Entry.is_archived.is_(False))
    stmt = (
        stmt.order_by(models.Entry.entry_date.desc(), models.Entry.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def list_trashed(db: Session, skip: int = 0, limit: int = 100) -> list[models.Entry]:
    """Trashed entries visible to the session's principal, most recent first."""
    stmt = (
        select(models.Entry)
        .where(models.Entry.deleted_at.is_not(None))
        .order_by(models.Entry.deleted_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def _expiry_cutoff(retention_days: int):
    return models.utcnow() - timedelta(days=retention_days)


def list_expired_trash(db: Session, retention_days: int) -> list[models.Entry]:
    """Trashed entries older than ``retention_days``."""
    stmt = select(models.Entry).where(
        models.Entry.deleted_at.is_not(None),
        models.Entry.deleted_at < _expiry_cutoff(retention_days),
    )
    return list(db.scalars(stmt).all())


def purge_expired_trash(db: Session, retention_days: int) -> int:
    """
    Permanently delete trashed entries older than ``retention_days``.

    Meant for a scheduled job running as the service actor; an owner's
    session only reaches its own entries.

    Args:
        db (Session): Database session.
        retention_days (int): Minimum age of the trash timestamp.

    Returns:
        int: Number of purged entries.
    """
    stmt = (
        delete(models.Entry)
        .where(
            models.Entry.deleted_at.is_not(None),
            models.Entry.deleted_at < _expiry_cutoff(retention_days),
        )
        .execution_options(synchronize_session=False)
    )
    purged = db.execute(stmt).rowcount
    db.commit()
    logger.info("Purged %d entries trashed more than %d days ago", purged, retention_days)
    return purged
