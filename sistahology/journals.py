"""Journal and entry routes."""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from . import crud, schemas, trash
from .auth import get_session, require_user
from .schemas import Mood

router = APIRouter(
    prefix="/journals", tags=["journals"], dependencies=[Depends(require_user)]
)
entries_router = APIRouter(
    prefix="/entries", tags=["entries"], dependencies=[Depends(require_user)]
)


def _journal_or_404(db: Session, journal_id: uuid.UUID):
    journal = crud.get_journal(db, journal_id)
    if journal is None:
        raise HTTPException(status_code=404, detail="Journal not found")
    return journal


def _entry_or_404(db: Session, entry_id: uuid.UUID):
    entry = crud.get_entry(db, entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Entry not found")
    return entry


@router.post("/", response_model=schemas.JournalOut, status_code=201)
def create_journal(journal_in: schemas.JournalCreate, db: Session = Depends(get_session)):
    """
    Create a new journal owned by the current user.

    Args:
        journal_in (JournalCreate): Journal input data.
        db (Session): Database session bound to the caller.

    Returns:
        JournalOut: Created journal.
    """
    return crud.create_journal(db, journal_in)


@router.get("/", response_model=List[schemas.JournalOut])
def list_journals(skip: int = 0, limit: int = 100, db: Session = Depends(get_session)):
    """Retrieve the journals of the current user."""
    return crud.get_journals(db, skip=skip, limit=limit)


@router.get("/{journal_id}", response_model=schemas.JournalOut)
def get_journal(journal_id: uuid.UUID, db: Session = Depends(get_session)):
    """
    Retrieve a single journal.

    Raises:
        HTTPException: If the journal is not found (or belongs to someone else).
    """
    return _journal_or_404(db, journal_id)


@router.patch("/{journal_id}", response_model=schemas.JournalOut)
def update_journal(
    journal_id: uuid.UUID,
    journal_in: schemas.JournalUpdate,
    db: Session = Depends(get_session),
):
    """Update name, color or icon of a journal."""
    journal = _journal_or_404(db, journal_id)
    return crud.update_journal(db, journal, journal_in.model_dump(exclude_unset=True))


@router.delete("/{journal_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_journal(journal_id: uuid.UUID, db: Session = Depends(get_session)):
    """Delete a journal together with all of its entries."""
    journal = _journal_or_404(db, journal_id)
    crud.delete_journal(db, journal)
    return None


@router.get("/{journal_id}/entries", response_model=List[schemas.EntryOut])
def list_journal_entries(
    journal_id: uuid.UUID,
    include_archived: bool = False,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_session),
):
    """Active (not trashed) entries of a journal; archived ones only on request."""
    _journal_or_404(db, journal_id)
    return trash.list_active(
        db, journal_id, include_archived=include_archived, skip=skip, limit=limit
    )


@router.post("/{journal_id}/entries", response_model=schemas.EntryOut, status_code=201)
def create_entry(
    journal_id: uuid.UUID,
    entry_in: schemas.EntryCreate,
    db: Session = Depends(get_session),
):
    """
    Write a new entry into one of the current user's journals.

    Args:
        journal_id (uuid.UUID): Target journal.
        entry_in (EntryCreate): Entry data.
        db (Session): Database session bound to the caller.

    Returns:
        EntryOut: Created entry.
    """
    return crud.create_entry(db, journal_id, entry_in)


@entries_router.get("/search", response_model=List[schemas.EntryOut])
def search_entries(
    q: str | None = Query(None),
    mood: Mood | None = Query(None),
    journal_id: uuid.UUID | None = Query(None),
    include_trashed: bool = False,
    include_archived: bool = False,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_session),
):
    """
    Search the current user's entries.

    Supports optional text search in title and content and a mood filter.
    """
    return crud.search_entries(
        db,
        q=q,
        mood=mood,
        journal_id=journal_id,
        include_trashed=include_trashed,
        include_archived=include_archived,
        skip=skip,
        limit=limit,
    )


@entries_router.get("/trash", response_model=List[schemas.EntryOut])
def list_trash(skip: int = 0, limit: int = 100, db: Session = Depends(get_session)):
    """Entries in the current user's trash."""
    return trash.list_trashed(db, skip=skip, limit=limit)


@entries_router.post("/trash", response_model=List[schemas.EntryOut])
def trash_entries(body: schemas.EntryIds, db: Session = Depends(get_session)):
    """Move several entries to the trash; ids the caller cannot see are skipped."""
    return trash.soft_delete_many(db, body.entry_ids)


@entries_router.post("/restore", response_model=List[schemas.EntryOut])
def restore_entries(body: schemas.EntryIds, db: Session = Depends(get_session)):
    """Restore several trashed entries and return the ones brought back."""
    return trash.restore_many(db, body.entry_ids)


@entries_router.get("/{entry_id}", response_model=schemas.EntryOut)
def get_entry(entry_id: uuid.UUID, db: Session = Depends(get_session)):
    return _entry_or_404(db, entry_id)


@entries_router.patch("/{entry_id}", response_model=schemas.EntryOut)
def update_entry(
    entry_id: uuid.UUID,
    entry_in: schemas.EntryUpdate,
    db: Session = Depends(get_session),
):
    """Edit an entry or move it to another of the user's journals."""
    entry = _entry_or_404(db, entry_id)
    return crud.update_entry(db, entry, entry_in.model_dump(exclude_unset=True))


@entries_router.delete("/{entry_id}", response_model=schemas.EntryOut)
def trash_entry(entry_id: uuid.UUID, db: Session = Depends(get_session)):
    """Move an entry to the trash."""
    return trash.soft_delete(db, entry_id)


@entries_router.post("/{entry_id}/restore", response_model=schemas.EntryOut)
def restore_entry(entry_id: uuid.UUID, db: Session = Depends(get_session)):
    """Restore an entry from the trash; 409 if it is not trashed."""
    return trash.restore(db, entry_id)


@entries_router.delete("/{entry_id}/purge", status_code=status.HTTP_204_NO_CONTENT)
def purge_entry(entry_id: uuid.UUID, db: Session = Depends(get_session)):
    """Delete a trashed entry permanently; 409 if it is still active."""
    trash.purge(db, entry_id)
    return None
