"""Admin registration token routes."""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from . import schemas, tokens
from .auth import get_session
from .core import get_settings

router = APIRouter(prefix="/admin/tokens", tags=["admin tokens"])


def registration_url(token: str) -> str:
    return f"{get_settings().BASE_URL}/admin/register?token={token}"


@router.post("/", response_model=schemas.AdminTokenIssued, status_code=201)
def issue_token(payload: schemas.AdminTokenCreate, db: Session = Depends(get_session)):
    """
    Issue a single-use admin registration token (admin only).

    Args:
        payload (AdminTokenCreate): Optional email binding and lifetime.
        db (Session): Database session bound to the caller.

    Returns:
        AdminTokenIssued: The token string and its registration link.
    """
    row = tokens.issue(db, email=payload.email, ttl_days=payload.expires_in_days)
    return schemas.AdminTokenIssued(
        id=row.id,
        token=row.token,
        email=row.email,
        expires_at=row.expires_at,
        registration_url=registration_url(row.token),
    )


@router.get("/", response_model=List[schemas.AdminTokenOut])
def list_tokens(db: Session = Depends(get_session)):
    """All tokens with their status; empty for non-admins."""
    rows = tokens.list_tokens(db)
    return [
        schemas.AdminTokenOut(
            id=row.id,
            token=row.token,
            email=row.email,
            created_by_user_id=row.created_by_user_id,
            used_by_user_id=row.used_by_user_id,
            created_at=row.created_at,
            used_at=row.used_at,
            expires_at=row.expires_at,
            status=tokens.token_status(row),
        )
        for row in rows
    ]


@router.get("/lookup", response_model=schemas.AdminTokenLookup)
def lookup_token(token: str = Query(...), db: Session = Depends(get_session)):
    """
    Show the email bound to a token and whether it can still be used.

    Only available when public token lookup is enabled.
    """
    found = tokens.lookup_for_display(db, token)
    if found is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Token not found")
    return schemas.AdminTokenLookup(**found)


@router.post("/cleanup", response_model=schemas.CleanupResult)
def cleanup_tokens(db: Session = Depends(get_session)):
    """Delete expired, unused tokens (admin only)."""
    return schemas.CleanupResult(deleted=tokens.cleanup_expired(db))


@router.delete("/{token_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_token(token_id: uuid.UUID, db: Session = Depends(get_session)):
    tokens.delete_token(db, token_id)
    return None
