"""Profile routes: the caller's own profile, and updates by id."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import get_principal, get_session, require_user
from .policy import Principal

router = APIRouter(prefix="/profiles", tags=["profiles"])


def _load_profile(db: Session, profile_id: uuid.UUID):
    profile = crud.get_profile(db, profile_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


@router.get("/me", response_model=schemas.ProfileOut)
def read_me(
    principal: Principal = Depends(require_user), db: Session = Depends(get_session)
):
    """
    Retrieve the profile of the authenticated account.

    Args:
        principal (Principal): Authenticated caller.
        db (Session): Database session bound to the caller.

    Returns:
        ProfileOut: Profile information.
    """
    return _load_profile(db, principal.id)


@router.patch("/me", response_model=schemas.ProfileOut)
def update_me(
    payload: schemas.ProfileUpdate,
    principal: Principal = Depends(require_user),
    db: Session = Depends(get_session),
):
    """
    Update the profile of the authenticated account.

    Sending a different ``is_admin`` value is rejected with 403.
    """
    profile = _load_profile(db, principal.id)
    return crud.update_profile(db, profile, payload.model_dump(exclude_unset=True))


@router.patch("/{profile_id}", response_model=schemas.ProfileOut)
def update_profile(
    profile_id: uuid.UUID,
    payload: schemas.ProfileUpdate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_session),
):
    """
    Update a profile by id.

    Ordinary accounts only see (and so only update) their own profile and
    can never change ``is_admin``. The service actor may update any
    profile, including the admin flag.

    Args:
        profile_id (uuid.UUID): Profile identifier.
        payload (ProfileUpdate): Fields to change.
        principal (Principal): Caller.
        db (Session): Database session bound to the caller.

    Raises:
        HTTPException: 401 for anonymous callers, 404 if the profile is
            not visible.

    Returns:
        ProfileOut: Updated profile.
    """
    if principal.is_anonymous:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    profile = _load_profile(db, profile_id)
    return crud.update_profile(db, profile, payload.model_dump(exclude_unset=True))


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(
    principal: Principal = Depends(require_user), db: Session = Depends(get_session)
):
    """Delete the authenticated account with all of its journals and entries."""
    _load_profile(db, principal.id)
    crud.delete_account(db, principal.id)
    return None
