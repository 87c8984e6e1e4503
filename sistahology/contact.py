"""Contact form routes.

Anyone may submit the form; only admins can read submissions or change
their status. Submissions are never deleted, so there is no delete route.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import get_session
from .core import get_settings

router = APIRouter(prefix="/contact", tags=["contact"])
settings = get_settings()

_submission_limiter = RateLimiter(
    times=settings.CONTACT_RATE_LIMIT_TIMES,
    seconds=settings.CONTACT_RATE_LIMIT_SECONDS,
)


async def contact_rate_limit(request: Request, response: Response):
    """Apply the submission rate limit once the limiter has a backend."""
    if FastAPILimiter.redis is None:
        return
    await _submission_limiter(request, response)


@router.post(
    "/",
    response_model=schemas.ContactSubmissionReceipt,
    status_code=201,
    dependencies=[Depends(contact_rate_limit)],
)
def submit_contact_form(
    submission_in: schemas.ContactSubmissionCreate, db: Session = Depends(get_session)
):
    """
    Store a contact form submission.

    Args:
        submission_in (ContactSubmissionCreate): Form data.
        db (Session): Database session bound to the caller (often anonymous).

    Returns:
        ContactSubmissionReceipt: Id, status and submission time.
    """
    return crud.create_contact_submission(db, submission_in)


@router.get("/", response_model=List[schemas.ContactSubmissionOut])
def list_submissions(
    status_filter: str | None = Query(None, alias="status"),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_session),
):
    """Submissions, newest first; empty for non-admins."""
    return crud.get_contact_submissions(db, status=status_filter, skip=skip, limit=limit)


@router.patch("/{submission_id}", response_model=schemas.ContactSubmissionOut)
def update_submission_status(
    submission_id: uuid.UUID,
    payload: schemas.ContactStatusUpdate,
    db: Session = Depends(get_session),
):
    """
    Change the status of a submission (admin only).

    Raises:
        HTTPException: If the submission is not found.
    """
    submission = crud.get_contact_submission(db, submission_id)
    if submission is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
    return crud.update_contact_status(db, submission, payload.status)
