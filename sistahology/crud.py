"""CRUD operations for accounts, journals, entries and site content.

Functions here never check permissions themselves. Every query runs
through the session's row filter and every write through the session's
flush checks, so a denied read comes back empty (and surfaces as
``NotFound``) and a denied write raises ``Forbidden``.
"""

import uuid

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import Conflict, NotFound, ValidationFailed
from .guard import acting_as, current_principal
from .policy import SERVICE, Principal
from .sections import validate_section_content


def _apply_changes(db: Session, row, changes: dict):
    for key, value in changes.items():
        setattr(row, key, value)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _delete(db: Session, row) -> None:
    db.delete(row)
    db.commit()


def _first(db: Session, stmt):
    return db.scalars(stmt).first()


def _reject_nulls(changes: dict, fields) -> None:
    for name in fields:
        if name in changes and changes[name] is None:
            raise ValidationFailed(name, "cannot be empty")


# Accounts and profiles


def get_account_by_email(db: Session, email: str) -> models.Account | None:
    """
    Retrieve an account by email address (case-insensitive).

    Args:
        db (Session): Database session.
        email (str): Account email.

    Returns:
        Account | None: Account if found, otherwise ``None``.
    """
    return _first(
        db, select(models.Account).where(models.Account.email == email.lower())
    )


def get_account(db: Session, account_id: uuid.UUID) -> models.Account | None:
    return _first(db, select(models.Account).where(models.Account.id == account_id))


def create_account(
    db: Session, email: str, hashed_password: str, full_name: str | None = None
) -> models.Profile:
    """
    Register an account and its profile.

    The account row is written by the service actor; the profile is then
    created by the new principal itself, so it passes the same checks as
    any self-insert and always starts without the admin flag.

    Args:
        db (Session): Database session.
        email (str): Login email.
        hashed_password (str): Securely hashed password.
        full_name (str | None): Optional display name.

    Raises:
        Conflict: If an account with the same email already exists.

    Returns:
        Profile: Newly created profile.
    """
    email = email.lower()
    if get_account_by_email(db, email):
        raise Conflict("User already exists")

    account = models.Account(email=email, hashed_password=hashed_password)
    with acting_as(db, SERVICE):
        db.add(account)
        db.flush()

    with acting_as(db, Principal(id=account.id)):
        profile = models.Profile(id=account.id, email=email, full_name=full_name)
        db.add(profile)
        db.commit()
    db.refresh(profile)
    return profile


def update_account_password(
    db: Session, account: models.Account, hashed_password: str
) -> models.Account:
    """
    Replace the stored password hash of an account.

    Args:
        db (Session): Database session.
        account (Account): Target account.
        hashed_password (str): New hashed password.

    Returns:
        Account: Updated account.
    """
    with acting_as(db, SERVICE):
        return _apply_changes(db, account, {"hashed_password": hashed_password})


def delete_account(db: Session, account_id: uuid.UUID) -> None:
    """
    Delete an account together with its profile, journals and entries.

    Rows are removed by the database cascade. The caller must first prove
    it can see the profile (see :func:`get_profile`).
    """
    with acting_as(db, SERVICE):
        db.execute(
            delete(models.Account)
            .where(models.Account.id == account_id)
            .execution_options(synchronize_session=False)
        )
        db.commit()


def get_profile(db: Session, profile_id: uuid.UUID) -> models.Profile | None:
    """Return the profile if it is visible to the session's principal."""
    return _first(db, select(models.Profile).where(models.Profile.id == profile_id))


def update_profile(db: Session, profile: models.Profile, changes: dict) -> models.Profile:
    """
    Update profile fields.

    A change of ``is_admin`` is rejected by the session unless the
    principal is the service actor.

    Args:
        db (Session): Database session.
        profile (Profile): Profile to update.
        changes (dict): Fields to update.

    Raises:
        PrivilegeEscalationError: If an ordinary principal changes the admin flag.

    Returns:
        Profile: Updated profile.
    """
    return _apply_changes(db, profile, changes)


def set_admin_flag(db: Session, profile_id: uuid.UUID, is_admin: bool) -> models.Profile:
    """
    Grant or revoke the admin flag as the service actor.

    Raises:
        NotFound: If no profile has the given id.
    """
    with acting_as(db, SERVICE):
        profile = get_profile(db, profile_id)
        if profile is None:
            raise NotFound("Profile not found")
        return _apply_changes(db, profile, {"is_admin": is_admin})


# Journals


def create_journal(db: Session, journal_in: schemas.JournalCreate) -> models.Journal:
    """
    Create a journal owned by the session's principal.

    Args:
        db (Session): Database session.
        journal_in (JournalCreate): Journal data.

    Returns:
        Journal: Newly created journal.
    """
    owner = current_principal(db)
    journal = models.Journal(**journal_in.model_dump(), user_id=owner.id)
    db.add(journal)
    db.commit()
    db.refresh(journal)
    return journal


def get_journal(db: Session, journal_id: uuid.UUID) -> models.Journal | None:
    return _first(db, select(models.Journal).where(models.Journal.id == journal_id))


def get_journals(db: Session, skip: int = 0, limit: int = 100) -> list[models.Journal]:
    """
    Retrieve journals visible to the session's principal.

    Args:
        db (Session): Database session.
        skip (int): Number of records to skip.
        limit (int): Maximum number of records to return.

    Returns:
        list[Journal]: Journals ordered by creation time.
    """
    stmt = (
        select(models.Journal)
        .order_by(models.Journal.created_at)
        .offset(skip)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def update_journal(db: Session, journal: models.Journal, changes: dict) -> models.Journal:
    _reject_nulls(changes, ("journal_name", "color"))
    return _apply_changes(db, journal, changes)


def delete_journal(db: Session, journal: models.Journal) -> None:
    """Delete a journal; its entries go with it."""
    _delete(db, journal)


# Entries


def create_entry(
    db: Session, journal_id: uuid.UUID, entry_in: schemas.EntryCreate
) -> models.Entry:
    """
    Write a new entry into a journal.

    Args:
        db (Session): Database session.
        journal_id (uuid.UUID): Target journal.
        entry_in (EntryCreate): Entry data.

    Raises:
        NotFound: If the journal is not visible to the principal.

    Returns:
        Entry: Newly created entry.
    """
    journal = get_journal(db, journal_id)
    if journal is None:
        raise NotFound("Journal not found")
    entry = models.Entry(
        **entry_in.model_dump(),
        journal_id=journal.id,
        user_id=current_principal(db).id,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def get_entry(db: Session, entry_id: uuid.UUID) -> models.Entry | None:
    return _first(db, select(models.Entry).where(models.Entry.id == entry_id))


def update_entry(db: Session, entry: models.Entry, changes: dict) -> models.Entry:
    """
    Update an entry, optionally moving it to another journal.

    Args:
        db (Session): Database session.
        entry (Entry): Entry to update.
        changes (dict): Fields to update; ``journal_id`` moves the entry.

    Raises:
        NotFound: If the target journal is not visible to the principal.

    Returns:
        Entry: Updated entry.
    """
    target = changes.get("journal_id")
    if target is not None and get_journal(db, target) is None:
        raise NotFound("Journal not found")
    _reject_nulls(changes, ("content", "entry_date", "is_archived", "journal_id"))
    return _apply_changes(db, entry, changes)


def search_entries(
    db: Session,
    q: str | None = None,
    mood: str | None = None,
    journal_id: uuid.UUID | None = None,
    include_trashed: bool = False,
    include_archived: bool = False,
    skip: int = 0,
    limit: int = 100,
) -> list[models.Entry]:
    """
    Search entries visible to the session's principal.

    Supports optional case-insensitive search in title and content.

    Args:
        db (Session): Database session.
        q (str | None): Optional search query.
        mood (str | None): Only entries with this mood.
        journal_id (uuid.UUID | None): Only entries of this journal.
        include_trashed (bool): Include entries in the trash.
        include_archived (bool): Include archived entries.
        skip (int): Number of records to skip.
        limit (int): Maximum number of records to return.

    Returns:
        list[Entry]: Matching entries, newest first.
    """
    stmt = select(models.Entry)
    if not include_trashed:
        stmt = stmt.where(models.Entry.deleted_at.is_(None))
    if not include_archived:
        stmt = stmt.where(models.Entry.is_archived.is_(False))
    if q:
        like_q = f"%{q}%"
        stmt = stmt.where(
            or_(models.Entry.title.ilike(like_q), models.Entry.content.ilike(like_q))
        )
    if mood:
        stmt = stmt.where(models.Entry.mood == mood)
    if journal_id:
        stmt = stmt.where(models.Entry.journal_id == journal_id)
    stmt = (
        stmt.order_by(models.Entry.entry_date.desc(), models.Entry.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


# Pages


def get_pages(db: Session) -> list[models.Page]:
    return list(db.scalars(select(models.Page).order_by(models.Page.slug)).all())


def get_page(db: Session, slug: str) -> models.Page | None:
    return _first(db, select(models.Page).where(models.Page.slug == slug))


def create_page(db: Session, page_in: schemas.PageCreate) -> models.Page:
    """
    Create a page.

    Raises:
        Conflict: If a page with the same slug already exists.
    """
    if get_page(db, page_in.slug):
        raise Conflict("Page already exists")
    page = models.Page(**page_in.model_dump())
    db.add(page)
    db.commit()
    db.refresh(page)
    return page


def update_page(db: Session, page: models.Page, changes: dict) -> models.Page:
    _reject_nulls(changes, ("title", "is_active"))
    return _apply_changes(db, page, changes)


def delete_page(db: Session, page: models.Page) -> None:
    _delete(db, page)


# Site sections


def get_sections(db: Session, page_slug: str | None = None) -> list[models.SiteSection]:
    """
    Retrieve site sections, optionally for one page.

    Args:
        db (Session): Database session.
        page_slug (str | None): Only sections of this page.

    Returns:
        list[SiteSection]: Sections in display order.
    """
    stmt = select(models.SiteSection)
    if page_slug:
        stmt = stmt.where(models.SiteSection.page_slug == page_slug)
    stmt = stmt.order_by(
        models.SiteSection.page_slug, models.SiteSection.display_order
    )
    return list(db.scalars(stmt).all())


def get_section(
    db: Session, page_slug: str, section_key: str
) -> models.SiteSection | None:
    return _first(
        db,
        select(models.SiteSection).where(
            models.SiteSection.page_slug == page_slug,
            models.SiteSection.section_key == section_key,
        ),
    )


def create_section(
    db: Session, section_in: schemas.SiteSectionCreate
) -> models.SiteSection:
    """
    Create a site section.

    Raises:
        Conflict: If the page already has a section with this key.
    """
    if get_section(db, section_in.page_slug, section_in.section_key):
        raise Conflict("Section already exists")
    section = models.SiteSection(**section_in.model_dump())
    db.add(section)
    db.commit()
    db.refresh(section)
    return section


def update_section(
    db: Session, section: models.SiteSection, changes: dict
) -> models.SiteSection:
    """
    Update a site section.

    A new ``content_json`` is validated against the payload type of the
    section's key.

    Raises:
        pydantic.ValidationError: If the payload does not match its type.
    """
    _reject_nulls(changes, ("section_title", "content_json", "display_order", "is_active"))
    if "content_json" in changes:
        changes["content_json"] = validate_section_content(
            section.section_key, changes["content_json"]
        )
    return _apply_changes(db, section, changes)


def delete_section(db: Session, section: models.SiteSection) -> None:
    _delete(db, section)


# Blog posts


def get_blog_posts(db: Session, skip: int = 0, limit: int = 50) -> list[models.BlogPost]:
    stmt = (
        select(models.BlogPost)
        .order_by(
            models.BlogPost.published_at.desc().nulls_last(),
            models.BlogPost.created_at.desc(),
        )
        .offset(skip)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def get_blog_post(db: Session, slug: str) -> models.BlogPost | None:
    return _first(db, select(models.BlogPost).where(models.BlogPost.slug == slug))


def create_blog_post(db: Session, post_in: schemas.BlogPostCreate) -> models.BlogPost:
    """
    Create a blog post.

    Publishing without a date stamps the post with the current time.

    Raises:
        Conflict: If a post with the same slug already exists.
    """
    if get_blog_post(db, post_in.slug):
        raise Conflict("Blog post already exists")
    data = post_in.model_dump()
    if data["status"] == "published" and data["published_at"] is None:
        data["published_at"] = models.utcnow()
    post = models.BlogPost(**data)
    db.add(post)
    db.commit()
    db.refresh(post)
    return post


def update_blog_post(db: Session, post: models.BlogPost, changes: dict) -> models.BlogPost:
    _reject_nulls(changes, ("title", "content_html", "author", "status"))
    if changes.get("status") == "published" and post.published_at is None:
        changes.setdefault("published_at", models.utcnow())
    return _apply_changes(db, post, changes)


def delete_blog_post(db: Session, post: models.BlogPost) -> None:
    _delete(db, post)


# Writing prompts


def get_writing_prompts(
    db: Session, category: str | None = None
) -> list[models.WritingPrompt]:
    stmt = select(models.WritingPrompt)
    if category:
        stmt = stmt.where(models.WritingPrompt.category == category)
    stmt = stmt.order_by(models.WritingPrompt.category, models.WritingPrompt.created_at)
    return list(db.scalars(stmt).all())


def get_writing_prompt(
    db: Session, prompt_id: uuid.UUID
) -> models.WritingPrompt | None:
    return _first(
        db, select(models.WritingPrompt).where(models.WritingPrompt.id == prompt_id)
    )


def create_writing_prompt(
    db: Session, prompt_in: schemas.WritingPromptCreate
) -> models.WritingPrompt:
    prompt = models.WritingPrompt(**prompt_in.model_dump())
    db.add(prompt)
    db.commit()
    db.refresh(prompt)
    return prompt


def update_writing_prompt(
    db: Session, prompt: models.WritingPrompt, changes: dict
) -> models.WritingPrompt:
    _reject_nulls(changes, ("prompt_text", "is_active"))
    return _apply_changes(db, prompt, changes)


def delete_writing_prompt(db: Session, prompt: models.WritingPrompt) -> None:
    _delete(db, prompt)


# Contact submissions


def create_contact_submission(
    db: Session, submission_in: schemas.ContactSubmissionCreate
) -> schemas.ContactSubmissionReceipt:
    """
    Store a contact form submission.

    Anonymous callers cannot read the row back, so the receipt is built
    right after the insert, before the transaction ends.

    Args:
        db (Session): Database session, any principal.
        submission_in (ContactSubmissionCreate): Form data.

    Returns:
        ContactSubmissionReceipt: Id, status and submission time.
    """
    submission = models.ContactSubmission(**submission_in.model_dump())
    db.add(submission)
    db.flush()
    receipt = schemas.ContactSubmissionReceipt(
        id=submission.id,
        status=submission.status,
        submitted_at=submission.submitted_at,
    )
    db.commit()
    return receipt


def get_contact_submissions(
    db: Session, status: str | None = None, skip: int = 0, limit: int = 100
) -> list[models.ContactSubmission]:
    """
    Retrieve contact submissions visible to the session's principal.

    Args:
        db (Session): Database session.
        status (str | None): Only submissions with this status.
        skip (int): Number of records to skip.
        limit (int): Maximum number of records to return.

    Returns:
        list[ContactSubmission]: Submissions, newest first.
    """
    stmt = select(models.ContactSubmission)
    if status:
        stmt = stmt.where(models.ContactSubmission.status == status)
    stmt = (
        stmt.order_by(models.ContactSubmission.submitted_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def get_contact_submission(
    db: Session, submission_id: uuid.UUID
) -> models.ContactSubmission | None:
    return _first(
        db,
        select(models.ContactSubmission).where(
            models.ContactSubmission.id == submission_id
        ),
    )


def update_contact_status(
    db: Session, submission: models.ContactSubmission, status: str
) -> models.ContactSubmission:
    return _apply_changes(db, submission, {"status": status})
