"""Row-level authorization rules.

This module is the Ownership Resolver and Policy Evaluator. Every table
the application serves has one rule deciding, for a principal and an
operation, whether a row may be read or written. The same rules exist in
two forms:

* :func:`evaluate` checks a concrete row (used on every pending write by
  :mod:`sistahology.guard`).
* :func:`row_filter` returns the equivalent SQL predicate so reads can be
  filtered in the database; a denied read is an empty result, never an
  error.

Conditions inside one rule are OR'd: an admin who also owns a row is
allowed for either reason.
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import and_, false, or_, select, true
from sqlalchemy.orm import object_session

from . import models
from .errors import Forbidden

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class EntityKind(str, Enum):
    PROFILE = "profile"
    JOURNAL = "journal"
    ENTRY = "entry"
    PAGE = "page"
    SITE_SECTION = "site_section"
    BLOG_POST = "blog_post"
    WRITING_PROMPT = "writing_prompt"
    ADMIN_TOKEN = "admin_token"
    CONTACT_SUBMISSION = "contact_submission"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class Principal:
    """The identity a request acts as.

    Attributes:
        id: Account/profile id, ``None`` for anonymous callers.
        is_admin: Admin flag read from the profile for this request.
        is_service: Trusted service actor that bypasses row rules.
    """

    id: uuid.UUID | None = None
    is_admin: bool = False
    is_service: bool = False

    @property
    def is_anonymous(self) -> bool:
        return self.id is None and not self.is_service

    @classmethod
    def from_profile(cls, profile: models.Profile) -> "Principal":
        return cls(id=profile.id, is_admin=bool(profile.is_admin))


ANONYMOUS = Principal()
SERVICE = Principal(is_service=True)


MODEL_KINDS = {
    models.Profile: EntityKind.PROFILE,
    models.Journal: EntityKind.JOURNAL,
    models.Entry: EntityKind.ENTRY,
    models.Page: EntityKind.PAGE,
    models.SiteSection: EntityKind.SITE_SECTION,
    models.BlogPost: EntityKind.BLOG_POST,
    models.WritingPrompt: EntityKind.WRITING_PROMPT,
    models.AdminRegistrationToken: EntityKind.ADMIN_TOKEN,
    models.ContactSubmission: EntityKind.CONTACT_SUBMISSION,
}
KIND_MODELS = {kind: model for model, kind in MODEL_KINDS.items()}


def kind_of(row) -> EntityKind | None:
    """Return the entity kind of a row or mapped class, if it is governed."""
    cls = row if isinstance(row, type) else type(row)
    return MODEL_KINDS.get(cls)


# Ownership resolver


def owns_journal(principal: Principal, journal: models.Journal) -> bool:
    return principal.id is not None and journal.user_id == principal.id


def journal_owner_id(entry: models.Entry) -> uuid.UUID | None:
    """Owner of the entry's parent journal as visible from its session.

    ``journal_id`` wins over a loaded ``journal`` relationship, which may
    be stale after the entry was moved.
    """
    journal = None
    if entry.journal_id is not None:
        session = object_session(entry)
        if session is not None:
            journal = session.get(models.Journal, entry.journal_id)
    else:
        journal = entry.__dict__.get("journal")
    return journal.user_id if journal is not None else None


def owns_entry(principal: Principal, entry: models.Entry, require_both: bool = False) -> bool:
    """Decide entry ownership through the direct and the journal reference.

    Reads accept either reference; writes pass ``require_both`` so a row
    can only be stored when both point at the principal.
    """
    if principal.id is None:
        return False
    direct = entry.user_id == principal.id
    transitive = journal_owner_id(entry) == principal.id
    if require_both:
        return direct and transitive
    return direct or transitive


def entry_owner_consistent(entry: models.Entry) -> bool:
    owner = journal_owner_id(entry)
    return owner is None or owner == entry.user_id


def _is_published(post: models.BlogPost) -> bool:
    return (
        post.status == "published"
        and post.published_at is not None
        and post.published_at <= models.utcnow()
    )


# Per-entity rules


def _profile_rule(principal, operation, row):
    return principal.id is not None and row.id == principal.id


def _journal_rule(principal, operation, row):
    return owns_journal(principal, row)


def _entry_rule(principal, operation, row):
    if operation in (Operation.INSERT, Operation.UPDATE):
        return owns_entry(principal, row, require_both=True)
    if operation is Operation.DELETE and row.deleted_at is None:
        return False
    return owns_entry(principal, row)


def _active_content_rule(principal, operation, row):
    if principal.is_admin:
        return True
    return operation is Operation.SELECT and bool(row.is_active)


def _blog_post_rule(principal, operation, row):
    if principal.is_admin:
        return True
    return operation is Operation.SELECT and _is_published(row)


def _admin_token_rule(principal, operation, row):
    return principal.is_admin and operation is not Operation.UPDATE


def _contact_rule(principal, operation, row):
    if operation is Operation.INSERT:
        return True
    if operation is Operation.DELETE:
        return False
    return principal.is_admin


_RULES = {
    EntityKind.PROFILE: _profile_rule,
    EntityKind.JOURNAL: _journal_rule,
    EntityKind.ENTRY: _entry_rule,
    EntityKind.PAGE: _active_content_rule,
    EntityKind.SITE_SECTION: _active_content_rule,
    EntityKind.WRITING_PROMPT: _active_content_rule,
    EntityKind.BLOG_POST: _blog_post_rule,
    EntityKind.ADMIN_TOKEN: _admin_token_rule,
    EntityKind.CONTACT_SUBMISSION: _contact_rule,
}

# Closed to every actor, including the service actor.
CLOSED_OPERATIONS = {
    (EntityKind.CONTACT_SUBMISSION, Operation.DELETE),
    (EntityKind.ADMIN_TOKEN, Operation.UPDATE),
}


def evaluate(principal: Principal, kind, operation, row) -> Decision:
    """
    Decide whether ``principal`` may perform ``operation`` on ``row``.

    Args:
        principal (Principal): Acting identity.
        kind (EntityKind | str): Entity kind of the row.
        operation (Operation | str): Requested operation.
        row: ORM instance holding the row state to check. For inserts
            and updates this is the new state.

    Returns:
        Decision: ``ALLOW`` or ``DENY``.
    """
    kind = EntityKind(kind)
    operation = Operation(operation)
    if (kind, operation) in CLOSED_OPERATIONS:
        return Decision.DENY
    if principal.is_service:
        return Decision.ALLOW
    allowed = _RULES[kind](principal, operation, row)
    return Decision.ALLOW if allowed else Decision.DENY


def authorize(principal: Principal, kind, operation, row) -> None:
    """Raise :class:`Forbidden` unless :func:`evaluate` allows the operation."""
    if evaluate(principal, kind, operation, row) is Decision.DENY:
        logger.info(
            "Denied %s on %s for principal %s",
            Operation(operation).value,
            EntityKind(kind).value,
            principal.id or "anonymous",
        )
        raise Forbidden()


def row_filter(principal: Principal, kind, operation=Operation.SELECT):
    """
    Build the SQL predicate matching rows ``principal`` may touch.

    Args:
        principal (Principal): Acting identity.
        kind (EntityKind | str): Entity kind to filter.
        operation (Operation | str): ``SELECT``, ``UPDATE`` or ``DELETE``.

    Returns:
        ColumnElement | None: Predicate, or ``None`` when no filtering applies.
    """
    kind = EntityKind(kind)
    operation = Operation(operation)
    if (kind, operation) in CLOSED_OPERATIONS:
        return false()
    if principal.is_service:
        return None

    pid = principal.id
    if kind is EntityKind.PROFILE:
        return models.Profile.id == pid if pid else false()
    if kind is EntityKind.JOURNAL:
        return models.Journal.user_id == pid if pid else false()
    if kind is EntityKind.ENTRY:
        if pid is None:
            return false()
        owned = or_(
            models.Entry.user_id == pid,
            models.Entry.journal_id.in_(
                select(models.Journal.id).where(models.Journal.user_id == pid)
            ),
        )
        if operation is Operation.DELETE:
            return and_(owned, models.Entry.deleted_at.isnot(None))
        return owned

    if principal.is_admin:
        return None
    if kind in (EntityKind.ADMIN_TOKEN, EntityKind.CONTACT_SUBMISSION):
        return false()
    if operation is not Operation.SELECT:
        return false()
    if kind is EntityKind.BLOG_POST:
        return and_(
            models.BlogPost.status == "published",
            models.BlogPost.published_at.isnot(None),
            models.BlogPost.published_at <= models.utcnow(),
        )
    return KIND_MODELS[kind].is_active == true()
