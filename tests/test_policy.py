import uuid
from datetime import timedelta

import pytest

from sistahology import models
from sistahology.errors import Forbidden
from sistahology.policy import (
    ANONYMOUS,
    SERVICE,
    Decision,
    EntityKind,
    Operation,
    Principal,
    authorize,
    evaluate,
    owns_entry,
    row_filter,
)

ALL_OPS = list(Operation)
WRITE_OPS = [Operation.INSERT, Operation.UPDATE, Operation.DELETE]


def user(is_admin=False):
    return Principal(id=uuid.uuid4(), is_admin=is_admin)


def allowed(principal, kind, op, row):
    return evaluate(principal, kind, op, row) is Decision.ALLOW


def test_profile_is_self_only_even_for_admins():
    me = user()
    admin = user(is_admin=True)
    mine = models.Profile(id=me.id, email="me@example.com")

    for op in ALL_OPS:
        assert allowed(me, EntityKind.PROFILE, op, mine)
        assert not allowed(admin, EntityKind.PROFILE, op, mine)
        assert not allowed(ANONYMOUS, EntityKind.PROFILE, op, mine)


def test_journal_owner_only_no_admin_exception():
    owner = user()
    admin = user(is_admin=True)
    journal = models.Journal(id=uuid.uuid4(), user_id=owner.id, journal_name="J")

    for op in ALL_OPS:
        assert allowed(owner, EntityKind.JOURNAL, op, journal)
        assert not allowed(admin, EntityKind.JOURNAL, op, journal)
        assert not allowed(ANONYMOUS, EntityKind.JOURNAL, op, journal)


def test_entry_read_accepts_either_reference_write_needs_both():
    owner = user()
    other = user()
    journal = models.Journal(user_id=owner.id, journal_name="J")
    diverged = models.Entry(journal=journal, user_id=other.id, content="x")

    # Either reference grants visibility.
    assert allowed(owner, EntityKind.ENTRY, Operation.SELECT, diverged)
    assert allowed(other, EntityKind.ENTRY, Operation.SELECT, diverged)
    # Writes require both to point at the principal.
    assert not allowed(owner, EntityKind.ENTRY, Operation.UPDATE, diverged)
    assert not allowed(other, EntityKind.ENTRY, Operation.INSERT, diverged)

    consistent = models.Entry(journal=journal, user_id=owner.id, content="x")
    assert owns_entry(owner, consistent, require_both=True)
    assert allowed(owner, EntityKind.ENTRY, Operation.INSERT, consistent)


def test_entry_hard_delete_requires_trashed_state():
    owner = user()
    journal = models.Journal(user_id=owner.id, journal_name="J")
    entry = models.Entry(journal=journal, user_id=owner.id, content="x")

    assert not allowed(owner, EntityKind.ENTRY, Operation.DELETE, entry)
    entry.deleted_at = models.utcnow()
    assert allowed(owner, EntityKind.ENTRY, Operation.DELETE, entry)


def test_anonymous_owns_nothing():
    journal = models.Journal(user_id=None, journal_name="orphan")
    entry = models.Entry(journal=journal, user_id=None, content="x")
    assert not owns_entry(ANONYMOUS, entry)
    assert not allowed(ANONYMOUS, EntityKind.JOURNAL, Operation.SELECT, journal)


@pytest.mark.parametrize(
    "kind, row_factory",
    [
        (EntityKind.PAGE, lambda active: models.Page(slug="p", title="P", is_active=active)),
        (
            EntityKind.SITE_SECTION,
            lambda active: models.SiteSection(
                page_slug="about", section_key="k", section_title="K",
                content_json={}, is_active=active,
            ),
        ),
        (
            EntityKind.WRITING_PROMPT,
            lambda active: models.WritingPrompt(prompt_text="Why?", is_active=active),
        ),
    ],
)
def test_active_content_public_reads_admin_writes(kind, row_factory):
    admin = user(is_admin=True)
    visitor = user()
    active, inactive = row_factory(True), row_factory(False)

    assert allowed(ANONYMOUS, kind, Operation.SELECT, active)
    assert not allowed(ANONYMOUS, kind, Operation.SELECT, inactive)
    assert allowed(admin, kind, Operation.SELECT, inactive)
    for op in WRITE_OPS:
        assert allowed(admin, kind, op, inactive)
        assert not allowed(visitor, kind, op, active)
        assert not allowed(ANONYMOUS, kind, op, active)


def test_blog_post_visible_only_once_published_in_the_past():
    now = models.utcnow()
    published = models.BlogPost(status="published", published_at=now - timedelta(days=1))
    scheduled = models.BlogPost(status="published", published_at=now + timedelta(days=1))
    undated = models.BlogPost(status="published", published_at=None)
    draft = models.BlogPost(status="draft", published_at=now - timedelta(days=1))

    assert allowed(ANONYMOUS, EntityKind.BLOG_POST, Operation.SELECT, published)
    for hidden in (scheduled, undated, draft):
        assert not allowed(ANONYMOUS, EntityKind.BLOG_POST, Operation.SELECT, hidden)
        assert allowed(user(is_admin=True), EntityKind.BLOG_POST, Operation.SELECT, hidden)


def test_admin_tokens_have_no_update_path():
    admin = user(is_admin=True)
    token = models.AdminRegistrationToken(token="t", expires_at=models.utcnow())

    for op in (Operation.SELECT, Operation.INSERT, Operation.DELETE):
        assert allowed(admin, EntityKind.ADMIN_TOKEN, op, token)
        assert not allowed(user(), EntityKind.ADMIN_TOKEN, op, token)
    assert not allowed(admin, EntityKind.ADMIN_TOKEN, Operation.UPDATE, token)
    assert not allowed(SERVICE, EntityKind.ADMIN_TOKEN, Operation.UPDATE, token)


def test_contact_submissions_open_intake_and_never_deleted():
    admin = user(is_admin=True)
    row = models.ContactSubmission(name="Jane", email="jane@x.com", subject="S", message="Hello")

    assert allowed(ANONYMOUS, EntityKind.CONTACT_SUBMISSION, Operation.INSERT, row)
    assert not allowed(ANONYMOUS, EntityKind.CONTACT_SUBMISSION, Operation.SELECT, row)
    assert not allowed(user(), EntityKind.CONTACT_SUBMISSION, Operation.UPDATE, row)
    assert allowed(admin, EntityKind.CONTACT_SUBMISSION, Operation.SELECT, row)
    assert allowed(admin, EntityKind.CONTACT_SUBMISSION, Operation.UPDATE, row)
    for principal in (ANONYMOUS, admin, SERVICE):
        assert not allowed(principal, EntityKind.CONTACT_SUBMISSION, Operation.DELETE, row)


def test_service_bypasses_row_rules():
    journal = models.Journal(user_id=uuid.uuid4(), journal_name="J")
    for op in ALL_OPS:
        assert allowed(SERVICE, EntityKind.JOURNAL, op, journal)
    assert row_filter(SERVICE, EntityKind.ENTRY) is None


def test_evaluate_accepts_plain_strings():
    me = user()
    profile = models.Profile(id=me.id, email="me@example.com")
    assert evaluate(me, "profile", "update", profile) is Decision.ALLOW


def test_authorize_raises_generic_forbidden():
    journal = models.Journal(user_id=uuid.uuid4(), journal_name="J")
    with pytest.raises(Forbidden) as exc:
        authorize(user(), EntityKind.JOURNAL, Operation.DELETE, journal)
    assert exc.value.detail == "Not permitted"


def test_row_filter_shapes():
    admin = user(is_admin=True)
    assert row_filter(admin, EntityKind.PAGE) is None
    assert row_filter(admin, EntityKind.JOURNAL) is not None
    assert row_filter(ANONYMOUS, EntityKind.PAGE) is not None
    assert row_filter(user(), EntityKind.PAGE, Operation.UPDATE) is not None
