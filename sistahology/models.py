"""Database models for the Sistahology journaling service.

This module defines SQLAlchemy ORM models used by the application.
Every table except ``accounts`` is protected by the row policies in
:mod:`sistahology.policy`, enforced on each session by
:mod:`sistahology.guard`.
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    false,
    true,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from .database import Base


MOODS = ("happy", "neutral", "sad", "anxious", "excited", "grateful")
POST_STATUSES = ("draft", "published")
CONTACT_STATUSES = ("pending", "read", "replied", "archived")


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utctoday() -> date:
    """Return the current UTC calendar date."""
    return utcnow().date()


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that always comes back in UTC.

    SQLite drops the offset on storage, so values are normalised to UTC
    on the way in and re-labelled as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class JSONColumn(TypeDecorator):
    """JSON column that uses JSONB for PostgreSQL and JSON elsewhere."""

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())


class TimestampMixin:
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Account(Base):
    """
    Identity record for a principal (login credentials).

    Accounts play the part of the identity provider's user table;
    application data hangs off the 1:1 :class:`Profile`.
    """

    __tablename__ = "accounts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    profile = relationship(
        "Profile",
        back_populates="account",
        uselist=False,
        passive_deletes="all",
    )


class Profile(TimestampMixin, Base):
    """
    Application-level user record, one per :class:`Account`.

    ``is_admin`` can only be changed by the service actor or by
    admin token consumption; see :mod:`sistahology.guard`.
    """

    __tablename__ = "profiles"

    id = Column(
        Uuid,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        primary_key=True,
    )
    email = Column(String(255), index=True, nullable=False)
    full_name = Column(String(200), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    is_admin = Column(Boolean, default=False, server_default=false(), nullable=False)

    account = relationship("Account", back_populates="profile")

    #: Journals owned by the profile
    journals = relationship(
        "Journal",
        back_populates="owner",
        passive_deletes="all",
    )


class Journal(TimestampMixin, Base):
    """
    Named container for entries, owned by exactly one profile.

    Deleting a journal removes its entries through the foreign key
    cascade; the ORM never loads them for deletion.
    """

    __tablename__ = "journals"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    journal_name = Column(String(100), nullable=False)
    color = Column(String(20), nullable=False, default="#F5C3E2")
    icon = Column(String(32), nullable=True)

    owner = relationship("Profile", back_populates="journals")
    entries = relationship(
        "Entry",
        back_populates="journal",
        passive_deletes="all",
    )


class Entry(TimestampMixin, Base):
    """
    A dated piece of writing inside a journal.

    ``user_id`` duplicates the journal owner and is kept equal to it on
    every write. ``deleted_at`` marks the entry as trashed.
    """

    __tablename__ = "entries"
    __table_args__ = (
        CheckConstraint(
            "mood IS NULL OR mood IN ('happy', 'neutral', 'sad', 'anxious', 'excited', 'grateful')",
            name="ck_entries_mood",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    journal_id = Column(
        Uuid,
        ForeignKey("journals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        Uuid,
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(200), nullable=True)
    content = Column(Text, nullable=False)
    entry_date = Column(Date, nullable=False, default=utctoday, index=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    mood = Column(String(20), nullable=True)
    deleted_at = Column(UTCDateTime, nullable=True, index=True)

    journal = relationship("Journal", back_populates="entries")

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None


class Page(TimestampMixin, Base):
    """Admin-managed HTML page keyed by ``slug``."""

    __tablename__ = "pages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    slug = Column(String(100), unique=True, nullable=False)
    title = Column(String(200), nullable=False)
    content_html = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())


class SiteSection(TimestampMixin, Base):
    """Structured content block keyed by ``(page_slug, section_key)``."""

    __tablename__ = "site_sections"
    __table_args__ = (
        UniqueConstraint("page_slug", "section_key", name="unique_page_section"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    page_slug = Column(String(100), nullable=False, index=True)
    section_key = Column(String(100), nullable=False)
    section_title = Column(String(200), nullable=False)
    content_json = Column(JSONColumn, nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())


class BlogPost(TimestampMixin, Base):
    """Blog post with a draft/published workflow."""

    __tablename__ = "blog_posts"
    __table_args__ = (
        CheckConstraint("status IN ('draft', 'published')", name="ck_blog_posts_status"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    slug = Column(String(150), unique=True, nullable=False)
    title = Column(String(200), nullable=False)
    excerpt = Column(Text, nullable=True)
    content_html = Column(Text, nullable=False)
    author = Column(String(100), nullable=False, default="sistahology.com")
    published_at = Column(UTCDateTime, nullable=True, index=True)
    status = Column(String(20), nullable=False, default="draft")
    featured_image_url = Column(String(500), nullable=True)


class WritingPrompt(TimestampMixin, Base):
    """Admin-managed prompt shown to writers when active."""

    __tablename__ = "writing_prompts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    prompt_text = Column(Text, nullable=False)
    category = Column(String(50), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())


class AdminRegistrationToken(Base):
    """
    Single-use credential that grants the admin flag when consumed.

    ``used_at`` is NULL until consumption; consumed rows are kept as an
    audit trail and are never reaped.
    """

    __tablename__ = "admin_registration_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    token = Column(String(128), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=True)
    expires_at = Column(UTCDateTime, nullable=False, index=True)
    used_at = Column(UTCDateTime, nullable=True)
    used_by_user_id = Column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    created_by_user_id = Column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)


class ContactSubmission(TimestampMixin, Base):
    """Contact form message; kept permanently once submitted."""

    __tablename__ = "contact_submissions"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'read', 'replied', 'archived')",
            name="ck_contact_submissions_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    submitted_at = Column(UTCDateTime, default=utcnow, nullable=False, index=True)


from . import guard  # noqa: E402,F401  (registers session listeners)
