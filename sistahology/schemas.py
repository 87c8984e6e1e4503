import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)
from typing_extensions import Annotated

from .models import utctoday
from .sections import validate_section_content


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Mood = Literal["happy", "neutral", "sad", "anxious", "excited", "grateful"]
HexColor = Annotated[str, StringConstraints(pattern=r"^#[0-9A-Fa-f]{6}$")]


def _not_in_future(value: Optional[date]) -> Optional[date]:
    if value is not None and value > utctoday():
        raise ValueError("entry date cannot be in the future")
    return value


class ORMModel(BaseModel):
    """Base for response schemas built from SQLAlchemy objects."""

    class Config:
        from_attributes = True


# Auth


class SignupRequest(BaseModel):
    """Payload for registering a new account."""

    email: EmailStr
    password: str = Field(min_length=6)
    full_name: Optional[str] = Field(default=None, max_length=200)
    admin_token: Optional[str] = None


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    """Schema for requesting a new access token from a refresh token."""

    refresh_token: str


class TokenData(BaseModel):
    """Payload stored inside JWT token."""

    sub: str | None = None
    exp: Optional[datetime] = None
    scope: Optional[str] = None


class PasswordResetRequest(BaseModel):
    """Request schema for initiating password reset."""

    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """Payload for completing password reset using token."""

    token: str
    new_password: str = Field(min_length=6)


class ElevateRequest(BaseModel):
    """Admin registration token presented by an existing account."""

    token: NonEmptyStr


class ElevateResult(BaseModel):
    is_admin: bool


# Profiles


class ProfileOut(ORMModel):
    """Response schema for profile data."""

    id: uuid.UUID
    email: EmailStr
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_admin: bool = False


class ProfileUpdate(BaseModel):
    """Profile fields a caller may try to change.

    ``is_admin`` is accepted here so that the persistence layer, not the
    schema, decides whether the change is allowed.
    """

    full_name: Optional[str] = Field(default=None, max_length=200)
    avatar_url: Optional[str] = Field(default=None, max_length=500)
    is_admin: Optional[bool] = None


class SignupResult(ProfileOut):
    pass


# Journals and entries


class JournalCreate(BaseModel):
    """Schema for creating a journal."""

    journal_name: NonEmptyStr = Field(max_length=100)
    color: HexColor = "#F5C3E2"
    icon: Optional[str] = Field(default=None, max_length=32)


class JournalUpdate(BaseModel):
    """Schema for updating a journal (all fields optional)."""

    journal_name: Optional[NonEmptyStr] = Field(default=None, max_length=100)
    color: Optional[HexColor] = None
    icon: Optional[str] = Field(default=None, max_length=32)


class JournalOut(ORMModel):
    id: uuid.UUID
    user_id: uuid.UUID
    journal_name: str
    color: str
    icon: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class EntryCreate(BaseModel):
    """Schema for writing a new entry into a journal."""

    content: NonEmptyStr
    title: Optional[str] = Field(default=None, max_length=200)
    entry_date: date = Field(default_factory=utctoday)
    is_archived: bool = False
    mood: Optional[Mood] = None

    _check_date = field_validator("entry_date")(_not_in_future)


class EntryUpdate(BaseModel):
    """Schema for editing an entry (all fields optional)."""

    content: Optional[NonEmptyStr] = None
    title: Optional[str] = Field(default=None, max_length=200)
    entry_date: Optional[date] = None
    is_archived: Optional[bool] = None
    mood: Optional[Mood] = None
    journal_id: Optional[uuid.UUID] = None

    _check_date = field_validator("entry_date")(_not_in_future)


class EntryIds(BaseModel):
    """Entries selected on the trash page."""

    entry_ids: List[uuid.UUID] = Field(min_length=1, max_length=500)


class EntryOut(ORMModel):
    id: uuid.UUID
    journal_id: uuid.UUID
    user_id: uuid.UUID
    title: Optional[str] = None
    content: str
    entry_date: date
    is_archived: bool
    mood: Optional[str] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# Admin-managed content


class PageCreate(BaseModel):
    slug: NonEmptyStr = Field(max_length=100)
    title: NonEmptyStr = Field(max_length=200)
    content_html: Optional[str] = None
    is_active: bool = True


class PageUpdate(BaseModel):
    title: Optional[NonEmptyStr] = Field(default=None, max_length=200)
    content_html: Optional[str] = None
    is_active: Optional[bool] = None


class PageOut(ORMModel):
    id: uuid.UUID
    slug: str
    title: str
    content_html: Optional[str] = None
    is_active: bool
    updated_at: datetime


class SiteSectionCreate(BaseModel):
    """Schema for creating a page section with a typed payload."""

    page_slug: NonEmptyStr = Field(max_length=100)
    section_key: NonEmptyStr = Field(max_length=100)
    section_title: NonEmptyStr = Field(max_length=200)
    content_json: Dict[str, Any]
    display_order: int = 0
    is_active: bool = True

    @model_validator(mode="after")
    def _validate_payload(self):
        self.content_json = validate_section_content(self.section_key, self.content_json)
        return self


class SiteSectionUpdate(BaseModel):
    """Changes to a section; the payload is validated against its stored key."""

    section_title: Optional[NonEmptyStr] = Field(default=None, max_length=200)
    content_json: Optional[Dict[str, Any]] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = None


class SiteSectionOut(ORMModel):
    id: uuid.UUID
    page_slug: str
    section_key: str
    section_title: str
    content_json: Dict[str, Any]
    display_order: int
    is_active: bool
    updated_at: datetime


class BlogPostCreate(BaseModel):
    slug: NonEmptyStr = Field(max_length=150)
    title: NonEmptyStr = Field(max_length=200)
    excerpt: Optional[str] = None
    content_html: NonEmptyStr
    author: str = "sistahology.com"
    published_at: Optional[datetime] = None
    status: Literal["draft", "published"] = "draft"
    featured_image_url: Optional[str] = Field(default=None, max_length=500)


class BlogPostUpdate(BaseModel):
    title: Optional[NonEmptyStr] = Field(default=None, max_length=200)
    excerpt: Optional[str] = None
    content_html: Optional[NonEmptyStr] = None
    author: Optional[str] = None
    published_at: Optional[datetime] = None
    status: Optional[Literal["draft", "published"]] = None
    featured_image_url: Optional[str] = Field(default=None, max_length=500)


class BlogPostOut(ORMModel):
    id: uuid.UUID
    slug: str
    title: str
    excerpt: Optional[str] = None
    content_html: str
    author: str
    published_at: Optional[datetime] = None
    status: str
    featured_image_url: Optional[str] = None


class WritingPromptCreate(BaseModel):
    prompt_text: NonEmptyStr
    category: Optional[str] = Field(default=None, max_length=50)
    is_active: bool = True


class WritingPromptUpdate(BaseModel):
    prompt_text: Optional[NonEmptyStr] = None
    category: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None


class WritingPromptOut(ORMModel):
    id: uuid.UUID
    prompt_text: str
    category: Optional[str] = None
    is_active: bool


# Admin registration tokens


class AdminTokenCreate(BaseModel):
    """Request to issue a new admin registration token."""

    email: Optional[EmailStr] = None
    expires_in_days: Optional[int] = Field(default=None, ge=1, le=90)


class AdminTokenIssued(BaseModel):
    id: uuid.UUID
    token: str
    email: Optional[str] = None
    expires_at: datetime
    registration_url: str


class AdminTokenOut(ORMModel):
    id: uuid.UUID
    token: str
    email: Optional[str] = None
    created_by_user_id: Optional[uuid.UUID] = None
    used_by_user_id: Optional[uuid.UUID] = None
    created_at: datetime
    used_at: Optional[datetime] = None
    expires_at: datetime
    status: Literal["unused", "used", "expired"]


class AdminTokenLookup(BaseModel):
    email: Optional[str] = None
    is_valid: bool


class CleanupResult(BaseModel):
    deleted: int


# Contact form


class ContactSubmissionCreate(BaseModel):
    """Contact form payload; limits follow the stored column constraints."""

    name: NonEmptyStr = Field(max_length=100)
    email: EmailStr
    subject: NonEmptyStr = Field(max_length=200)
    message: Annotated[str, StringConstraints(strip_whitespace=True, min_length=5, max_length=5000)]


class ContactSubmissionReceipt(ORMModel):
    id: uuid.UUID
    status: str
    submitted_at: datetime


class ContactSubmissionOut(ORMModel):
    id: uuid.UUID
    name: str
    email: str
    subject: str
    message: str
    status: str
    submitted_at: datetime
    updated_at: datetime


class ContactStatusUpdate(BaseModel):
    status: Literal["pending", "read", "replied", "archived"]
