# tests/conftest.py
import os
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(os.path.abspath("."))

# Settings are cached on first use, so configure them before importing the app.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SERVICE_ROLE_KEY", "test-service-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from sistahology import crud, schemas
from sistahology.auth import create_access_token, get_password_hash, pwd_context
from sistahology.database import Base, get_db
from sistahology.guard import bind_principal
from sistahology.policy import ANONYMOUS, Principal
from main import app

SERVICE_HEADERS = {"X-Service-Key": "test-service-key"}

# Keep bcrypt cheap in tests.
pwd_context.update(bcrypt__rounds=4)


# DB (SQLite in-memory for tests)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def prepare_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


# Client fixture: override DB dependency per test. The app's startup
# hook is not run, so the contact rate limiter stays disabled.
@pytest.fixture()
def client(db_session):
    def override_get_db():
        # The session outlives the request, so undo whatever a failed one left.
        try:
            yield db_session
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session):
    """Create an account with its profile; optionally make it an admin."""

    def _make(email, password="secret123", is_admin=False, full_name=None):
        profile = crud.create_account(
            db_session, email, get_password_hash(password), full_name
        )
        if is_admin:
            crud.set_admin_flag(db_session, profile.id, True)
        bind_principal(db_session, ANONYMOUS)
        return profile

    return _make


@pytest.fixture()
def as_user(db_session):
    """Bind the test session to a profile's principal and return the session."""

    def _bind(profile):
        return bind_principal(
            db_session, Principal(id=profile.id, is_admin=bool(profile.is_admin))
        )

    return _bind


def bearer(profile) -> dict:
    token = create_access_token({"sub": str(profile.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers():
    return bearer


@pytest.fixture()
def service_headers():
    return dict(SERVICE_HEADERS)


@pytest.fixture()
def journal_with_entry(make_user, as_user):
    """An owner, one of their journals and one active entry in it."""

    owner = make_user("owner@example.com")
    db = as_user(owner)
    journal = crud.create_journal(db, schemas.JournalCreate(journal_name="Morning pages"))
    entry = crud.create_entry(
        db, journal.id, schemas.EntryCreate(title="Day one", content="Dear diary", mood="happy")
    )
    bind_principal(db, ANONYMOUS)
    return owner, journal, entry

