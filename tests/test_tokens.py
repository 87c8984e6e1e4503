import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, select, update
from sqlalchemy.orm import sessionmaker

from sistahology import crud, models, tokens
from sistahology.auth import get_password_hash
from sistahology.core import get_settings
from sistahology.database import Base
from sistahology.errors import Forbidden, NotFound, ValidationFailed
from sistahology.guard import TOKEN_CONSUMPTION_OPTION, acting_as, bind_principal
from sistahology.policy import ANONYMOUS, SERVICE


def _token_row(db, value):
    with acting_as(db, SERVICE):
        return db.scalars(
            select(models.AdminRegistrationToken).where(
                models.AdminRegistrationToken.token == value
            )
        ).one()


def _is_admin(db, profile_id):
    with acting_as(db, SERVICE):
        db.expire_all()
        return crud.get_profile(db, profile_id).is_admin


def _add_token(db, value, expires_in, email=None, used=False):
    now = models.utcnow()
    with acting_as(db, SERVICE):
        row = models.AdminRegistrationToken(
            token=value,
            email=email,
            expires_at=now + expires_in,
            used_at=now if used else None,
        )
        db.add(row)
        db.commit()
    return row


def test_generated_tokens_are_long_and_unique():
    values = {tokens.generate_token() for _ in range(50)}
    assert len(values) == 50
    assert all(len(value) >= 43 for value in values)


def test_admin_issues_token(db_session, make_user, as_user):
    admin = make_user("admin@example.com", is_admin=True)
    db = as_user(admin)

    row = tokens.issue(db, email="new@example.com", ttl_days=3)

    assert row.created_by_user_id == admin.id
    assert row.used_at is None
    assert tokens.token_status(row) == tokens.TOKEN_UNUSED
    remaining = row.expires_at - models.utcnow()
    assert timedelta(days=2, hours=23) < remaining <= timedelta(days=3)


def test_default_lifetime_comes_from_settings(db_session, make_user, as_user):
    db = as_user(make_user("admin@example.com", is_admin=True))
    row = tokens.issue(db)
    remaining = row.expires_at - models.utcnow()
    assert remaining > timedelta(days=get_settings().ADMIN_TOKEN_TTL_DAYS) - timedelta(minutes=1)


def test_token_lifetime_must_be_positive(db_session, make_user, as_user):
    db = as_user(make_user("admin@example.com", is_admin=True))
    for days in (0, -3):
        with pytest.raises(ValidationFailed) as exc:
            tokens.issue(db, ttl_days=days)
        assert exc.value.field == "expires_in_days"
    assert tokens.list_tokens(db) == []


def test_non_admin_cannot_issue(db_session, make_user, as_user):
    db = as_user(make_user("plain@example.com"))
    with pytest.raises(Forbidden):
        tokens.issue(db)
    db.rollback()


def test_token_is_single_use(db_session, make_user):
    first = make_user("first@example.com")
    second = make_user("second@example.com")
    _add_token(db_session, "single-use", timedelta(days=1))

    bind_principal(db_session, ANONYMOUS)
    assert tokens.validate_and_consume(db_session, "single-use", first.email, first.id) is True
    assert tokens.validate_and_consume(db_session, "single-use", second.email, second.id) is False

    assert _is_admin(db_session, first.id) is True
    assert _is_admin(db_session, second.id) is False
    row = _token_row(db_session, "single-use")
    assert row.used_at is not None
    assert row.used_by_user_id == first.id


def test_email_bound_token_rejects_other_email(db_session, make_user):
    outsider = make_user("outsider@example.com")
    _add_token(db_session, "bound", timedelta(days=1), email="invited@example.com")

    assert tokens.validate_and_consume(db_session, "bound", outsider.email, outsider.id) is False
    assert _is_admin(db_session, outsider.id) is False
    assert _token_row(db_session, "bound").used_at is None


def test_email_match_ignores_case(db_session, make_user):
    invited = make_user("invited@example.com")
    _add_token(db_session, "cased", timedelta(days=1), email="Invited@Example.com")

    assert tokens.validate_and_consume(db_session, "cased", invited.email, invited.id) is True
    assert _is_admin(db_session, invited.id) is True


def test_expired_token_is_rejected(db_session, make_user):
    late = make_user("late@example.com")
    _add_token(db_session, "stale", -timedelta(minutes=1))

    assert tokens.validate_and_consume(db_session, "stale", late.email, late.id) is False
    assert _is_admin(db_session, late.id) is False


def test_unknown_or_empty_token_is_rejected(db_session, make_user):
    someone = make_user("someone@example.com")
    assert tokens.validate_and_consume(db_session, "nope", someone.email, someone.id) is False
    assert tokens.validate_and_consume(db_session, "", someone.email, someone.id) is False


def test_consumption_is_undone_without_profile(db_session):
    _add_token(db_session, "orphan", timedelta(days=1))
    with acting_as(db_session, SERVICE):
        account = models.Account(email="noprofile@example.com", hashed_password="x")
        db_session.add(account)
        db_session.commit()
        account_id = account.id

    assert tokens.validate_and_consume(db_session, "orphan", None, account_id) is False
    row = _token_row(db_session, "orphan")
    assert row.used_at is None
    assert row.used_by_user_id is None


def test_token_rows_cannot_be_updated_directly(db_session, make_user, as_user):
    admin = make_user("admin@example.com", is_admin=True)
    db = as_user(admin)
    row = tokens.issue(db)

    row.email = "changed@example.com"
    with pytest.raises(Forbidden):
        db.commit()
    db.rollback()

    with acting_as(db, SERVICE):
        with pytest.raises(Forbidden):
            db.execute(
                update(models.AdminRegistrationToken)
                .where(models.AdminRegistrationToken.id == row.id)
                .values(used_at=models.utcnow())
            )


def test_consumption_marker_does_not_open_other_updates(db_session, make_user, as_user):
    admin = make_user("admin@example.com", is_admin=True)
    db = as_user(admin)
    row = tokens.issue(db)
    table = models.AdminRegistrationToken.__table__
    marked = {TOKEN_CONSUMPTION_OPTION: True}

    # Only the service actor may consume.
    with pytest.raises(Forbidden):
        db.execute(
            update(table).where(table.c.id == row.id).values(used_at=models.utcnow()),
            execution_options=marked,
        )
    db.rollback()

    # And only the consumption columns may be written.
    with acting_as(db, SERVICE):
        with pytest.raises(Forbidden):
            db.execute(
                update(table).where(table.c.id == row.id).values(email="changed@example.com"),
                execution_options=marked,
            )
    db.rollback()

    assert _token_row(db, row.token).used_at is None


def test_list_and_delete_tokens(db_session, make_user, as_user):
    admin = make_user("admin@example.com", is_admin=True)
    db = as_user(admin)
    doomed = tokens.issue(db).id
    kept = tokens.issue(db).id

    assert len(tokens.list_tokens(db)) == 2
    tokens.delete_token(db, doomed)
    assert [t.id for t in tokens.list_tokens(db)] == [kept]

    with pytest.raises(NotFound):
        tokens.delete_token(db, doomed)


def test_non_admin_sees_no_tokens(db_session, make_user, as_user):
    tokens.issue(as_user(make_user("admin@example.com", is_admin=True)))
    db = as_user(make_user("plain@example.com"))
    assert tokens.list_tokens(db) == []


def test_cleanup_removes_only_expired_unused(db_session, make_user, as_user):
    _add_token(db_session, "expired-unused", -timedelta(days=1))
    _add_token(db_session, "expired-used", -timedelta(days=1), used=True)
    _add_token(db_session, "live", timedelta(days=1))

    plain = as_user(make_user("plain@example.com"))
    assert tokens.cleanup_expired(plain) == 0

    admin = as_user(make_user("admin@example.com", is_admin=True))
    assert tokens.cleanup_expired(admin) == 1

    remaining = {t.token for t in tokens.list_tokens(admin)}
    assert remaining == {"expired-used", "live"}


def test_token_status_values():
    now = models.utcnow()
    unused = models.AdminRegistrationToken(expires_at=now + timedelta(hours=1))
    expired = models.AdminRegistrationToken(expires_at=now - timedelta(hours=1))
    used = models.AdminRegistrationToken(
        expires_at=now - timedelta(hours=1), used_at=now - timedelta(hours=2)
    )
    assert tokens.token_status(unused, now) == tokens.TOKEN_UNUSED
    assert tokens.token_status(expired, now) == tokens.TOKEN_EXPIRED
    assert tokens.token_status(used, now) == tokens.TOKEN_USED


def test_lookup_is_disabled_by_default(db_session):
    _add_token(db_session, "lookup", timedelta(days=1), email="invited@example.com")
    bind_principal(db_session, ANONYMOUS)
    assert tokens.lookup_for_display(db_session, "lookup") is None


def test_lookup_shows_email_and_validity(db_session, monkeypatch):
    monkeypatch.setattr(get_settings(), "ALLOW_PUBLIC_TOKEN_LOOKUP", True)
    _add_token(db_session, "lookup", timedelta(days=1), email="invited@example.com")
    _add_token(db_session, "gone", -timedelta(days=1))
    bind_principal(db_session, ANONYMOUS)

    assert tokens.lookup_for_display(db_session, "lookup") == {
        "email": "invited@example.com",
        "is_valid": True,
    }
    assert tokens.lookup_for_display(db_session, "gone") == {"email": None, "is_valid": False}
    assert tokens.lookup_for_display(db_session, "missing") is None


def test_concurrent_consumption_has_one_winner(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False)

    contenders = 5
    with Session() as setup:
        ids = [
            crud.create_account(setup, f"racer{i}@example.com", get_password_hash("secret123")).id
            for i in range(contenders)
        ]
        _add_token(setup, "race", timedelta(days=1))

    barrier = threading.Barrier(contenders)
    results = [None] * contenders

    def contend(index):
        with Session() as db:
            barrier.wait()
            results[index] = tokens.validate_and_consume(db, "race", None, ids[index])

    threads = [threading.Thread(target=contend, args=(i,)) for i in range(contenders)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert results.count(False) == contenders - 1

    with Session() as check:
        bind_principal(check, SERVICE)
        admins = check.scalars(
            select(models.Profile.id).where(models.Profile.is_admin.is_(True))
        ).all()
        row = _token_row(check, "race")
    assert admins == [ids[results.index(True)]]
    assert row.used_by_user_id == admins[0]
    engine.dispose()
