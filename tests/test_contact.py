import pytest
from fastapi import status
from fastapi.testclient import TestClient
from fastapi_limiter import FastAPILimiter
from sqlalchemy import delete, select

from main import app
from sistahology import crud, models
from sistahology.core import get_settings
from sistahology.errors import Forbidden
from sistahology.guard import acting_as, bind_principal
from sistahology.policy import SERVICE

MESSAGE = {
    "name": "Jane",
    "email": "jane@example.com",
    "subject": "Hello",
    "message": "I love this journal!",
}


def submit(client, payload=None, headers=None):
    return client.post("/contact/", json=payload or MESSAGE, headers=headers or {})


def test_anonymous_submission_returns_receipt(client, db_session):
    response = submit(client)
    assert response.status_code == status.HTTP_201_CREATED
    receipt = response.json()
    assert set(receipt) == {"id", "status", "submitted_at"}
    assert receipt["status"] == "pending"

    # The submitter cannot read anything back.
    assert client.get("/contact/").json() == []

    bind_principal(db_session, SERVICE)
    stored = db_session.scalars(select(models.ContactSubmission)).one()
    assert str(stored.id) == receipt["id"]
    assert stored.message == MESSAGE["message"]


def test_submission_validation(client):
    assert submit(client, {**MESSAGE, "message": "Hey"}).status_code == 422
    assert submit(client, {**MESSAGE, "email": "not-an-email"}).status_code == 422
    assert submit(client, {**MESSAGE, "name": "x" * 101}).status_code == 422
    assert submit(client, {**MESSAGE, "subject": "   "}).status_code == 422
    assert submit(client, {**MESSAGE, "message": "x" * 5001}).status_code == 422


def test_only_admins_read_submissions(client, make_user, auth_headers):
    submit(client)
    submit(client, {**MESSAGE, "subject": "Second"})
    member = auth_headers(make_user("member@example.com"))
    admin = auth_headers(make_user("admin@example.com", is_admin=True))

    assert client.get("/contact/", headers=member).json() == []
    inbox = client.get("/contact/", headers=admin)
    assert inbox.status_code == status.HTTP_200_OK
    assert {s["subject"] for s in inbox.json()} == {"Hello", "Second"}


def test_admin_changes_status(client, make_user, auth_headers):
    receipt = submit(client).json()
    admin = auth_headers(make_user("admin@example.com", is_admin=True))
    member = auth_headers(make_user("member@example.com"))
    url = f"/contact/{receipt['id']}"

    assert client.patch(url, json={"status": "read"}, headers=member).status_code == 404
    assert client.patch(url, json={"status": "deleted"}, headers=admin).status_code == 422

    updated = client.patch(url, json={"status": "replied"}, headers=admin)
    assert updated.status_code == status.HTTP_200_OK
    assert updated.json()["status"] == "replied"

    replied = client.get("/contact/", params={"status": "replied"}, headers=admin).json()
    assert [s["id"] for s in replied] == [receipt["id"]]
    assert client.get("/contact/", params={"status": "pending"}, headers=admin).json() == []


def test_submissions_are_rate_limited(client, monkeypatch):
    # Unreachable Redis makes startup fall back to the in-process store.
    monkeypatch.setattr(get_settings(), "REDIS_URL", "redis://127.0.0.1:1")
    monkeypatch.setattr(FastAPILimiter, "redis", None)
    limit = get_settings().CONTACT_RATE_LIMIT_TIMES

    with TestClient(app) as limited:
        codes = [submit(limited).status_code for _ in range(limit + 1)]

    assert codes[:limit] == [status.HTTP_201_CREATED] * limit
    assert codes[limit] == status.HTTP_429_TOO_MANY_REQUESTS


def test_submissions_have_no_delete_route(client, make_user, auth_headers):
    receipt = submit(client).json()
    admin = auth_headers(make_user("admin@example.com", is_admin=True))
    response = client.delete(f"/contact/{receipt['id']}", headers=admin)
    assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED


def test_submissions_cannot_be_deleted_even_by_service(client, db_session):
    receipt = submit(client).json()
    bind_principal(db_session, SERVICE)
    row = crud.get_contact_submissions(db_session)[0]

    db_session.delete(row)
    with pytest.raises(Forbidden):
        db_session.commit()
    db_session.rollback()

    with acting_as(db_session, SERVICE):
        with pytest.raises(Forbidden):
            db_session.execute(delete(models.ContactSubmission))

    assert [str(s.id) for s in crud.get_contact_submissions(db_session)] == [receipt["id"]]
