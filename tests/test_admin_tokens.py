from datetime import timedelta

from fastapi import status

from sistahology import models
from sistahology.core import get_settings
from sistahology.guard import acting_as
from sistahology.policy import SERVICE


def test_only_admins_issue_tokens(client, make_user, auth_headers):
    member = auth_headers(make_user("member@example.com"))
    assert client.post("/admin/tokens/", json={}, headers=member).status_code == status.HTTP_403_FORBIDDEN
    assert client.post("/admin/tokens/", json={}).status_code == status.HTTP_403_FORBIDDEN
    assert client.get("/admin/tokens/", headers=member).json() == []


def test_issue_list_and_delete(client, make_user, auth_headers):
    admin = auth_headers(make_user("admin@example.com", is_admin=True))

    issued = client.post("/admin/tokens/", json={"email": "invitee@example.com", "expires_in_days": 2},
                         headers=admin)
    assert issued.status_code == status.HTTP_201_CREATED
    body = issued.json()
    assert body["email"] == "invitee@example.com"
    assert body["registration_url"] == (
        f"{get_settings().BASE_URL}/admin/register?token={body['token']}"
    )

    listed = client.get("/admin/tokens/", headers=admin).json()
    assert [(t["id"], t["status"]) for t in listed] == [(body["id"], "unused")]

    assert client.delete(f"/admin/tokens/{body['id']}", headers=admin).status_code == 204
    assert client.get("/admin/tokens/", headers=admin).json() == []
    assert client.delete(f"/admin/tokens/{body['id']}", headers=admin).status_code == 404


def test_lifetime_is_bounded(client, make_user, auth_headers):
    admin = auth_headers(make_user("admin@example.com", is_admin=True))
    for days in (0, 91):
        response = client.post("/admin/tokens/", json={"expires_in_days": days}, headers=admin)
        assert response.status_code == 422


def test_cleanup_endpoint(client, db_session, make_user, auth_headers):
    admin = auth_headers(make_user("admin@example.com", is_admin=True))
    member = auth_headers(make_user("member@example.com"))
    with acting_as(db_session, SERVICE):
        db_session.add(models.AdminRegistrationToken(
            token="old", expires_at=models.utcnow() - timedelta(days=1)
        ))
        db_session.commit()

    assert client.post("/admin/tokens/cleanup", headers=member).json() == {"deleted": 0}
    assert client.post("/admin/tokens/cleanup", headers=admin).json() == {"deleted": 1}


def test_lookup_endpoint(client, make_user, auth_headers, monkeypatch):
    admin = auth_headers(make_user("admin@example.com", is_admin=True))
    token = client.post("/admin/tokens/", json={"email": "invitee@example.com"}, headers=admin).json()["token"]

    assert client.get("/admin/tokens/lookup", params={"token": token}).status_code == 404

    monkeypatch.setattr(get_settings(), "ALLOW_PUBLIC_TOKEN_LOOKUP", True)
    found = client.get("/admin/tokens/lookup", params={"token": token})
    assert found.status_code == status.HTTP_200_OK
    assert found.json() == {"email": "invitee@example.com", "is_valid": True}
    assert client.get("/admin/tokens/lookup", params={"token": "missing"}).status_code == 404
