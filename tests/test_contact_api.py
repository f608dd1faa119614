from __future__ import annotations

from fastapi.testclient import TestClient

from currency_exchange.core.db import SessionLocal
from currency_exchange.core.security import create_access_token
from currency_exchange.main import create_app
from currency_exchange.modules.identity.models import UserRole
from currency_exchange.modules.identity.service import create_user


def _admin_headers() -> dict[str, str]:
    with SessionLocal() as session:
        admin = create_user(session, email="admin@example.com", password="pw", role=UserRole.ADMIN)
        return {"Authorization": f"Bearer {create_access_token(subject=str(admin.id))}"}


def test_public_submission_and_admin_mailbox():
    headers = _admin_headers()
    client = TestClient(create_app())

    resp = client.post(
        "/api/contact",
        json={
            "name": "John Doe",
            "email": "John.Doe@Example.com",
            "subject": "Inquiry about exchange rates",
            "message": "I would like to know more about your exchange rates.",
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"].startswith("Thank you for contacting us")
    assert body["contact"]["email"] == "john.doe@example.com"
    contact_id = body["contact"]["id"]

    assert client.get("/api/contact").status_code == 401

    listed = client.get("/api/contact", headers=headers)
    assert listed.status_code == 200
    assert [c["id"] for c in listed.json()] == [contact_id]

    assert client.get(f"/api/contact/{contact_id}", headers=headers).status_code == 200
    assert client.delete(f"/api/contact/{contact_id}", headers=headers).status_code == 204
    assert client.get(f"/api/contact/{contact_id}", headers=headers).status_code == 404


def test_submission_validation():
    client = TestClient(create_app())
    resp = client.post(
        "/api/contact",
        json={"name": "J", "email": "not-an-email", "subject": "Hi", "message": "short"},
    )
    assert resp.status_code == 422
