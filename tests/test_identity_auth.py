from __future__ import annotations

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from jose import jwt

from currency_exchange.core.db import SessionLocal
from currency_exchange.core.security import create_access_token
from currency_exchange.main import create_app
from currency_exchange.modules.identity.models import User, UserRole
from currency_exchange.modules.identity.service import authenticate_user, create_user


def test_create_user_rejects_duplicate_email():
    with SessionLocal() as session:
        create_user(session, email="Admin@Example.com", password="pw", role=UserRole.ADMIN)

        with pytest.raises(HTTPException) as exc:
            create_user(session, email="admin@example.com", password="pw", role=UserRole.ADMIN)

        assert exc.value.status_code == 409


def test_authenticate_user_rejects_bad_password_and_inactive_user():
    with SessionLocal() as session:
        user = create_user(session, email="user@example.com", password="pw", role=UserRole.REGULAR)
        assert authenticate_user(session, email="USER@example.com", password="pw").id == user.id

        with pytest.raises(HTTPException) as exc:
            authenticate_user(session, email="user@example.com", password="nope")
        assert exc.value.status_code == 401

        user.is_active = False
        session.add(user)
        session.commit()
        with pytest.raises(HTTPException):
            authenticate_user(session, email="user@example.com", password="pw")


def test_token_login_and_admin_only_user_creation():
    with SessionLocal() as session:
        create_user(session, email="admin@example.com", password="Admin123!", role=UserRole.ADMIN)
        regular = create_user(
            session, email="user@example.com", password="pw", role=UserRole.REGULAR
        )
        regular_token = create_access_token(subject=str(regular.id))

    client = TestClient(create_app())
    resp = client.post(
        "/api/auth/token", data={"username": "admin@example.com", "password": "Admin123!"}
    )
    assert resp.status_code == 200
    admin_token = resp.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {admin_token}"})
    assert me.status_code == 200
    assert me.json()["role"] == "ADMIN"

    payload = {"email": "new@example.com", "password": "pw"}
    forbidden = client.post(
        "/api/users", json=payload, headers={"Authorization": f"Bearer {regular_token}"}
    )
    assert forbidden.status_code == 403

    created = client.post(
        "/api/users", json=payload, headers={"Authorization": f"Bearer {admin_token}"}
    )
    assert created.status_code == 200
    assert created.json()["role"] == "REGULAR"

    assert client.get("/api/auth/me", headers={"Authorization": "Bearer junk"}).status_code == 401


def test_role_is_read_from_the_database_not_the_token():
    with SessionLocal() as session:
        admin = create_user(
            session, email="admin@example.com", password="pw", role=UserRole.ADMIN
        )
        token = create_access_token(subject=str(admin.id))
    assert set(jwt.get_unverified_claims(token)) == {"sub", "exp"}

    client = TestClient(create_app())
    headers = {"Authorization": f"Bearer {token}"}
    payload = {"code": "EUR", "name": "Euro", "symbol": "€", "rate_to_usd": "0.92"}
    assert client.post("/api/currencies", json=payload, headers=headers).status_code == 201

    with SessionLocal() as session:
        user = session.get(User, admin.id)
        user.role = UserRole.REGULAR
        session.commit()

    payload["code"] = "TRY"
    assert client.post("/api/currencies", json=payload, headers=headers).status_code == 403
    assert client.get("/api/auth/me", headers=headers).json()["role"] == "REGULAR"
