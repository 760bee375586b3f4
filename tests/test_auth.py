from datetime import timedelta

import pytest
from fastapi import status

from contact_manager import crud
from contact_manager.auth import (
    auth_rate_limit,
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from contact_manager.errors import AuthError


def test_password_hashing_roundtrip():
    password = "secret123"
    hashed = get_password_hash(password)
    assert hashed != password
    assert verify_password(password, hashed)
    assert not verify_password("wrong-password", hashed)


def test_token_carries_user_id():
    token = create_access_token(42)
    assert decode_access_token(token) == 42


def test_expired_token_is_rejected():
    token = create_access_token(42, expires_delta=timedelta(seconds=-1))
    with pytest.raises(AuthError):
        decode_access_token(token)


def test_register_login_scenario(client):
    credentials = {"email": "alice@example.com", "password": "password123"}

    register_resp = client.post("/auth/register", json=credentials)
    assert register_resp.status_code == status.HTTP_201_CREATED
    body = register_resp.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["email"] == "alice@example.com"

    duplicate_resp = client.post("/auth/register", json=credentials)
    assert duplicate_resp.status_code == status.HTTP_400_BAD_REQUEST
    assert duplicate_resp.json()["success"] is False

    wrong_resp = client.post(
        "/auth/login",
        json={"email": "alice@example.com", "password": "not-the-password"},
    )
    assert wrong_resp.status_code == status.HTTP_400_BAD_REQUEST
    assert wrong_resp.json()["message"] == "Invalid credentials"

    login_resp = client.post("/auth/login", json=credentials)
    assert login_resp.status_code == status.HTTP_200_OK
    assert login_resp.json()["token"]
    assert login_resp.json()["user"]["id"] == body["user"]["id"]


def test_duplicate_email_is_case_insensitive(client):
    client.post(
        "/auth/register", json={"email": "Carol@Example.com", "password": "password123"}
    )
    resp = client.post(
        "/auth/register", json={"email": "carol@example.com", "password": "password123"}
    )
    assert resp.status_code == status.HTTP_400_BAD_REQUEST
    assert resp.json()["message"] == "User already exists with this email"


def test_unknown_user_and_wrong_password_look_the_same(client, db_session):
    crud.create_user(db_session, "dave@example.com", get_password_hash("password123"))

    unknown = client.post(
        "/auth/login", json={"email": "nobody@example.com", "password": "password123"}
    )
    wrong = client.post(
        "/auth/login", json={"email": "dave@example.com", "password": "password999"}
    )
    assert unknown.status_code == wrong.status_code == status.HTTP_400_BAD_REQUEST
    assert unknown.json() == wrong.json()


def test_register_rejects_short_password_and_bad_email(client):
    short = client.post(
        "/auth/register", json={"email": "erin@example.com", "password": "short"}
    )
    assert short.status_code == status.HTTP_400_BAD_REQUEST
    assert short.json()["errors"][0]["field"] == "password"

    bad_email = client.post(
        "/auth/register", json={"email": "not-an-email", "password": "password123"}
    )
    assert bad_email.status_code == status.HTTP_400_BAD_REQUEST
    assert bad_email.json()["success"] is False


def test_me_returns_profile(client):
    token = client.post(
        "/auth/register", json={"email": "frank@example.com", "password": "password123"}
    ).json()["token"]

    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == status.HTTP_200_OK
    user = resp.json()["user"]
    assert user["email"] == "frank@example.com"
    assert "created_at" in user
    assert "hashed_password" not in user


def test_me_for_deleted_user_is_not_found(client):
    token = create_access_token(999999)
    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == status.HTTP_404_NOT_FOUND


def test_missing_or_invalid_token_is_unauthorized(client):
    missing = client.get("/auth/me")
    assert missing.status_code == status.HTTP_401_UNAUTHORIZED
    assert missing.json()["success"] is False

    garbage = client.get("/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert garbage.status_code == status.HTTP_401_UNAUTHORIZED

    expired = create_access_token(1, expires_delta=timedelta(seconds=-1))
    resp = client.get("/contacts", headers={"Authorization": f"Bearer {expired}"})
    assert resp.status_code == status.HTTP_401_UNAUTHORIZED
    assert resp.headers["www-authenticate"] == "Bearer"


def test_health_endpoint(client):
    resp = client.get("/")
    assert resp.status_code == status.HTTP_200_OK
    assert resp.json()["success"] is True


def test_login_is_rate_limited(client, monkeypatch):
    monkeypatch.setattr(auth_rate_limit, "times", 2)
    headers = {"X-Forwarded-For": "203.0.113.7"}
    credentials = {"email": "gina@example.com", "password": "password123"}

    for _ in range(2):
        resp = client.post("/auth/login", json=credentials, headers=headers)
        assert resp.status_code == status.HTTP_400_BAD_REQUEST

    limited = client.post("/auth/login", json=credentials, headers=headers)
    assert limited.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert limited.json() == {"success": False, "message": "Too Many Requests"}
