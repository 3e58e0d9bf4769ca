"""Unit tests for authentication helpers and endpoints."""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException, Response

from app.api.auth import login, signup
from app.api.deps import extract_token, get_user_from_token
from app.core.security import create_access_token, get_password_hash
from app.models import User
from app.schemas import LoginRequest, SignupRequest


@pytest.fixture()
def user(db_session):
    db_user = User(
        full_name="Tester",
        email="tester@example.com",
        hashed_password=get_password_hash("supersecret"),
    )
    db_session.add(db_user)
    db_session.commit()
    return db_user


def test_login_sets_auth_cookie(db_session, user):
    """Successful login should return the user and set the session cookie."""

    response = Response()
    result = login(LoginRequest(email="Tester@Example.com", password="supersecret"), response, db_session)

    assert result.id == user.id
    cookie = response.headers["set-cookie"]
    assert cookie.startswith("jwt=")
    assert "HttpOnly" in cookie
    assert "SameSite=strict" in cookie


def test_login_rejects_invalid_credentials(db_session, user):
    """Invalid credentials must raise an HTTP 401 error."""

    with pytest.raises(HTTPException) as exc:
        login(LoginRequest(email="tester@example.com", password="wrong"), Response(), db_session)

    assert exc.value.status_code == 401
    assert exc.value.detail == "Invalid credentials"


def test_signup_rejects_duplicate_email(db_session, user):
    payload = SignupRequest(full_name="Other", email="TESTER@example.com", password="secret1")

    with pytest.raises(HTTPException) as exc:
        signup(payload, Response(), db_session)

    assert exc.value.status_code == 400


def test_get_user_from_token(db_session, user):
    """Tokens should resolve to existing users."""

    token = create_access_token({"sub": user.id})
    resolved = get_user_from_token(token, db_session)

    assert resolved.id == user.id
    assert resolved.email == user.email


def test_get_user_from_token_invalid_payload(db_session):
    """Invalid tokens must result in a 401 error."""

    with pytest.raises(HTTPException) as exc:
        get_user_from_token("invalid-token", db_session)

    assert exc.value.status_code == 401
    assert "Could not validate credentials" in exc.value.detail


def test_get_user_from_token_expired(db_session, user):
    token = create_access_token({"sub": user.id}, expires_delta=timedelta(seconds=-1))

    with pytest.raises(HTTPException) as exc:
        get_user_from_token(token, db_session)

    assert exc.value.detail == "Token has expired"


def test_get_user_from_token_rejects_malformed_subject(db_session):
    token = create_access_token({"sub": "42"})

    with pytest.raises(HTTPException) as exc:
        get_user_from_token(token, db_session)

    assert exc.value.status_code == 401


def test_extract_token_prefers_bearer_header():
    assert extract_token({"jwt": "cookie-token"}, "Bearer header-token") == "header-token"
    assert extract_token({"jwt": "cookie-token"}, None) == "cookie-token"
    assert extract_token({}, "Basic abc") is None


def test_signup_login_check_logout_flow(client):
    signup_response = client.post(
        "/api/auth/signup",
        json={"full_name": "Dana", "email": "dana@example.com", "password": "hunter22"},
    )
    assert signup_response.status_code == 201
    assert signup_response.json()["full_name"] == "Dana"
    assert "hashed_password" not in signup_response.json()

    check = client.get("/api/auth/check")
    assert check.status_code == 200
    assert check.json()["email"] == "dana@example.com"

    logout = client.post("/api/auth/logout")
    assert logout.json() == {"message": "Logged out successfully"}
    client.cookies.clear()
    assert client.get("/api/auth/check").status_code == 401

    login_response = client.post(
        "/api/auth/login", json={"email": "dana@example.com", "password": "hunter22"}
    )
    assert login_response.status_code == 200
    assert client.get("/api/auth/check").json()["id"] == signup_response.json()["id"]


def test_signup_validation_errors_use_message_body(client):
    response = client.post(
        "/api/auth/signup",
        json={"full_name": "Eve", "email": "not-an-email", "password": "hunter22"},
    )

    assert response.status_code == 400
    assert "email" in response.json()["message"]


def test_update_profile_stores_avatar(client, create_user, auth_headers, media_root):
    user = create_user()
    pixel = "R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7"

    response = client.put(
        "/api/auth/update-profile", json={"profile_pic": pixel}, headers=auth_headers(user)
    )

    assert response.status_code == 200
    assert response.json()["profile_pic"].endswith(".gif")
    assert any(media_root.rglob("*.gif"))


def test_update_profile_rejects_non_image(client, create_user, auth_headers):
    user = create_user()

    response = client.put(
        "/api/auth/update-profile",
        json={"profile_pic": "data:text/plain;base64,aGVsbG8="},
        headers=auth_headers(user),
    )

    assert response.status_code == 400
