import time
from datetime import timedelta
from uuid import uuid4

from fastapi.testclient import TestClient
from jose import jwt

from app import crud
from app.core.config import settings
from app.core.security import create_access_token, decode_access_token


def test_register_then_login(client: TestClient):
    response = client.post(
        "/api/users/register",
        json={"name": "Alice", "email": "alice@example.com", "password": "s3cret"},
    )
    assert response.status_code == 201
    registered = response.json()
    assert set(registered) == {"token", "userId"}

    response = client.post(
        "/api/users/login",
        json={"email": "alice@example.com", "password": "s3cret"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["userId"] == registered["userId"]
    assert str(decode_access_token(body["token"])) == registered["userId"]


def test_register_duplicate_email(client: TestClient, register):
    register(name="Alice", email="dup@example.com")
    response = client.post(
        "/api/users/register",
        json={"name": "Other", "email": "dup@example.com", "password": "password"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists"


def test_register_duplicate_email_race(client: TestClient, register, monkeypatch):
    # The other registration commits between our lookup and our insert
    register(name="Alice", email="race@example.com")
    monkeypatch.setattr(crud, "get_user_by_email", lambda db, email: None)

    response = client.post(
        "/api/users/register",
        json={"name": "Other", "email": "race@example.com", "password": "password"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists"


def test_register_missing_fields(client: TestClient):
    response = client.post("/api/users/register", json={"email": "nobody@example.com"})
    assert response.status_code == 400


def test_login_wrong_password(client: TestClient, register):
    register(name="Bob", password="right")
    response = client.post(
        "/api/users/login", json={"email": "bob@example.com", "password": "wrong"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid credentials"


def test_login_unknown_email(client: TestClient):
    response = client.post(
        "/api/users/login", json={"email": "ghost@example.com", "password": "x"}
    )
    assert response.status_code == 400


def test_new_user_profile(client: TestClient, register):
    user_id, headers = register(name="Carol")
    response = client.get("/api/users/me", headers=headers)
    assert response.status_code == 200
    profile = response.json()
    assert profile["id"] == user_id
    assert profile["name"] == "Carol"
    assert profile["postedRecipes"] == 0
    assert profile["likedRecipes"] == 0
    assert profile["rank"] == "Beginner"
    assert "password" not in profile
    assert "hashedPassword" not in profile


def test_update_profile(client: TestClient, register):
    _, headers = register(name="Dave")
    response = client.put(
        "/api/users/me",
        headers=headers,
        json={"name": "David", "email": "david@example.com", "avatar": "/uploads/images/me.png"},
    )
    assert response.status_code == 200
    profile = response.json()
    assert profile["name"] == "David"
    assert profile["email"] == "david@example.com"
    assert profile["avatar"] == "/uploads/images/me.png"

    # Partial update leaves the other fields alone
    response = client.put("/api/users/me", headers=headers, json={"avatar": ""})
    assert response.json()["name"] == "David"


def test_update_profile_email_taken(client: TestClient, register):
    register(name="Erin")
    _, headers = register(name="Frank")
    response = client.put("/api/users/me", headers=headers, json={"email": "erin@example.com"})
    assert response.status_code == 400


def test_update_profile_email_taken_race(client: TestClient, register, monkeypatch):
    register(name="Gina")
    _, headers = register(name="Hank")
    monkeypatch.setattr(crud, "get_user_by_email", lambda db, email: None)

    response = client.put("/api/users/me", headers=headers, json={"email": "gina@example.com"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already in use"


def test_me_for_deleted_user(client: TestClient):
    headers = {"Authorization": f"Bearer {create_access_token(uuid4())}"}
    response = client.get("/api/users/me", headers=headers)
    assert response.status_code == 404


# ---------------------------------------------------------------------------
# Auth guard
# ---------------------------------------------------------------------------


def test_missing_token_is_unauthenticated(client: TestClient):
    response = client.get("/api/users/me")
    assert response.status_code == 401
    assert response.json()["detail"] == "No token, authorization denied"


def test_garbage_token_is_invalid(client: TestClient):
    response = client.get("/api/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token is not valid"


def test_expired_token_is_invalid(client: TestClient, register):
    user_id, _ = register(name="Gina")
    expired = create_access_token(user_id, expires_delta=timedelta(seconds=-1))
    response = client.get("/api/users/me", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token is not valid"


def test_token_signed_with_other_secret(client: TestClient, register):
    user_id, _ = register(name="Hank")
    forged = jwt.encode({"sub": user_id}, "another-secret", algorithm=settings.ALGORITHM)
    response = client.get("/api/users/me", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401


def test_token_without_subject(client: TestClient):
    token = jwt.encode({"foo": "bar"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    response = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token is not valid"


def test_default_token_lifetime_is_one_hour(register):
    user_id, _ = register(name="Ivy")
    token = create_access_token(user_id)
    claims = jwt.get_unverified_claims(token)
    assert claims["sub"] == user_id
    assert 3590 < claims["exp"] - time.time() <= 3600
