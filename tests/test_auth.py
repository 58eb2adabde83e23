"""Test authentication endpoints and utilities."""

import jwt

from timecapsule.auth import create_access_token, hash_password, verify_password
from timecapsule.config import get_settings


class TestAuthUtilities:
    def test_hash_and_verify_password(self):
        hashed = hash_password("correct horse")
        assert hashed != "correct horse"
        assert verify_password("correct horse", hashed)
        assert not verify_password("wrong horse", hashed)

    def test_verify_against_garbage_hash(self):
        assert not verify_password("anything", "not-a-bcrypt-hash")

    def test_token_claims(self, make_user):
        user = make_user("alice")
        settings = get_settings()
        payload = jwt.decode(create_access_token(user), settings.secret_key, algorithms=[settings.jwt_algorithm])
        assert payload["username"] == "alice"
        assert payload["id"] == user.id
        assert payload["exp"] > payload["iat"]


class TestAuthRoutes:
    def test_register_login_and_me(self, client):
        response = client.post(
            "/auth/register",
            json={"username": "alice", "password": "pw12345", "email": "alice@example.com"},
        )
        assert response.status_code == 201

        login = client.post("/auth/login", json={"username": "alice", "password": "pw12345"})
        assert login.status_code == 200
        token = login.json()["token"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["username"] == "alice"
        assert me.json()["role"] == "USER"

    def test_register_duplicate_username(self, client, make_user):
        make_user("alice")
        response = client.post(
            "/auth/register",
            json={"username": "alice", "password": "pw", "email": "other@example.com"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Username already exists"

    def test_register_duplicate_email(self, client, make_user):
        make_user("alice")
        response = client.post(
            "/auth/register",
            json={"username": "alice2", "password": "pw", "email": "alice@example.com"},
        )
        assert response.status_code == 400

    def test_login_with_wrong_password(self, client, make_user):
        make_user("alice")
        response = client.post("/auth/login", json={"username": "alice", "password": "nope"})
        assert response.status_code == 401

    def test_login_unknown_user(self, client):
        response = client.post("/auth/login", json={"username": "nobody", "password": "nope"})
        assert response.status_code == 401
