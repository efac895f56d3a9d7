"""
tests/test_auth_api.py -- Integration tests for /api/auth/* and the bearer guard.

Covers:
  - signup: 201 with summary + token, no password material, duplicate -> 409
  - signup validation: weak password, bad email, short name -> 400 with fields
  - signin: success stamps last_login; wrong password and unknown email share
    one 401; deactivated account -> 401 account_deactivated
  - verify: missing, malformed, forged, and unknown-subject tokens -> 401
  - Cache-Control: no-store on token responses
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from auth.tokens import TokenService
from conftest import TEST_PASSWORD
from core.config import get_settings


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestSignup:
    def test_signup_returns_summary_and_token(self, api_client: TestClient) -> None:
        resp = api_client.post(
            "/api/auth/signup",
            json={"name": "  Ada Lovelace ", "email": "Ada@Example.com", "password": TEST_PASSWORD},
        )
        assert resp.status_code == 201
        assert resp.headers["cache-control"] == "no-store"
        body = resp.json()
        assert body["token"]
        assert body["token_type"] == "bearer"
        user = body["user"]
        assert user["email"] == "ada@example.com"
        assert user["name"] == "Ada Lovelace"
        assert user["subscription_tier"] == "free"
        assert user["image_count"] == 0
        assert "password" not in resp.text
        assert "hash" not in resp.text

    def test_duplicate_email_is_409(self, api_client: TestClient, signup) -> None:
        signup(email="dup@example.com")
        resp = api_client.post(
            "/api/auth/signup",
            json={"name": "Again", "email": "DUP@example.com", "password": TEST_PASSWORD},
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_weak_password_is_400_with_field(self, api_client: TestClient) -> None:
        resp = api_client.post(
            "/api/auth/signup",
            json={"name": "Weak", "email": "weak@example.com", "password": "alllowercase1"},
        )
        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "validation_error"
        assert [f["field"] for f in error["fields"]] == ["password"]

    def test_bad_email_and_short_name_are_both_reported(self, api_client: TestClient) -> None:
        resp = api_client.post(
            "/api/auth/signup",
            json={"name": "A", "email": "not-an-email", "password": TEST_PASSWORD},
        )
        assert resp.status_code == 400
        fields = {f["field"] for f in resp.json()["error"]["fields"]}
        assert fields == {"name", "email"}

    @pytest.mark.parametrize("email", ["x@example..com", "a,b@example.com", "a@b.c)", "<x>@y.z", "two@@example.com"])
    def test_malformed_email_is_rejected(self, api_client: TestClient, email: str) -> None:
        resp = api_client.post("/api/auth/signup", json={"name": "Mal", "email": email, "password": TEST_PASSWORD})
        assert resp.status_code == 400
        assert [f["field"] for f in resp.json()["error"]["fields"]] == ["email"]
        assert api_client.app.state.credentials.find_by_email(email) is None


class TestSignin:
    def test_signin_success(self, api_client: TestClient, signup) -> None:
        signup(email="bob@example.com")
        resp = api_client.post("/api/auth/signin", json={"email": "BOB@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "no-store"
        body = resp.json()
        assert body["user"]["last_login"] is not None
        assert api_client.get("/api/auth/verify", headers=_auth(body["token"])).status_code == 200

    def test_wrong_password_and_unknown_email_are_indistinguishable(self, api_client: TestClient, signup) -> None:
        signup(email="carol@example.com")
        wrong = api_client.post("/api/auth/signin", json={"email": "carol@example.com", "password": "Nope12345"})
        unknown = api_client.post("/api/auth/signin", json={"email": "ghost@example.com", "password": "Nope12345"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["code"] == "invalid_credentials"

    def test_malformed_email_is_400_not_401(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/auth/signin", json={"email": "x@example..com", "password": TEST_PASSWORD})
        assert resp.status_code == 400
        assert resp.json()["error"]["fields"][0]["field"] == "email"

    def test_deactivated_account_cannot_sign_in(self, api_client: TestClient, signup) -> None:
        token, _ = signup(email="dave@example.com")
        resp = api_client.request(
            "DELETE", "/api/users/account", headers=_auth(token), json={"password": TEST_PASSWORD}
        )
        assert resp.status_code == 200

        resp = api_client.post("/api/auth/signin", json={"email": "dave@example.com", "password": TEST_PASSWORD})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "account_deactivated"

    def test_deactivated_account_with_wrong_password_looks_unknown(self, api_client: TestClient, signup) -> None:
        token, _ = signup(email="erin@example.com")
        api_client.request("DELETE", "/api/users/account", headers=_auth(token), json={"password": TEST_PASSWORD})
        resp = api_client.post("/api/auth/signin", json={"email": "erin@example.com", "password": "Wrong1234"})
        assert resp.json()["error"]["code"] == "invalid_credentials"


class TestGuard:
    def test_verify_with_valid_token(self, api_client: TestClient, signup) -> None:
        token, user = signup()
        resp = api_client.get("/api/auth/verify", headers=_auth(token))
        assert resp.status_code == 200
        assert resp.json()["user_id"] == user["user_id"]

    def test_missing_token(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/auth/verify")
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"
        assert resp.json()["error"]["code"] == "missing_credential"

    def test_non_bearer_scheme_counts_as_missing(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/auth/verify", headers={"Authorization": "Basic dXNlcjpwYXNz"})
        assert resp.json()["error"]["code"] == "missing_credential"

    def test_malformed_token(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/auth/verify", headers=_auth("garbage"))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "malformed_token"

    def test_forged_token(self, api_client: TestClient, signup) -> None:
        _, user = signup()
        forged = TokenService("f" * 32).issue(user["user_id"], user["email"])
        resp = api_client.get("/api/auth/verify", headers=_auth(forged))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_signature"

    def test_expired_token(self, api_client: TestClient, signup) -> None:
        _, user = signup()
        expired = TokenService(get_settings().secret_key, lifetime_seconds=-60).issue(
            user["user_id"], user["email"]
        )
        resp = api_client.get("/api/auth/verify", headers=_auth(expired))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "token_expired"

    def test_token_for_unknown_subject(self, api_client: TestClient) -> None:
        token = api_client.app.state.tokens.issue("00000000-0000-0000-0000-000000000000", "ghost@example.com")
        resp = api_client.get("/api/auth/verify", headers=_auth(token))
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unknown_subject"
