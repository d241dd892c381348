"""
Tests for authentication utilities in serene/auth.py.

Tests token extraction, HS256 verification and auth decorator behavior.
"""
from __future__ import annotations

import time

import pytest
from flask import Flask, g, jsonify
from jose import jwt

from serene import auth
from serene.auth import get_auth_token, optional_auth, require_auth, verify_token

SECRET = "test-jwt-secret"


def _token(sub="user-a", aud="authenticated", secret=SECRET, exp_offset=3600):
    payload = {"sub": sub, "aud": aud, "exp": int(time.time()) + exp_offset}
    return jwt.encode(payload, secret, algorithm="HS256")


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture()
def app():
    """Minimal Flask app with one protected and one optional route."""
    app = Flask(__name__)
    app.config["TESTING"] = True

    @app.get("/protected")
    @require_auth
    def protected():
        return jsonify({"user": g.user_id})

    @app.get("/optional")
    @optional_auth
    def optional():
        return jsonify({"user": g.user_id})

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def shared_secret(monkeypatch):
    monkeypatch.setattr(auth, "SUPABASE_JWT_SECRET", SECRET)
    return SECRET


# ============================================================================
# get_auth_token
# ============================================================================


def test_get_auth_token_extracts_bearer_token(app):
    """Extracts token from Bearer authorization header."""
    with app.test_request_context(headers={"Authorization": "Bearer my-jwt-token"}):
        assert get_auth_token() == "my-jwt-token"


def test_get_auth_token_returns_none_without_header(app):
    """Returns None when Authorization header is missing."""
    with app.test_request_context():
        assert get_auth_token() is None


def test_get_auth_token_returns_none_for_non_bearer(app):
    """Returns None for non-Bearer auth schemes."""
    with app.test_request_context(headers={"Authorization": "Basic dXNlcjpwYXNz"}):
        assert get_auth_token() is None


def test_get_auth_token_returns_none_for_malformed_bearer(app):
    """Returns None when Bearer prefix is present but lowercase."""
    with app.test_request_context(headers={"Authorization": "bearer my-token"}):
        assert get_auth_token() is None


def test_get_auth_token_returns_empty_for_bearer_only(app):
    """Returns empty string when only 'Bearer ' is present (no token)."""
    with app.test_request_context(headers={"Authorization": "Bearer "}):
        assert get_auth_token() == ""


# ============================================================================
# verify_token
# ============================================================================


def test_verify_token_accepts_valid_hs256(shared_secret):
    payload = verify_token(_token())
    assert payload["sub"] == "user-a"


def test_verify_token_rejects_wrong_secret(shared_secret):
    assert verify_token(_token(secret="other-secret")) is None


def test_verify_token_rejects_wrong_audience(shared_secret):
    assert verify_token(_token(aud="anon")) is None


def test_verify_token_rejects_expired(shared_secret):
    assert verify_token(_token(exp_offset=-60)) is None


def test_verify_token_rejects_garbage(shared_secret):
    assert verify_token("not-a-jwt") is None


# ============================================================================
# Decorators
# ============================================================================


def test_require_auth_with_test_user_header(client):
    """Test user header works in testing mode."""
    resp = client.get("/protected", headers={"X-Test-User-Id": "test-user"})
    assert resp.status_code == 200
    assert resp.get_json() == {"user": "test-user"}


def test_require_auth_returns_401_without_token(client):
    resp = client.get("/protected")
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Missing authentication token"}


def test_require_auth_returns_401_for_invalid_token(client, shared_secret):
    resp = client.get("/protected", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Invalid authentication token"}


def test_require_auth_accepts_signed_token(client, shared_secret):
    resp = client.get("/protected", headers={"Authorization": f"Bearer {_token(sub='user-z')}"})
    assert resp.status_code == 200
    assert resp.get_json() == {"user": "user-z"}


def test_test_header_ignored_outside_testing(app, client):
    app.config["TESTING"] = False
    resp = client.get("/protected", headers={"X-Test-User-Id": "test-user"})
    assert resp.status_code == 401


def test_optional_auth_allows_anonymous(client):
    resp = client.get("/optional")
    assert resp.status_code == 200
    assert resp.get_json() == {"user": None}


def test_optional_auth_picks_up_valid_token(client, shared_secret):
    resp = client.get("/optional", headers={"Authorization": f"Bearer {_token(sub='user-q')}"})
    assert resp.get_json() == {"user": "user-q"}
