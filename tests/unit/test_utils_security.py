import types
import sys
from fastapi import FastAPI, Depends
from fastapi.testclient import TestClient

from storefront.utils.security import get_current_user, extract_bearer_token, COOKIE_NAME


def _make_app():
    app = FastAPI()

    @app.get("/me")
    def me(user=Depends(get_current_user)):
        return user

    return app

def _fake_auth(monkeypatch, fn):
    monkeypatch.setitem(sys.modules, "storefront.auth.service", types.SimpleNamespace(get_user_from_token=fn))

def test_get_current_user_bearer_success(monkeypatch):
    _fake_auth(monkeypatch, lambda token: {"id": "u1", "email": "a@b", "token": token})
    client = TestClient(_make_app())

    r = client.get("/me", headers={"Authorization": "Bearer tok-123"})
    assert r.status_code == 200
    assert r.json() == {"id": "u1", "email": "a@b", "token": "tok-123"}

def test_get_current_user_cookie_success(monkeypatch):
    _fake_auth(monkeypatch, lambda token: {"id": "u1", "email": "a@b", "token": token})
    client = TestClient(_make_app())
    client.cookies.set(COOKIE_NAME, "cookie-token")

    r = client.get("/me")
    assert r.status_code == 200
    assert r.json()["token"] == "cookie-token"

def test_get_current_user_missing_token_401(monkeypatch):
    _fake_auth(monkeypatch, lambda token: {"id": "u1", "email": "a@b"})
    r = TestClient(_make_app()).get("/me")
    assert r.status_code == 401
    assert "Non authentifié" in r.text

def test_get_current_user_missing_email_401(monkeypatch):
    _fake_auth(monkeypatch, lambda token: {"id": "u1"})
    r = TestClient(_make_app()).get("/me", headers={"Authorization": "Bearer tok"})
    assert r.status_code == 401
    assert "Session expirée" in r.text

def test_get_current_user_auth_service_error_401(monkeypatch):
    def _boom(token):
        raise RuntimeError("invalid JWT")
    _fake_auth(monkeypatch, _boom)
    r = TestClient(_make_app()).get("/me", headers={"Authorization": "Bearer tok"})
    assert r.status_code == 401

def test_extract_bearer_token_prefers_header():
    request = types.SimpleNamespace(headers={"Authorization": "Bearer h"}, cookies={COOKIE_NAME: "c"})
    assert extract_bearer_token(request) == "h"
    request = types.SimpleNamespace(headers={"Authorization": "Basic x"}, cookies={})
    assert extract_bearer_token(request) is None
