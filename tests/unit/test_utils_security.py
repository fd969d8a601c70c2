from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from storefront.auth import service as auth_service
from storefront.utils.security import get_current_user, get_optional_user, require_admin


def _make_app():
    app = FastAPI()

    @app.get("/me")
    def me(user=Depends(get_current_user)):
        return user

    @app.get("/maybe")
    def maybe(user=Depends(get_optional_user)):
        return {"user": user}

    @app.get("/admin")
    def admin(user=Depends(require_admin)):
        return {"ok": True}

    return app


def test_determine_role():
    assert auth_service.determine_role({"role": "admin"}) == "admin"
    assert auth_service.determine_role({"role": "ADMIN"}) == "admin"
    assert auth_service.determine_role(None) == "user"
    assert auth_service.determine_role({"role": "scanner"}) == "user"


def test_get_current_user_bearer_success(monkeypatch):
    monkeypatch.setattr(auth_service, "get_user_from_token", lambda token: {"id": "u1", "email": "a@b", "role": "user"})
    client = TestClient(_make_app())

    r = client.get("/me", headers={"Authorization": "Bearer tok-123"})
    assert r.status_code == 200
    assert r.json() == {"id": "u1", "email": "a@b", "role": "user"}


def test_get_current_user_missing_token_401():
    client = TestClient(_make_app())
    r = client.get("/me")
    assert r.status_code == 401
    assert "Non authentifié" in r.text


def test_session_cookie_is_not_accepted():
    client = TestClient(_make_app())
    client.cookies.set("sb_access", "cookie-token")
    assert client.get("/me").status_code == 401


def test_get_current_user_missing_id_401(monkeypatch):
    monkeypatch.setattr(auth_service, "get_user_from_token", lambda token: {"email": "x@y"})
    client = TestClient(_make_app())

    r = client.get("/me", headers={"Authorization": "Bearer tok"})
    assert r.status_code == 401
    assert "Session expirée" in r.text


def test_rejected_token_401(monkeypatch):
    def _boom(token):
        raise RuntimeError("invalid JWT")

    monkeypatch.setattr(auth_service, "get_user_from_token", _boom)
    client = TestClient(_make_app())
    assert client.get("/me", headers={"Authorization": "Bearer tok"}).status_code == 401


def test_optional_user_anonymous_and_authenticated(monkeypatch):
    monkeypatch.setattr(auth_service, "get_user_from_token", lambda token: {"id": "u1", "role": "user", "token": token})
    client = TestClient(_make_app())

    assert client.get("/maybe").json() == {"user": None}
    assert client.get("/maybe", headers={"Authorization": "Bearer tok"}).json()["user"]["token"] == "tok"


def test_require_admin_forbidden_and_allowed(monkeypatch):
    client = TestClient(_make_app())

    monkeypatch.setattr(auth_service, "get_user_from_token", lambda token: {"id": "u1", "role": "user"})
    assert client.get("/admin", headers={"Authorization": "Bearer tok"}).status_code == 403

    monkeypatch.setattr(auth_service, "get_user_from_token", lambda token: {"id": "u1", "role": "admin"})
    r_ok = client.get("/admin", headers={"Authorization": "Bearer tok"})
    assert r_ok.status_code == 200
    assert r_ok.json() == {"ok": True}
