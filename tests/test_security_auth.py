import types

import pytest

import app.auth_utils as auth_utils
from app import security
from app.routes import admin, auth, public
from core.errors import PermissionDeniedError


class DummyReq:
    def __init__(self, cookies=None):
        self.cookies = cookies or {}
        self.client = types.SimpleNamespace(host="127.0.0.1")


def test_csrf_validation_success_and_failure():
    token = security.issue_csrf_token()
    assert security.validate_csrf(DummyReq({security.CSRF_COOKIE_NAME: token}), token) is True
    assert security.validate_csrf(DummyReq({security.CSRF_COOKIE_NAME: token}), "wrong") is False
    assert security.validate_csrf(DummyReq(), token) is False
    assert security.validate_csrf(DummyReq({security.CSRF_COOKIE_NAME: token}), "") is False


def test_issue_csrf_token_reuses_existing_cookie():
    assert security.issue_csrf_token("abc") == "abc"
    assert security.issue_csrf_token(None) != security.issue_csrf_token(None)


def test_rate_limit_sliding_window():
    key = "test:rl"
    assert security.allow_request_with_remaining(key, limit=2, window_seconds=60) == (True, 1)
    assert security.allow_request_with_remaining(key, limit=2, window_seconds=60) == (True, 0)
    assert security.allow_request_with_remaining(key, limit=2, window_seconds=60) == (False, 0)


@pytest.mark.parametrize("role", ["employer", "pharmacist", "säljare", "egenvårdsrådgivare"])
def test_admin_users_forbidden_for_non_admin(monkeypatch, role):
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 2, "role": role}, "tok"))
    monkeypatch.setattr(admin, "list_users", lambda **kw: pytest.fail("must not query users"))

    resp = admin.admin_users(DummyReq())
    assert resp.status_code == 403


def test_admin_shifts_redirects_when_not_logged_in(monkeypatch):
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: (None, None))
    monkeypatch.setattr(admin, "list_all_shifts_admin", lambda **kw: [])

    resp = admin.admin_shifts(DummyReq())
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"


def test_admin_verify_toggles_license(monkeypatch):
    calls = []
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 1, "role": "admin"}, "tok"))
    monkeypatch.setattr(admin, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(admin, "get_profile", lambda uid: {"user_id": uid, "license_verified": 0, "active": 1})
    monkeypatch.setattr(
        admin, "set_verification_status", lambda actor, uid, verified, active=None: calls.append((uid, verified, active))
    )

    resp = admin.admin_user_verify(DummyReq(), user_id=9, csrf_token="ok")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/admin/users"
    assert calls == [(9, True, None)]


def test_admin_activate_keeps_verification(monkeypatch):
    calls = []
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 1, "role": "admin"}, "tok"))
    monkeypatch.setattr(admin, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(admin, "get_profile", lambda uid: {"user_id": uid, "license_verified": 1, "active": 1})
    monkeypatch.setattr(
        admin, "set_verification_status", lambda actor, uid, verified, active=None: calls.append((uid, verified, active))
    )

    admin.admin_user_activate(DummyReq(), user_id=9, csrf_token="ok")
    assert calls == [(9, True, False)]


def test_admin_toggle_shows_business_rule_errors(monkeypatch):
    def deny(*args, **kwargs):
        raise PermissionDeniedError("Administratörer kan inte ändras.")

    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 1, "role": "admin"}, "tok"))
    monkeypatch.setattr(admin, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(admin, "get_profile", lambda uid: {"user_id": uid, "license_verified": 0, "active": 1})
    monkeypatch.setattr(admin, "set_verification_status", deny)
    monkeypatch.setattr(admin, "error_page", lambda msg, code=400, **kw: types.SimpleNamespace(status_code=code, msg=msg))

    resp = admin.admin_user_verify(DummyReq(), user_id=1, csrf_token="ok")
    assert resp.status_code == 403
    assert resp.msg == "Administratörer kan inte ändras."


def test_admin_toggle_rejects_bad_csrf(monkeypatch):
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 1, "role": "admin"}, "tok"))
    resp = admin.admin_user_verify(DummyReq({security.CSRF_COOKIE_NAME: "a"}), user_id=9, csrf_token="b")
    assert resp.status_code == 403


def test_login_rejects_missing_csrf(monkeypatch):
    monkeypatch.setattr(auth, "allow_request_with_remaining", lambda *a, **k: (True, 9))
    resp = auth.login(DummyReq({security.CSRF_COOKIE_NAME: "cookie-token"}), email="a@example.com", password="x", csrf_token="")
    assert resp.status_code == 403


def test_password_reset_rejects_missing_csrf(monkeypatch):
    monkeypatch.setattr(auth, "allow_request_with_remaining", lambda *a, **k: (True, 5))
    resp = auth.password_reset_request(
        DummyReq({security.CSRF_COOKIE_NAME: "cookie-token"}), email="a@example.com", csrf_token="wrong"
    )
    assert resp.status_code == 403


def test_password_reset_blocked_for_admin(monkeypatch):
    monkeypatch.setattr(auth, "allow_request_with_remaining", lambda *a, **k: (True, 4))
    monkeypatch.setattr(auth, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(auth, "get_user_by_email", lambda e: {"id": 1, "email": e, "role": "admin"})
    monkeypatch.setattr(auth, "create_password_reset_token", lambda uid: pytest.fail("no token for admin"))

    resp = auth.password_reset_request(DummyReq(), email="admin@example.com", csrf_token="ok")
    assert resp.status_code == 200
    assert "inte tillgänglig" in resp.body.decode()


def test_signup_rejects_missing_csrf(monkeypatch):
    monkeypatch.setattr(public, "allow_request", lambda *a, **k: True)
    resp = public.signup(
        request=DummyReq({security.CSRF_COOKIE_NAME: "cookie-token"}),
        email="a@example.com",
        password="Passw0rd1",
        password2="Passw0rd1",
        role="pharmacist",
        full_name="Anna",
        pharmacy_name="",
        csrf_token="wrong",
    )
    assert resp.status_code == 403
