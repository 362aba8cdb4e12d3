import pytest
from fastapi.testclient import TestClient

import app.api as api_module
import app.auth_utils as auth_utils
from app.routes import auth, public

SIGNUP_FORM = {
    "email": "Anna@Example.com",
    "password": "Passw0rd1",
    "password2": "Passw0rd1",
    "role": "pharmacist",
    "full_name": "Anna Andersson",
    "pharmacy_name": "",
    "csrf_token": "ok",
}


def test_login_then_dashboard_redirects_when_session_missing(monkeypatch):
    client = TestClient(api_module.app)

    monkeypatch.setattr(auth, "allow_request_with_remaining", lambda *a, **k: (True, 9))
    monkeypatch.setattr(auth, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(
        auth,
        "get_user_by_email",
        lambda email: {"id": 1, "password_hash": "x", "email_verified_at": "2030-01-01T00:00:00"},
    )
    monkeypatch.setattr(auth, "verify_password", lambda pw, hash_: True)
    monkeypatch.setattr(auth, "create_session", lambda uid: "session-token")
    monkeypatch.setattr(auth, "set_session_cookie", lambda resp, token: resp.set_cookie("session_id", token))

    resp = client.post(
        "/login",
        data={"email": "anna@example.com", "password": "Passw0rd1", "csrf_token": "ok"},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/dashboard"
    assert "session_id" in resp.cookies

    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: (None, None))
    resp2 = client.get("/dashboard", follow_redirects=False)
    assert resp2.status_code == 303
    assert resp2.headers["location"] == "/login"


def test_login_unverified_user_gets_new_verification_link(monkeypatch):
    sent = []
    monkeypatch.setattr(auth, "allow_request_with_remaining", lambda *a, **k: (True, 9))
    monkeypatch.setattr(auth, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(
        auth,
        "get_user_by_email",
        lambda email: {"id": 5, "email": email, "password_hash": "x", "email_verified_at": None},
    )
    monkeypatch.setattr(auth, "verify_password", lambda pw, hash_: True)
    monkeypatch.setattr(auth, "send_verification_email", lambda req, user: sent.append(user["id"]) or True)
    monkeypatch.setattr(auth, "create_session", lambda uid: pytest.fail("no session for unverified users"))

    client = TestClient(api_module.app)
    resp = client.post(
        "/login",
        data={"email": "new@example.com", "password": "Passw0rd1", "csrf_token": "ok"},
        follow_redirects=False,
    )
    assert resp.status_code == 200
    assert "Bekräfta din e-post" in resp.text
    assert sent == [5]


def test_signup_rate_limit(monkeypatch):
    client = TestClient(api_module.app)
    monkeypatch.setattr(public, "allow_request", lambda *a, **k: False)
    monkeypatch.setattr(public, "validate_csrf", lambda req, tok: True)

    resp = client.post("/signup", data=SIGNUP_FORM, follow_redirects=False)
    assert resp.status_code == 429


def test_signup_creates_unverified_user_and_sends_link(monkeypatch):
    created = {}
    verification = []

    def fake_create_user(email, password, **kwargs):
        created.update(kwargs, email=email)
        return 7

    monkeypatch.setattr(public, "allow_request", lambda *a, **k: True)
    monkeypatch.setattr(public, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(public, "get_user_by_email", lambda e: None)
    monkeypatch.setattr(public, "create_user", fake_create_user)
    monkeypatch.setattr(public, "get_user_by_id", lambda uid: {"id": uid, "email": created["email"]})
    monkeypatch.setattr(public, "send_verification_email", lambda req, user: verification.append(user["id"]) or True)

    client = TestClient(api_module.app)
    resp = client.post("/signup", data=SIGNUP_FORM, follow_redirects=False)

    assert resp.status_code == 200
    assert "Kolla din inkorg" in resp.text
    assert created["email"] == "anna@example.com"
    assert created["role"] == "pharmacist"
    assert created["verified"] is False
    assert created["pharmacy_name"] is None
    assert verification == [7]


def test_signup_employer_requires_pharmacy_name(monkeypatch):
    monkeypatch.setattr(public, "allow_request", lambda *a, **k: True)
    monkeypatch.setattr(public, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(public, "create_user", lambda *a, **k: pytest.fail("must not create"))

    client = TestClient(api_module.app)
    resp = client.post("/signup", data={**SIGNUP_FORM, "role": "employer"}, follow_redirects=False)
    assert resp.status_code == 400
    assert "Apotekets namn krävs" in resp.text


def test_signup_rejects_admin_role(monkeypatch):
    monkeypatch.setattr(public, "allow_request", lambda *a, **k: True)
    monkeypatch.setattr(public, "validate_csrf", lambda req, tok: True)

    client = TestClient(api_module.app)
    resp = client.post("/signup", data={**SIGNUP_FORM, "role": "admin"}, follow_redirects=False)
    assert resp.status_code == 400
    assert "giltig roll" in resp.text


def test_signup_duplicate_email(monkeypatch):
    monkeypatch.setattr(public, "allow_request", lambda *a, **k: True)
    monkeypatch.setattr(public, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(public, "get_user_by_email", lambda e: {"id": 1})

    client = TestClient(api_module.app)
    resp = client.post("/signup", data=SIGNUP_FORM, follow_redirects=False)
    assert resp.status_code == 400
    assert "redan ett konto" in resp.text
