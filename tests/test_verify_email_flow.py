from fastapi.testclient import TestClient

import app.api as api_module
from app.routes import auth


def test_verify_email_links_invitations_and_signs_in(monkeypatch):
    client = TestClient(api_module.app)
    linked = []

    monkeypatch.setattr(auth, "get_email_verification_token", lambda tok: {"user_id": 1} if tok == "t" else None)
    monkeypatch.setattr(auth, "get_user_by_id", lambda uid: {"id": uid, "email": "u@example.com", "role": "pharmacist"})
    monkeypatch.setattr(auth, "mark_user_email_verified", lambda uid: None)
    monkeypatch.setattr(auth, "mark_email_verification_token_used", lambda tok: None)
    monkeypatch.setattr(auth, "link_pending_invitations", lambda uid, email: linked.append((uid, email)) or 1)
    monkeypatch.setattr(auth, "create_session", lambda uid: "session-token")
    monkeypatch.setattr(auth, "set_session_cookie", lambda resp, token: resp.set_cookie("session_id", token))

    resp = client.get("/verify-email?token=t", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers.get("location") == "/dashboard"
    assert linked == [(1, "u@example.com")]


def test_verify_email_invalid_token(monkeypatch):
    client = TestClient(api_module.app)
    monkeypatch.setattr(auth, "get_email_verification_token", lambda tok: None)
    resp = client.get("/verify-email?token=bad")
    assert resp.status_code == 200
    assert "ogiltig verifieringslänk" in resp.text.lower()


def test_verify_resend_only_for_unverified(monkeypatch):
    sent = []
    monkeypatch.setattr(auth, "allow_request", lambda *a, **k: True)
    monkeypatch.setattr(auth, "validate_csrf", lambda req, tok: True)
    monkeypatch.setattr(auth, "send_verification_email", lambda req, user: sent.append(user["id"]) or True)

    client = TestClient(api_module.app)
    monkeypatch.setattr(auth, "get_user_by_email", lambda e: {"id": 3, "email": e, "email_verified_at": "2030-01-01"})
    client.post("/verify-email/resend", data={"email": "a@example.com", "csrf_token": "ok"})
    monkeypatch.setattr(auth, "get_user_by_email", lambda e: {"id": 4, "email": e, "email_verified_at": None})
    resp = client.post("/verify-email/resend", data={"email": "b@example.com", "csrf_token": "ok"})

    assert resp.status_code == 200
    assert sent == [4]
