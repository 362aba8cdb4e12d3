import types

from app import security
from app.routes import auth, public


def _dummy_request():
    return types.SimpleNamespace(
        client=types.SimpleNamespace(host="127.0.0.1"),
        cookies={security.CSRF_COOKIE_NAME: "cookie-token"},
    )


def test_login_rate_limit(monkeypatch):
    calls = {"count": 0}

    def fake_allow_request_with_remaining(key, limit=5, window_seconds=60):
        calls["count"] += 1
        allowed = calls["count"] < 2
        return allowed, (1 if allowed else 0)

    monkeypatch.setattr(auth, "allow_request_with_remaining", fake_allow_request_with_remaining)
    dummy_req = _dummy_request()

    # First attempt passes the limiter and fails on CSRF, the second one is throttled.
    resp1 = auth.login(dummy_req, email="anna@example.com", password="bad", csrf_token="wrong")
    resp2 = auth.login(dummy_req, email="anna@example.com", password="bad", csrf_token="wrong")
    assert resp1.status_code == 403
    assert resp2.status_code == 429


def test_signup_rate_limit(monkeypatch):
    calls = {"count": 0}

    def fake_allow_request(key, limit=5, window_seconds=60):
        calls["count"] += 1
        return calls["count"] < 2

    monkeypatch.setattr(public, "allow_request", fake_allow_request)
    dummy_req = _dummy_request()
    form = dict(
        email="anna@example.com",
        password="Passw0rd1",
        password2="Passw0rd1",
        role="pharmacist",
        full_name="Anna Andersson",
        pharmacy_name="",
        csrf_token="wrong",
    )

    resp1 = public.signup(request=dummy_req, **form)
    resp2 = public.signup(request=dummy_req, **form)
    assert resp1.status_code == 403
    assert resp2.status_code == 429


def test_real_limiter_throttles_per_key():
    for _ in range(3):
        assert security.allow_request("signup:10.0.0.1", limit=3, window_seconds=60) is True
    assert security.allow_request("signup:10.0.0.1", limit=3, window_seconds=60) is False
    assert security.allow_request("signup:10.0.0.2", limit=3, window_seconds=60) is True


def test_logout_without_session_redirects_home(monkeypatch):
    monkeypatch.setattr(auth, "get_current_user", lambda req: (None, None))
    monkeypatch.setattr(auth, "delete_session", lambda token: _unexpected())

    resp = auth.logout(types.SimpleNamespace(cookies={}))
    assert resp.status_code == 303
    assert resp.headers["location"] == "/"


def test_logout_deletes_session(monkeypatch):
    deleted = []
    monkeypatch.setattr(auth, "get_current_user", lambda req: ({"id": 1}, "tok"))
    monkeypatch.setattr(auth, "delete_session", deleted.append)

    resp = auth.logout(types.SimpleNamespace(cookies={"session_id": "tok"}))
    assert resp.status_code == 303
    assert deleted == ["tok"]


def _unexpected():
    raise AssertionError("delete_session must not be called")
