import pytest
from fastapi.testclient import TestClient

import app.api as api_module
import app.auth_utils as auth_utils
from app import security
from app.routes import account, profile
from core.errors import BusinessRuleError


@pytest.fixture
def client():
    c = TestClient(api_module.app)
    c.cookies.set(security.CSRF_COOKIE_NAME, "tok")
    return c


def test_profile_save_normalises_form(client, monkeypatch):
    saved = {}
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 10, "role": "pharmacist"}, "s"))
    monkeypatch.setattr(profile, "update_own_profile", lambda user, fields: saved.update(fields))

    resp = client.post(
        "/profile",
        data={
            "csrf_token": "tok",
            "full_name": " Anna Andersson ",
            "city": "",
            "hourly_rate": "350,50",
            "notification_cities": "Lund, , Malmö ",
            "pharmacy_name": "ignored",
        },
        follow_redirects=False,
    )

    assert resp.status_code == 303
    assert resp.headers["location"] == "/profile?saved=1"
    assert saved["full_name"] == "Anna Andersson"
    assert saved["city"] is None
    assert saved["notification_cities"] == "Lund, Malmö"
    assert saved["email_notifications"] == 0
    assert "pharmacy_name" not in saved


def test_profile_save_shows_validation_error(client, monkeypatch):
    def refuse(user, fields):
        raise BusinessRuleError("Namn krävs.")

    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 10, "role": "pharmacist"}, "s"))
    monkeypatch.setattr(profile, "update_own_profile", refuse)

    resp = client.post("/profile", data={"csrf_token": "tok", "full_name": ""}, follow_redirects=False)
    assert resp.status_code == 400
    assert "Namn krävs." in resp.text


def test_profile_save_requires_csrf(client, monkeypatch):
    monkeypatch.setattr(auth_utils, "get_current_user", lambda req: ({"id": 10, "role": "pharmacist"}, "s"))
    resp = client.post("/profile", data={"csrf_token": "nope"}, follow_redirects=False)
    assert resp.status_code == 403


def test_delete_account_removes_data_and_signs_out(client, monkeypatch):
    deleted = []
    monkeypatch.setattr(account, "get_current_user", lambda req: ({"id": 10, "role": "säljare"}, "s"))
    monkeypatch.setattr(account, "delete_user_data", lambda uid: deleted.append(uid) or [])
    monkeypatch.setattr(account, "delete_session", lambda tok: pytest.fail("session already gone"))

    resp = client.post("/account/delete", data={"csrf_token": "tok"}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/"
    assert deleted == [10]


def test_admin_account_cannot_be_deactivated(client, monkeypatch):
    monkeypatch.setattr(account, "get_current_user", lambda req: ({"id": 1, "role": "admin"}, "s"))
    monkeypatch.setattr(account, "deactivate_user", lambda uid: pytest.fail("admins stay active"))

    resp = client.post("/account/deactivate", data={"csrf_token": "tok"}, follow_redirects=False)
    assert resp.headers["location"] == "/profile"


def test_delete_account_tells_employers_about_reopened_work(client, monkeypatch):
    sent = []
    reopened = [
        {"kind": "shift", "id": 5, "employer_id": 2, "title": "Kvällspass", "date": "2030-01-01"},
        {"kind": "posting", "id": 8, "employer_id": 3, "title": "Sommarvikariat", "date": "2030-06-01"},
    ]
    monkeypatch.setattr(account, "get_current_user", lambda req: ({"id": 10, "role": "pharmacist"}, "s"))
    monkeypatch.setattr(account, "delete_user_data", lambda uid: reopened)
    monkeypatch.setattr(
        account, "create_and_send_notification", lambda uid, title, msg, link, **kw: sent.append((uid, link))
    )

    resp = client.post("/account/delete", data={"csrf_token": "tok"}, follow_redirects=False)
    assert resp.status_code == 303
    assert sent == [(2, "/employer/shifts"), (3, "/employer/postings")]
