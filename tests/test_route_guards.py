import pytest
from fastapi.testclient import TestClient

import app.api as api_module
import app.auth_utils as auth_utils
from app import security
from app.routes import postings, schedules, shifts, staff
from core import database as db
from core.errors import ConflictError, NotFoundError
from core.scheduling import GenerationResult

EMPLOYER = {"id": 1, "role": "employer", "email": "apotek@example.com"}
PHARMACIST = {"id": 10, "role": "pharmacist", "email": "farm@example.com"}


@pytest.fixture
def client():
    c = TestClient(api_module.app)
    c.cookies.set(security.CSRF_COOKIE_NAME, "tok")
    return c


@pytest.fixture
def login(monkeypatch):
    def _login(user):
        monkeypatch.setattr(auth_utils, "get_current_user", lambda req: (user, "session"))

    return _login


@pytest.mark.parametrize(
    "path",
    ["/shifts/5/delete", "/employer/schedules/2/delete", "/postings/3/delete", "/employer/staff/4/end"],
)
def test_employer_posts_need_csrf(client, login, path):
    login(EMPLOYER)
    resp = client.post(path, data={"csrf_token": "other"}, follow_redirects=False)
    assert resp.status_code == 403
    assert "CSRF" in resp.text


@pytest.mark.parametrize("path", ["/employer/schedules", "/employer/staff", "/shifts/new", "/postings/new"])
def test_employee_cannot_open_employer_pages(client, login, path):
    login(PHARMACIST)
    resp = client.get(path, follow_redirects=False)
    assert resp.status_code == 403


def test_employer_cannot_apply_for_shift(client, login):
    login(EMPLOYER)
    resp = client.post("/shifts/5/apply", data={"csrf_token": "tok"}, follow_redirects=False)
    assert resp.status_code == 403


def test_anonymous_is_sent_to_login(client, login):
    login(None)
    resp = client.get("/my-schedule", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login"


def test_apply_conflict_renders_error_page(client, login, monkeypatch):
    def conflict(user, shift_id, notes):
        raise ConflictError("Du har redan ansökt till detta pass.")

    login(PHARMACIST)
    monkeypatch.setattr(shifts, "apply_for_shift", conflict)
    resp = client.post("/shifts/5/apply", data={"csrf_token": "tok"}, follow_redirects=False)
    assert resp.status_code == 409
    assert "Du har redan ansökt till detta pass." in resp.text


def test_apply_success_redirects_to_applications(client, login, monkeypatch):
    calls = []
    login(PHARMACIST)
    monkeypatch.setattr(shifts, "apply_for_shift", lambda user, shift_id, notes: calls.append((shift_id, notes)) or 1)
    resp = client.post("/shifts/5/apply", data={"csrf_token": "tok", "notes": "Kan jobba"}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/my-applications"
    assert calls == [(5, "Kan jobba")]


def test_new_shift_form_errors_are_shown(client, login, monkeypatch):
    login(EMPLOYER)
    monkeypatch.setattr(shifts, "create_shift", lambda *a: pytest.fail("must not create"))
    resp = client.post(
        "/shifts/new",
        data={"csrf_token": "tok", "title": "Pass", "date": "2030-01-07", "start_time": "8", "end_time": "17:00"},
        follow_redirects=False,
    )
    assert resp.status_code == 400
    assert "TT:MM" in resp.text


def test_new_shift_with_extra_dates(client, login, monkeypatch):
    captured = {}
    login(EMPLOYER)
    monkeypatch.setattr(shifts, "create_shift", lambda user, data, dates: captured.update(data=data, dates=dates) or [1])
    resp = client.post(
        "/shifts/new",
        data={
            "csrf_token": "tok",
            "title": "Pass",
            "date": "2030-01-07",
            "extra_dates": "2030-01-08, 2030-01-09",
            "start_time": "08:00",
            "end_time": "17:00",
            "required_role": "säljare",
            "hourly_rate": "210",
        },
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert captured["dates"] == ["2030-01-07", "2030-01-08", "2030-01-09"]
    assert captured["data"]["hourly_rate"] == 210.0
    assert captured["data"]["is_urgent"] is False


def test_admin_delete_returns_to_admin_list(client, login, monkeypatch):
    login({"id": 99, "role": "admin"})
    monkeypatch.setattr(shifts, "delete_shift", lambda user, shift_id: None)
    resp = client.post("/shifts/5/delete", data={"csrf_token": "tok"}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/admin/shifts"


def test_schedule_csv_download(client, login, monkeypatch):
    login(EMPLOYER)
    monkeypatch.setattr(
        schedules, "csv_for_schedule", lambda user, sid: ("schedule_Vecka_2_2030-01-07_to_2030-01-13.csv", "\ufeffDate\n")
    )
    resp = client.get("/employer/schedules/2/csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="schedule_Vecka_2_2030-01-07_to_2030-01-13.csv"' in resp.headers["content-disposition"]
    assert resp.content.startswith(b"\xef\xbb\xbf")


def test_schedule_of_other_employer_is_404(client, login, monkeypatch):
    def hidden(user, sid):
        raise NotFoundError("Schemat hittades inte.")

    login(EMPLOYER)
    monkeypatch.setattr(schedules, "get_schedule", hidden)
    resp = client.get("/employer/schedules/2")
    assert resp.status_code == 404


def test_schedule_save_rejects_garbage_json(client, login, monkeypatch):
    login(EMPLOYER)
    monkeypatch.setattr(schedules, "save", lambda *a: pytest.fail("must not save"))
    resp = client.post(
        "/employer/schedules/save",
        data={"csrf_token": "tok", "schedule_name": "V2", "start_date": "2030-01-07", "end_date": "2030-01-13", "slots": "{"},
        follow_redirects=False,
    )
    assert resp.status_code == 400


def test_schedule_save_redirects_to_detail(client, login, monkeypatch):
    saved = []
    login(EMPLOYER)
    monkeypatch.setattr(
        schedules, "save", lambda user, name, start, end, slots, sid: saved.append((name, slots, sid)) or 12
    )
    resp = client.post(
        "/employer/schedules/save",
        data={
            "csrf_token": "tok",
            "schedule_name": "V2",
            "start_date": "2030-01-07",
            "end_date": "2030-01-13",
            "slots": '[{"date": "2030-01-07"}]',
        },
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/employer/schedules/12"
    assert saved == [("V2", [{"date": "2030-01-07"}], None)]


def test_posting_apply_for_employee(client, login, monkeypatch):
    login(PHARMACIST)
    monkeypatch.setattr(postings, "apply_for_posting", lambda user, pid, notes: 1)
    resp = client.post("/postings/3/apply", data={"csrf_token": "tok"}, follow_redirects=False)
    assert resp.status_code == 303


def test_invite_goes_through_service(client, login, monkeypatch):
    invited = []
    login(EMPLOYER)
    monkeypatch.setattr(
        staff, "invite_employee", lambda user, email, rtype: invited.append((email, rtype)) or {"success": True, "user_exists": False}
    )
    resp = client.post(
        "/employer/staff/invite",
        data={"csrf_token": "tok", "email": "ny@example.com", "relationship_type": "timanställd"},
        follow_redirects=False,
    )
    assert resp.status_code in (200, 303)
    assert invited == [("ny@example.com", "timanställd")]


OPEN_SHIFT = {
    "id": 5,
    "employer_id": 1,
    "employer_name": "Apotek Norr",
    "title": "Kvällspass",
    "date": "2030-05-01",
    "start_time": "16:00",
    "end_time": "21:00",
    "required_role": "pharmacist",
    "status": "open",
    "assigned_to": None,
}


@pytest.mark.parametrize("active,has_button", [(None, True), ({"id": 3, "status": "pending"}, False)])
def test_shift_detail_apply_button_follows_active_application(client, login, monkeypatch, active, has_button):
    login(PHARMACIST)
    monkeypatch.setattr(shifts, "get_shift", lambda sid: dict(OPEN_SHIFT))
    monkeypatch.setattr(shifts, "can_view_shift", lambda user, sid: True)
    # A withdrawn application is not active, so the store returns None for it.
    monkeypatch.setattr(shifts, "find_active_application", lambda sid, uid: active)

    resp = client.get("/shifts/5")
    assert resp.status_code == 200
    assert ('action="/shifts/5/apply"' in resp.text) is has_button


def test_shift_list_offers_reapply_after_withdrawal(client, login, monkeypatch):
    login(PHARMACIST)
    monkeypatch.setattr(shifts, "list_available_shifts", lambda user, **kw: [dict(OPEN_SHIFT)])
    monkeypatch.setattr(shifts, "find_active_application", lambda sid, uid: None)

    resp = client.get("/shifts")
    assert 'action="/shifts/5/apply"' in resp.text


def test_sick_button_only_on_filled_shifts(client, login, monkeypatch):
    login(PHARMACIST)
    events = [
        {"event_id": "shift-5", "title": "Kommande", "start_time": "2030-05-01T16:00", "end_time": "2030-05-01T21:00",
         "event_type": "shift", "location": None, "status": "filled"},
        {"event_id": "shift-6", "title": "Klart", "start_time": "2020-05-01T16:00", "end_time": "2020-05-01T21:00",
         "event_type": "shift", "location": None, "status": "completed"},
    ]
    monkeypatch.setattr(shifts, "get_my_full_schedule", lambda user: events)

    resp = client.get("/my-schedule")
    assert "/shifts/5/report-sick" in resp.text
    assert "/shifts/6/report-sick" not in resp.text


@pytest.mark.parametrize("lunch,expected", [("0", 0), ("", 30), ("45", 45)])
def test_schedule_generate_keeps_explicit_lunch(client, login, monkeypatch, lunch, expected):
    seen = []
    login(EMPLOYER)

    def generate(user, start, end, requirements, rules, hours):
        seen.append(rules.default_lunch_minutes)
        return GenerationResult(schedule=[], warnings=[])

    monkeypatch.setattr(schedules, "generate_for_employer", generate)
    resp = client.post(
        "/employer/schedules/generate",
        data={
            "csrf_token": "tok",
            "schedule_name": "V2",
            "start_date": "2030-01-07",
            "end_date": "2030-01-13",
            "lunch_minutes": lunch,
        },
    )
    assert resp.status_code == 200
    assert seen == [expected]


@pytest.mark.parametrize(
    "slots",
    [
        "[1]",
        '[{"date": "2030-01-07"}]',
        '[{"date": 5, "start_time": "08:00", "end_time": "17:00", "required_role": "pharmacist"}]',
        '[{"date": "2030-01-07", "start_time": "08:00", "end_time": "17:00", "required_role": "admin"}]',
    ],
)
def test_schedule_save_rejects_malformed_slots(client, login, monkeypatch, slots):
    login(EMPLOYER)
    monkeypatch.setattr(db, "save_schedule", lambda *a: pytest.fail("must not save"))
    resp = client.post(
        "/employer/schedules/save",
        data={"csrf_token": "tok", "schedule_name": "V2", "start_date": "2030-01-07", "end_date": "2030-01-13", "slots": slots},
        follow_redirects=False,
    )
    assert resp.status_code == 400
    assert "Schemadata kunde inte läsas." in resp.text
