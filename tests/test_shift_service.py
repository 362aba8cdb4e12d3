import pytest

from app.services import shifts as service
from core import database as db
from core.errors import BusinessRuleError, ConflictError, NotFoundError, PermissionDeniedError

EMPLOYER = {"id": 1, "role": "employer", "email": "apotek@example.com"}
PHARMACIST = {"id": 10, "role": "pharmacist", "email": "farm@example.com", "active": 1}
SALES = {"id": 11, "role": "säljare", "email": "salj@example.com", "active": 1}


def _shift(**overrides):
    shift = {
        "id": 5,
        "employer_id": 1,
        "title": "Lördagspass",
        "date": "2030-01-12",
        "start_time": "10:00",
        "end_time": "15:00",
        "required_role": "säljare",
        "status": "open",
        "assigned_to": None,
    }
    shift.update(overrides)
    return shift


@pytest.fixture
def notifications(monkeypatch):
    sent = []
    monkeypatch.setattr(
        service, "create_and_send_notification", lambda user_id, title, message, link=None, **kw: sent.append((user_id, title, kw))
    )
    return sent


@pytest.fixture
def verified(monkeypatch):
    monkeypatch.setattr(db, "get_profile", lambda uid: {"user_id": uid, "full_name": "Test Person", "license_verified": 1})


def test_pharmacist_may_apply_for_sales_shift(monkeypatch, notifications, verified):
    created = []
    monkeypatch.setattr(db, "get_shift", lambda sid: _shift())
    monkeypatch.setattr(db, "find_active_application", lambda sid, uid: None)
    monkeypatch.setattr(db, "create_application", lambda sid, uid, notes: created.append((sid, uid, notes)) or 77)

    assert service.apply_for_shift(PHARMACIST, 5, notes="  ") == 77
    assert created == [(5, 10, None)]
    assert notifications[0][0] == 1
    assert notifications[0][2]["email_kind"] == "newShiftApplication"


def test_sales_cannot_apply_for_pharmacist_shift(monkeypatch, verified):
    monkeypatch.setattr(db, "get_shift", lambda sid: _shift(required_role="pharmacist"))
    with pytest.raises(PermissionDeniedError):
        service.apply_for_shift(SALES, 5)


def test_unverified_employee_cannot_apply(monkeypatch):
    monkeypatch.setattr(db, "get_shift", lambda sid: _shift())
    monkeypatch.setattr(db, "get_profile", lambda uid: {"user_id": uid, "license_verified": 0})
    with pytest.raises(PermissionDeniedError, match="verifieras"):
        service.apply_for_shift(SALES, 5)


def test_employer_cannot_apply(monkeypatch):
    monkeypatch.setattr(db, "get_shift", lambda sid: _shift())
    with pytest.raises(PermissionDeniedError):
        service.apply_for_shift(EMPLOYER, 5)


def test_apply_to_filled_shift_is_refused(monkeypatch, verified):
    monkeypatch.setattr(db, "get_shift", lambda sid: _shift(status="filled"))
    with pytest.raises(BusinessRuleError) as exc:
        service.apply_for_shift(SALES, 5)
    assert exc.value.message == service.SHIFT_CLOSED_MESSAGE


def test_duplicate_application_conflicts(monkeypatch, verified):
    monkeypatch.setattr(db, "get_shift", lambda sid: _shift())
    monkeypatch.setattr(db, "find_active_application", lambda sid, uid: {"id": 3})
    with pytest.raises(ConflictError) as exc:
        service.apply_for_shift(SALES, 5)
    assert exc.value.status_code == 409


def test_missing_shift_is_not_found(monkeypatch):
    monkeypatch.setattr(db, "get_shift", lambda sid: None)
    with pytest.raises(NotFoundError):
        service.apply_for_shift(SALES, 404)


def _application(**overrides):
    app_row = {
        "id": 20,
        "shift_id": 5,
        "applicant_id": 11,
        "employer_id": 1,
        "status": "pending",
        "shift_status": "open",
        "shift_title": "Lördagspass",
        "shift_date": "2030-01-12",
    }
    app_row.update(overrides)
    return app_row


def test_accept_notifies_winner_and_rejected(monkeypatch, notifications):
    monkeypatch.setattr(db, "get_application", lambda aid: _application())
    monkeypatch.setattr(db, "accept_application_tx", lambda aid: [12, 13])

    assert service.accept_application(EMPLOYER, 20) == [12, 13]
    kinds = [(uid, kw["email_kind"]) for uid, _, kw in notifications]
    assert kinds == [
        (11, "shiftApplicationAccepted"),
        (12, "shiftApplicationRejected"),
        (13, "shiftApplicationRejected"),
    ]


def test_accept_by_other_employer_is_denied(monkeypatch):
    monkeypatch.setattr(db, "get_application", lambda aid: _application(employer_id=2))
    with pytest.raises(PermissionDeniedError):
        service.accept_application(EMPLOYER, 20)


def test_accept_lost_race_conflicts(monkeypatch, notifications):
    monkeypatch.setattr(db, "get_application", lambda aid: _application())
    monkeypatch.setattr(db, "accept_application_tx", lambda aid: None)
    with pytest.raises(ConflictError):
        service.accept_application(EMPLOYER, 20)
    assert notifications == []


def test_reject_requires_pending(monkeypatch, notifications):
    monkeypatch.setattr(db, "get_application", lambda aid: _application())
    monkeypatch.setattr(db, "set_application_status", lambda aid, status, only_if=None: False)
    with pytest.raises(BusinessRuleError):
        service.reject_application(EMPLOYER, 20)


def test_report_sick_reposts_and_tells_employer(monkeypatch, notifications):
    monkeypatch.setattr(db, "get_shift", lambda sid: _shift(status="filled", assigned_to=11))
    monkeypatch.setattr(db, "release_assignment_tx", lambda sid, uid: True)
    monkeypatch.setattr(db, "get_profile", lambda uid: {"full_name": "Sara Säljare"})

    assert service.report_sick(SALES, 5) == {"reposted_as_urgent": True}
    uid, title, kw = notifications[0]
    assert uid == 1
    assert kw["email_kind"] == "sickReport"
    assert kw["payload"]["employee_name"] == "Sara Säljare"
    assert kw["payload"]["shift_time"] == "10:00 - 15:00"


def test_report_sick_for_someone_elses_shift(monkeypatch):
    monkeypatch.setattr(db, "get_shift", lambda sid: _shift(status="filled", assigned_to=99))
    with pytest.raises(PermissionDeniedError):
        service.report_sick(SALES, 5)


def test_create_shift_one_row_per_date(monkeypatch):
    captured = {}
    monkeypatch.setattr(service, "today", lambda: "2030-01-01")
    monkeypatch.setattr(
        db, "create_shift_needs", lambda employer_id, data, slots: captured.update(slots=slots) or [1, 2]
    )
    data = {"title": "Kvällspass", "required_role": "pharmacist", "start_time": "16:00", "end_time": "20:00"}

    assert service.create_shift(EMPLOYER, data, ["2030-01-03", "2030-01-02", "2030-01-03", ""]) == [1, 2]
    assert captured["slots"] == [("2030-01-02", "16:00", "20:00"), ("2030-01-03", "16:00", "20:00")]


@pytest.mark.parametrize(
    "data,dates,message",
    [
        ({"title": "x", "required_role": "pharmacist", "start_time": "16:00", "end_time": "15:00"}, ["2030-01-02"], "Sluttiden"),
        ({"title": "x", "required_role": "pharmacist", "start_time": "08:00", "end_time": "15:00"}, ["2029-12-31"], "passerat"),
        ({"title": "x", "required_role": "admin", "start_time": "08:00", "end_time": "15:00"}, ["2030-01-02"], "Ogiltig roll"),
        ({"title": " ", "required_role": "pharmacist", "start_time": "08:00", "end_time": "15:00"}, ["2030-01-02"], "Titel"),
        (
            {"title": "x", "required_role": "pharmacist", "start_time": "08:00", "end_time": "15:00", "urgent_pay_adjustment": 50},
            ["2030-01-02"],
            "Akut-tillägg",
        ),
        ({"title": "x", "required_role": "pharmacist", "start_time": "08:00", "end_time": "15:00"}, [], "minst ett datum"),
    ],
)
def test_create_shift_validation(monkeypatch, data, dates, message):
    monkeypatch.setattr(service, "today", lambda: "2030-01-01")
    monkeypatch.setattr(db, "create_shift_needs", lambda *a: pytest.fail("must not insert"))
    with pytest.raises(BusinessRuleError, match=message):
        service.create_shift(EMPLOYER, data, dates)


def test_employee_cannot_create_or_delete(monkeypatch):
    monkeypatch.setattr(db, "get_shift", lambda sid: _shift())
    with pytest.raises(PermissionDeniedError):
        service.create_shift(SALES, {}, ["2030-01-02"])
    with pytest.raises(PermissionDeniedError):
        service.delete_shift(SALES, 5)


def test_mark_completed_requires_past_filled_shift(monkeypatch):
    monkeypatch.setattr(service, "today", lambda: "2030-01-10")
    monkeypatch.setattr(db, "get_shift", lambda sid: _shift(status="filled"))
    with pytest.raises(BusinessRuleError, match="inte ägt rum"):
        service.mark_shift_completed(EMPLOYER, 5)


def test_full_schedule_merges_shifts_and_postings(monkeypatch):
    monkeypatch.setattr(
        db,
        "list_accepted_shift_events",
        lambda uid: [
            {"id": 1, "title": "Pass", "date": "2030-02-01", "start_time": "08:00", "end_time": "12:00", "status": "filled"}
        ],
    )
    monkeypatch.setattr(
        db,
        "list_my_accepted_postings",
        lambda uid: [{"id": 2, "title": "Uppdrag", "period_start_date": "2030-01-15", "period_end_date": "2030-03-01"}],
    )

    events = service.get_my_full_schedule(PHARMACIST)
    assert [e["event_id"] for e in events] == ["posting-2", "shift-1"]
    assert events[1]["start_time"] == "2030-02-01T08:00"
    assert events[1]["status"] == "filled"


def test_turning_off_urgency_drops_pay_adjustment(monkeypatch):
    stored = _shift(is_urgent=1, urgent_pay_adjustment=50)
    saved = []
    monkeypatch.setattr(db, "get_shift", lambda sid: stored)
    monkeypatch.setattr(db, "update_shift", lambda sid, fields: saved.append(fields) or True)

    service.update_shift(EMPLOYER, 5, {"title": "Lördagspass", "is_urgent": False, "urgent_pay_adjustment": None})

    assert saved[0]["is_urgent"] is False
    assert saved[0]["urgent_pay_adjustment"] is None


def test_adjustment_on_non_urgent_shift_still_refused(monkeypatch):
    monkeypatch.setattr(db, "get_shift", lambda sid: _shift(is_urgent=0))
    monkeypatch.setattr(db, "update_shift", lambda sid, fields: pytest.fail("saved"))

    with pytest.raises(BusinessRuleError, match="Akut-tillägg"):
        service.update_shift(EMPLOYER, 5, {"urgent_pay_adjustment": 75})
