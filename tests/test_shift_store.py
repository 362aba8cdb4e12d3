from core.db.alerts import create_shift_alert_deliveries
from core.db.shifts import (
    UNKNOWN_EMPLOYER,
    accept_application_tx,
    create_application,
    create_shift_needs,
    get_application,
    get_shift,
    list_unalerted_open_shifts,
    release_assignment_tx,
    update_shift,
)
from core.db.users import create_user


def _setup():
    employer_id = create_user("boss@example.com", "Passw0rd1", role="employer", pharmacy_name="Apotek Norr")
    anna = create_user("anna@example.com", "Passw0rd1", role="pharmacist")
    bo = create_user("bo@example.com", "Passw0rd1", role="pharmacist")
    data = {"title": "Kvällspass", "required_role": "pharmacist", "location": "Luleå"}
    [shift_id] = create_shift_needs(employer_id, data, [("2030-05-01", "16:00", "21:00")])
    return employer_id, anna, bo, shift_id


def test_create_shift_needs_one_row_per_slot(db):
    employer_id = create_user("boss@example.com", "Passw0rd1", role="employer")
    data = {"title": "Dagpass", "required_role": "säljare"}
    ids = create_shift_needs(
        employer_id, data, [("2030-05-01", "09:00", "17:00"), ("2030-05-02", "09:00", "17:00")]
    )
    assert len(ids) == 2
    shift = get_shift(ids[1])
    assert shift["date"] == "2030-05-02"
    assert shift["status"] == "open"
    assert shift["employer_name"] == UNKNOWN_EMPLOYER


def test_accept_fills_shift_and_rejects_other_applicants(db):
    _, anna, bo, shift_id = _setup()
    first = create_application(shift_id, anna)
    second = create_application(shift_id, bo)

    rejected = accept_application_tx(first)

    assert rejected == [bo]
    shift = get_shift(shift_id)
    assert shift["status"] == "filled"
    assert shift["assigned_to"] == anna
    assert get_application(first)["status"] == "accepted"
    assert get_application(second)["status"] == "rejected"


def test_accept_twice_is_refused(db):
    _, anna, bo, shift_id = _setup()
    first = create_application(shift_id, anna)
    second = create_application(shift_id, bo)
    accept_application_tx(first)

    assert accept_application_tx(second) is None
    assert get_shift(shift_id)["assigned_to"] == anna


def test_release_reopens_shift_as_urgent(db):
    _, anna, _, shift_id = _setup()
    app_id = create_application(shift_id, anna)
    accept_application_tx(app_id)

    assert release_assignment_tx(shift_id, anna) is True

    shift = get_shift(shift_id)
    assert shift["status"] == "open"
    assert shift["assigned_to"] is None
    assert shift["is_urgent"] == 1
    assert get_application(app_id)["status"] == "withdrawn"


def test_release_by_non_assignee_is_refused(db):
    _, anna, bo, shift_id = _setup()
    accept_application_tx(create_application(shift_id, anna))
    assert release_assignment_tx(shift_id, bo) is False


def test_unalerted_shifts_exclude_delivered_ones(db):
    _, anna, _, shift_id = _setup()
    assert [s["id"] for s in list_unalerted_open_shifts("2030-01-01")] == [shift_id]

    create_shift_alert_deliveries(user_id=anna, shift_ids=[shift_id])

    assert list_unalerted_open_shifts("2030-01-01") == []


def test_clearing_urgency_clears_adjustment(db):
    employer_id = create_user("boss@example.com", "Passw0rd1", role="employer")
    data = {"title": "Akut", "required_role": "säljare", "is_urgent": True, "urgent_pay_adjustment": 50}
    [shift_id] = create_shift_needs(employer_id, data, [("2030-05-01", "09:00", "17:00")])

    update_shift(shift_id, {"title": "Akut", "urgent_pay_adjustment": None})
    assert get_shift(shift_id)["urgent_pay_adjustment"] == 50

    update_shift(shift_id, {"is_urgent": False, "urgent_pay_adjustment": None})
    shift = get_shift(shift_id)
    assert shift["is_urgent"] == 0
    assert shift["urgent_pay_adjustment"] is None
