from core.db.base import get_conn
from core.db.notifications import create_notification
from core.db.shifts import accept_application_tx, create_application, create_shift_needs, get_shift
from core.db.users import create_user, user_store


def _count(table: str) -> int:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"SELECT COUNT(*) AS count FROM {table}")
    count = int(cur.fetchone()["count"])
    conn.close()
    return count


def _shift_data():
    return {"title": "Farmaceut behövs", "required_role": "pharmacist", "location": "Uppsala"}


def test_delete_employee_removes_applications_and_notifications(db):
    employer_id = create_user("boss@example.com", "Passw0rd1", role="employer", pharmacy_name="Apoteket Hjärtat")
    employee_id = create_user("anna@example.com", "Passw0rd1", role="pharmacist")
    [shift_id] = create_shift_needs(employer_id, _shift_data(), [("2030-01-01", "09:00", "17:00")])
    create_application(shift_id, employee_id)
    create_notification(employee_id, "Hej", "Välkommen")

    user_store.delete_user_data(employee_id)

    assert _count("shift_applications") == 0
    assert _count("notifications") == 0
    assert _count("shift_needs") == 1
    assert _count("users") == 1


def test_delete_employer_removes_their_shifts(db):
    employer_id = create_user("boss@example.com", "Passw0rd1", role="employer", pharmacy_name="Apoteket Hjärtat")
    employee_id = create_user("anna@example.com", "Passw0rd1", role="pharmacist")
    [shift_id] = create_shift_needs(employer_id, _shift_data(), [("2030-01-01", "09:00", "17:00")])
    create_application(shift_id, employee_id)

    user_store.delete_user_data(employer_id)

    assert _count("shift_needs") == 0
    assert _count("shift_applications") == 0
    assert _count("profiles") == 1
    assert _count("users") == 1


def test_delete_unknown_user_is_noop(db):
    create_user("anna@example.com", "Passw0rd1")
    user_store.delete_user_data(999)
    assert _count("users") == 1


def test_delete_employee_reopens_upcoming_assignments(db):
    employer_id = create_user("boss@example.com", "Passw0rd1", role="employer", pharmacy_name="Apoteket Hjärtat")
    employee_id = create_user("anna@example.com", "Passw0rd1", role="pharmacist")
    [past_id, future_id] = create_shift_needs(
        employer_id, _shift_data(), [("2000-01-01", "09:00", "17:00"), ("2030-01-01", "09:00", "17:00")]
    )
    for shift_id in (past_id, future_id):
        accept_application_tx(create_application(shift_id, employee_id))

    reopened = user_store.delete_user_data(employee_id)

    assert [(r["kind"], r["id"], r["employer_id"]) for r in reopened] == [("shift", future_id, employer_id)]
    future = get_shift(future_id)
    assert future["status"] == "open"
    assert future["assigned_to"] is None
    assert future["is_urgent"] == 1
    past = get_shift(past_id)
    assert past["status"] == "filled"
    assert past["assigned_to"] is None


def test_delete_unknown_user_reopens_nothing(db):
    assert user_store.delete_user_data(999) == []
