from core.db.relationships import (
    create_relationship,
    find_live_relationship,
    link_pending_invitations,
    list_my_employees,
    list_pending_invitations,
    set_relationship_status,
)
from core.db.schedules import add_manual_staff, list_schedule_staff
from core.db.users import create_user


def test_email_invitation_is_linked_on_verification(db):
    employer_id = create_user("boss@example.com", "Passw0rd1", role="employer", pharmacy_name="Apotek Syd")
    rel_id = create_relationship(employer_id, "Nya@Example.com", "timanställd")

    employee_id = create_user("nya@example.com", "Passw0rd1", role="säljare")
    assert link_pending_invitations(employee_id, "nya@example.com") == 1

    invitations = list_pending_invitations(employee_id)
    assert [i["id"] for i in invitations] == [rel_id]
    assert invitations[0]["employer_name"] == "Apotek Syd"


def test_live_relationship_lookup_by_email(db):
    employer_id = create_user("boss@example.com", "Passw0rd1", role="employer")
    rel_id = create_relationship(employer_id, "anna@example.com", "heltidsanställd")

    assert find_live_relationship(employer_id, email="ANNA@example.com")["id"] == rel_id

    set_relationship_status(rel_id, "declined")
    assert find_live_relationship(employer_id, email="anna@example.com") is None


def test_only_if_guard(db):
    employer_id = create_user("boss@example.com", "Passw0rd1", role="employer")
    rel_id = create_relationship(employer_id, "anna@example.com", "deltidsanställd")

    assert set_relationship_status(rel_id, "active", only_if="pending") is True
    assert set_relationship_status(rel_id, "declined", only_if="pending") is False


def test_schedule_staff_combines_active_employees_and_manual_staff(db):
    employer_id = create_user("boss@example.com", "Passw0rd1", role="employer")
    anna = create_user("anna@example.com", "Passw0rd1", role="pharmacist", full_name="Anna A")
    rel_id = create_relationship(employer_id, "anna@example.com", "heltidsanställd", employee_id=anna)
    set_relationship_status(rel_id, "active")
    add_manual_staff(employer_id, "Bo B", "säljare", 4)

    staff = list_schedule_staff(employer_id)

    assert len(staff) == 2
    assert staff[0]["key"] == f"emp:{anna}"
    assert staff[0]["name"] == "Anna A"
    assert staff[0]["employment_type"] == "heltidsanställd"
    assert staff[-1]["key"].startswith("manual:")
    assert staff[-1]["max_consecutive_days"] == 4
    assert [e["employee_id"] for e in list_my_employees(employer_id)] == [anna]
