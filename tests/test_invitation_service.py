import pytest

from app.services import invitations as service
from core import database as db
from core.errors import BusinessRuleError, ConflictError, NotFoundError, PermissionDeniedError

EMPLOYER = {"id": 1, "role": "employer"}
EMPLOYEE = {"id": 10, "role": "pharmacist", "email": "anna@example.com"}


@pytest.fixture
def mailer(monkeypatch):
    sent = {"email": [], "notification": []}
    monkeypatch.setattr(service, "send_kind_email", lambda to, kind, payload, user_id=None: sent["email"].append((to, kind, payload)))
    monkeypatch.setattr(
        service,
        "create_and_send_notification",
        lambda uid, title, msg, link=None, **kw: sent["notification"].append((uid, title, msg)),
    )
    monkeypatch.setattr(db, "get_profile", lambda uid: {"pharmacy_name": "Apotek Hjärtat", "full_name": "Anna"})
    return sent


def test_invite_existing_employee_binds_account(monkeypatch, mailer):
    created = []
    monkeypatch.setattr(db, "get_user_by_email", lambda e: {"id": 10, "role": "pharmacist"})
    monkeypatch.setattr(db, "find_live_relationship", lambda employer_id, employee_id=None, email=None: None)
    monkeypatch.setattr(
        db, "create_relationship", lambda employer_id, email, rtype, employee_id=None: created.append((email, rtype, employee_id))
    )

    result = service.invite_employee(EMPLOYER, " Anna@Example.com ", "timanställd")

    assert result == {"success": True, "user_exists": True}
    assert created == [("anna@example.com", "timanställd", 10)]
    assert mailer["notification"][0][0] == 10
    assert "Apotek Hjärtat" in mailer["notification"][0][2]
    assert mailer["email"] == []


def test_invite_unknown_email_waits_for_signup(monkeypatch, mailer):
    created = []
    monkeypatch.setattr(db, "get_user_by_email", lambda e: None)
    monkeypatch.setattr(db, "find_live_relationship", lambda employer_id, employee_id=None, email=None: None)
    monkeypatch.setattr(
        db, "create_relationship", lambda employer_id, email, rtype, employee_id=None: created.append(employee_id)
    )

    result = service.invite_employee(EMPLOYER, "ny@example.com", "deltidsanställd")

    assert result["user_exists"] is False
    assert created == [None]
    assert mailer["email"] == [("ny@example.com", "employeeInvitation", {"company_name": "Apotek Hjärtat"})]


def test_invite_twice_conflicts(monkeypatch, mailer):
    monkeypatch.setattr(db, "get_user_by_email", lambda e: None)
    monkeypatch.setattr(db, "find_live_relationship", lambda employer_id, employee_id=None, email=None: {"id": 4})
    with pytest.raises(ConflictError):
        service.invite_employee(EMPLOYER, "ny@example.com", "timanställd")


def test_invite_employer_account_is_refused(monkeypatch, mailer):
    monkeypatch.setattr(db, "get_user_by_email", lambda e: {"id": 2, "role": "employer"})
    with pytest.raises(BusinessRuleError, match="inte en anställd"):
        service.invite_employee(EMPLOYER, "annat@example.com", "timanställd")


@pytest.mark.parametrize("email,rtype", [("inte-en-adress", "timanställd"), ("ok@example.com", "konsult")])
def test_invite_validation(mailer, email, rtype):
    with pytest.raises(BusinessRuleError):
        service.invite_employee(EMPLOYER, email, rtype)


def test_only_employers_invite(mailer):
    with pytest.raises(PermissionDeniedError):
        service.invite_employee(EMPLOYEE, "ny@example.com", "timanställd")


def test_create_and_link_employee_sends_activation_link(monkeypatch, mailer):
    profile_updates = {}
    monkeypatch.setattr(db, "get_user_by_email", lambda e: None)
    monkeypatch.setattr(db, "create_user", lambda email, password, **kw: 55)
    monkeypatch.setattr(db, "update_profile", lambda uid, fields: profile_updates.update(fields))
    monkeypatch.setattr(db, "create_relationship", lambda *a, **k: 1)
    monkeypatch.setattr(db, "create_activation_token", lambda uid: "tok123")

    result = service.create_and_link_employee(
        EMPLOYER,
        full_name="Bo Berg",
        email="bo@example.com",
        role="säljare",
        relationship_type="timanställd",
        base_url="https://farmispoolen.se/",
        city="Lund",
    )

    assert result == {"success": True, "user_exists": False, "user_id": 55}
    assert profile_updates["city"] == "Lund"
    to, kind, payload = mailer["email"][0]
    assert (to, kind) == ("bo@example.com", "employeeInvitation")
    assert payload["activation_link"] == "https://farmispoolen.se/password-reset/confirm?token=tok123"


def test_respond_to_invitation_tells_employer(monkeypatch, mailer):
    monkeypatch.setattr(db, "get_relationship", lambda rid: {"id": rid, "employee_id": 10, "employer_id": 1})
    monkeypatch.setattr(db, "set_relationship_status", lambda rid, status, only_if=None: True)

    assert service.respond_to_invitation(EMPLOYEE, 7, accept=False) == "declined"
    uid, _, message = mailer["notification"][0]
    assert uid == 1
    assert "avböjt" in message


def test_respond_twice_is_refused(monkeypatch, mailer):
    monkeypatch.setattr(db, "get_relationship", lambda rid: {"id": rid, "employee_id": 10, "employer_id": 1})
    monkeypatch.setattr(db, "set_relationship_status", lambda rid, status, only_if=None: False)
    with pytest.raises(BusinessRuleError, match="redan besvarad"):
        service.respond_to_invitation(EMPLOYEE, 7, accept=True)


def test_respond_to_someone_elses_invitation(monkeypatch, mailer):
    monkeypatch.setattr(db, "get_relationship", lambda rid: {"id": rid, "employee_id": 11, "employer_id": 1})
    with pytest.raises(NotFoundError):
        service.respond_to_invitation(EMPLOYEE, 7, accept=True)


def test_end_relationship(monkeypatch):
    ended = []
    monkeypatch.setattr(db, "get_relationship", lambda rid: {"id": rid, "employer_id": 1, "status": "active"})
    monkeypatch.setattr(db, "set_relationship_status", lambda rid, status, only_if=None: ended.append((rid, status)) or True)

    service.end_relationship(EMPLOYER, 7)
    assert ended == [(7, "ended")]


def test_end_already_ended_relationship(monkeypatch):
    monkeypatch.setattr(db, "get_relationship", lambda rid: {"id": rid, "employer_id": 1, "status": "ended"})
    with pytest.raises(BusinessRuleError):
        service.end_relationship(EMPLOYER, 7)
