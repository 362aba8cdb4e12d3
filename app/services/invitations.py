"""
Employer invitations and the resulting employer-employee relationships.
"""
from __future__ import annotations

import logging
import secrets
from typing import Dict, List

from app.notify import create_and_send_notification, send_kind_email
from app.validation import is_valid_email
from core import database as db
from core.errors import BusinessRuleError, ConflictError, NotFoundError, PermissionDeniedError
from core.roles import EMPLOYER, RELATIONSHIP_TYPES, is_employee_role

log = logging.getLogger("invitations")


def _require_employer(user: Dict) -> None:
    if user.get("role") != EMPLOYER:
        raise PermissionDeniedError("Endast arbetsgivare kan hantera personal.")


def _company_name(employer_id: int) -> str:
    profile = db.get_profile(employer_id) or {}
    return profile.get("pharmacy_name") or profile.get("full_name") or profile.get("email") or "Arbetsgivare"


def _validate_invite(employer: Dict, email: str, relationship_type: str) -> str:
    _require_employer(employer)
    email = (email or "").strip().lower()
    if not is_valid_email(email):
        raise BusinessRuleError("Ogiltig e-postadress.")
    if relationship_type not in RELATIONSHIP_TYPES:
        raise BusinessRuleError("Ogiltig anställningsform.")
    return email


def invite_employee(employer: Dict, invitee_email: str, relationship_type: str) -> Dict:
    """
    Invite someone by email. An existing account gets the invitation bound to
    its id (plus an in-app notice); otherwise it waits for that email to sign
    up and verify.
    """
    email = _validate_invite(employer, invitee_email, relationship_type)
    existing = db.get_user_by_email(email)
    if existing and not is_employee_role(existing["role"]):
        raise BusinessRuleError("Användaren är inte en anställd.")

    employee_id = existing["id"] if existing else None
    if db.find_live_relationship(employer["id"], employee_id=employee_id, email=email):
        raise ConflictError("Det finns redan en inbjudan eller anställning för denna person.")

    db.create_relationship(employer["id"], email, relationship_type, employee_id=employee_id)
    company = _company_name(employer["id"])

    if existing:
        create_and_send_notification(
            existing["id"],
            "Ny inbjudan",
            f"{company} har bjudit in dig som {relationship_type}.",
            "/invitations",
            email_kind="employeeInvitation",
            payload={"company_name": company},
            type="invitation",
        )
    else:
        send_kind_email(email, "employeeInvitation", {"company_name": company})

    log.info("Employee invited", extra={"employer_id": employer["id"], "user_exists": bool(existing)})
    return {"success": True, "user_exists": bool(existing)}


def create_and_link_employee(
    employer: Dict,
    *,
    full_name: str,
    email: str,
    role: str,
    relationship_type: str,
    base_url: str,
    phone: str | None = None,
    city: str | None = None,
    hourly_rate: float | None = None,
) -> Dict:
    """
    Create an unverified employee account for someone the employer adds by
    hand and send them an activation link. The link opens the set-password
    form; choosing a password also verifies the address. Falls back to a
    plain invitation when the email already has an account.
    """
    email = _validate_invite(employer, email, relationship_type)
    if not is_employee_role(role):
        raise BusinessRuleError("Ogiltig roll.")
    if not (full_name or "").strip():
        raise BusinessRuleError("Namn krävs.")

    if db.get_user_by_email(email):
        return invite_employee(employer, email, relationship_type)

    user_id = db.create_user(
        email,
        secrets.token_urlsafe(24),
        role=role,
        verified=False,
        full_name=full_name,
    )
    db.update_profile(user_id, {"phone": phone, "city": city, "hourly_rate": hourly_rate})
    db.create_relationship(employer["id"], email, relationship_type, employee_id=user_id)

    token = db.create_activation_token(user_id)
    activation_link = f"{base_url.rstrip('/')}/password-reset/confirm?token={token}"
    send_kind_email(
        email,
        "employeeInvitation",
        {"company_name": _company_name(employer["id"]), "activation_link": activation_link},
        user_id=user_id,
    )
    log.info("Employee account created", extra={"employer_id": employer["id"], "user_id": user_id})
    return {"success": True, "user_exists": False, "user_id": user_id}


def list_pending_invitations(employee: Dict) -> List[Dict]:
    return db.list_pending_invitations(employee["id"])


def respond_to_invitation(employee: Dict, relationship_id: int, accept: bool) -> str:
    rel = db.get_relationship(relationship_id)
    if not rel or rel["employee_id"] != employee["id"]:
        raise NotFoundError("Inbjudan hittades inte.")
    status = "active" if accept else "declined"
    if not db.set_relationship_status(relationship_id, status, only_if="pending"):
        raise BusinessRuleError("Inbjudan är redan besvarad.")

    profile = db.get_profile(employee["id"]) or {}
    name = profile.get("full_name") or employee.get("email")
    verb = "accepterat" if accept else "avböjt"
    create_and_send_notification(
        rel["employer_id"],
        "Svar på inbjudan",
        f"{name} har {verb} din inbjudan.",
        "/employer/staff",
        type="invitation",
    )
    return status


def list_my_employees(employer: Dict) -> List[Dict]:
    _require_employer(employer)
    return db.list_my_employees(employer["id"])


def end_relationship(employer: Dict, relationship_id: int) -> None:
    _require_employer(employer)
    rel = db.get_relationship(relationship_id)
    if not rel or rel["employer_id"] != employer["id"]:
        raise NotFoundError("Anställningen hittades inte.")
    if rel["status"] not in ("pending", "active"):
        raise BusinessRuleError("Anställningen är redan avslutad.")
    db.set_relationship_status(relationship_id, "ended")
