"""
Job postings: longer assignments with a period instead of a single day.
"""
from __future__ import annotations

import logging
from typing import Dict, List

from app.notify import create_and_send_notification, create_and_send_notification_to_group
from app.services.shifts import today
from core import database as db
from core.errors import BusinessRuleError, ConflictError, NotFoundError, PermissionDeniedError
from core.roles import ADMIN, EMPLOYER, allowed_required_roles, is_employee_role, roles_that_can_take

log = logging.getLogger("postings")


def _get_posting_or_404(posting_id: int) -> Dict:
    posting = db.get_posting(posting_id)
    if not posting:
        raise NotFoundError("Uppdraget hittades inte.")
    return posting


def _require_owner_or_admin(user: Dict, posting: Dict) -> None:
    if user.get("role") == ADMIN:
        return
    if user.get("role") != EMPLOYER or posting["employer_id"] != user["id"]:
        raise PermissionDeniedError("Du har inte behörighet att ändra detta uppdrag.")


def _validate_posting(data: Dict) -> None:
    for field, label in (("title", "Titel"), ("description", "Beskrivning")):
        if not (data.get(field) or "").strip():
            raise BusinessRuleError(f"{label} krävs.")
    if not is_employee_role(data.get("required_role")):
        raise BusinessRuleError("Ogiltig roll för uppdraget.")
    start, end = data.get("period_start_date"), data.get("period_end_date")
    if not start or not end:
        raise BusinessRuleError("Start- och slutdatum krävs.")
    if end < start:
        raise BusinessRuleError("Slutdatum kan inte vara före startdatum.")


def _announce(posting_id: int) -> int:
    posting = db.get_posting(posting_id)
    return create_and_send_notification_to_group(
        "employee",
        "Nytt uppdrag",
        f"Nytt uppdrag: {posting['title']} ({posting['period_start_date']} - {posting['period_end_date']}).",
        f"/postings/{posting_id}",
        email_kind="newPostingNotification",
        payload={
            "posting_title": posting["title"],
            "posting_description": posting.get("description"),
            "posting_location": posting.get("location"),
            "hourly_rate": posting.get("hourly_rate"),
            "company_name": posting.get("employer_name"),
        },
        type="new_posting",
        only_roles=roles_that_can_take(posting["required_role"]),
    )


def create_posting(employer: Dict, data: Dict) -> int:
    if employer.get("role") != EMPLOYER:
        raise PermissionDeniedError("Endast arbetsgivare kan skapa uppdrag.")
    _validate_posting(data)
    posting_id = db.create_posting(employer["id"], data)
    log.info("Posting created", extra={"employer_id": employer["id"], "posting_id": posting_id})
    _announce(posting_id)
    return posting_id


def admin_create_posting(admin: Dict, target_employer_id: int, data: Dict) -> int:
    """Create a posting on behalf of an employer."""
    if admin.get("role") != ADMIN:
        raise PermissionDeniedError("Endast administratörer kan skapa uppdrag åt andra.")
    target = db.get_user_by_id(target_employer_id)
    if not target or target["role"] != EMPLOYER:
        raise BusinessRuleError("Välj en giltig arbetsgivare.")
    _validate_posting(data)
    posting_id = db.create_posting(target_employer_id, data)
    log.info("Posting created by admin", extra={"employer_id": target_employer_id, "posting_id": posting_id})
    _announce(posting_id)
    return posting_id


def update_posting(actor: Dict, posting_id: int, fields: Dict) -> Dict:
    posting = _get_posting_or_404(posting_id)
    _require_owner_or_admin(actor, posting)
    merged = {**posting, **{k: v for k, v in fields.items() if v is not None}}
    _validate_posting(merged)
    db.update_posting(posting_id, fields)
    return db.get_posting(posting_id)


def admin_update_posting(admin: Dict, posting_id: int, fields: Dict) -> Dict:
    if admin.get("role") != ADMIN:
        raise PermissionDeniedError("Endast administratörer.")
    return update_posting(admin, posting_id, fields)


def delete_posting(actor: Dict, posting_id: int) -> None:
    posting = _get_posting_or_404(posting_id)
    _require_owner_or_admin(actor, posting)
    db.delete_posting(posting_id)


def admin_delete_posting(admin: Dict, posting_id: int) -> None:
    if admin.get("role") != ADMIN:
        raise PermissionDeniedError("Endast administratörer.")
    delete_posting(admin, posting_id)


def update_posting_status(actor: Dict, posting_id: int, status: str) -> None:
    posting = _get_posting_or_404(posting_id)
    _require_owner_or_admin(actor, posting)
    if status not in db.POSTING_STATUSES:
        raise BusinessRuleError("Ogiltig status.")
    db.update_posting_status(posting_id, status)


def mark_posting_completed(employer: Dict, posting_id: int) -> None:
    posting = _get_posting_or_404(posting_id)
    _require_owner_or_admin(employer, posting)
    if posting["status"] != "filled":
        raise BusinessRuleError("Endast tillsatta uppdrag kan markeras som genomförda.")
    db.update_posting_status(posting_id, "completed")


def list_available_postings(user: Dict, **filters) -> List[Dict]:
    return db.list_available_postings(allowed_required_roles(user.get("role")), today(), **filters)


def apply_for_posting(employee: Dict, posting_id: int, notes: str | None = None) -> int:
    posting = _get_posting_or_404(posting_id)
    if not is_employee_role(employee.get("role")):
        raise PermissionDeniedError("Endast anställda kan söka uppdrag.")
    if not employee.get("active", 1):
        raise PermissionDeniedError("Ditt konto är inaktiverat.")
    if posting["status"] != "open":
        raise BusinessRuleError("Detta uppdrag är inte längre öppet för ansökningar.")
    if posting["required_role"] not in allowed_required_roles(employee.get("role")):
        raise PermissionDeniedError("Din roll matchar inte uppdragets krav.")
    profile = db.get_profile(employee["id"]) or {}
    if not profile.get("license_verified"):
        raise PermissionDeniedError("Ditt konto måste verifieras innan du kan söka uppdrag.")
    if db.find_active_posting_application(posting_id, employee["id"]):
        raise ConflictError("Du har redan ansökt till detta uppdrag.")

    application_id = db.create_posting_application(posting_id, employee["id"], (notes or "").strip() or None)

    applicant_name = profile.get("full_name") or employee.get("email")
    create_and_send_notification(
        posting["employer_id"],
        "Ny ansökan",
        f"{applicant_name} har sökt uppdraget {posting['title']}.",
        "/employer/postings",
        email_kind="newPostingApplication",
        payload={"applicant_name": applicant_name, "posting_title": posting["title"]},
        type="application",
    )
    return application_id


def withdraw_posting_application(employee: Dict, application_id: int) -> None:
    application = db.get_posting_application(application_id)
    if not application or application["applicant_id"] != employee["id"]:
        raise NotFoundError("Ansökan hittades inte.")
    if not db.set_posting_application_status(application_id, "withdrawn", only_if="pending"):
        raise BusinessRuleError("Endast väntande ansökningar kan återtas.")


def _get_application_for_owner(employer: Dict, application_id: int) -> Dict:
    application = db.get_posting_application(application_id)
    if not application:
        raise NotFoundError("Ansökan hittades inte.")
    if employer.get("role") != ADMIN and application["employer_id"] != employer["id"]:
        raise PermissionDeniedError("Du har inte behörighet att hantera denna ansökan.")
    return application


def accept_posting_application(employer: Dict, application_id: int) -> List[int]:
    application = _get_application_for_owner(employer, application_id)
    if application["posting_status"] != "open":
        raise BusinessRuleError("Uppdraget är inte längre öppet.")
    if application["status"] != "pending":
        raise BusinessRuleError("Ansökan är inte längre väntande.")

    rejected = db.accept_posting_application_tx(application_id)
    if rejected is None:
        raise ConflictError("Uppdraget eller ansökan har ändrats. Ladda om sidan.")

    title = application["posting_title"]
    create_and_send_notification(
        application["applicant_id"],
        "Ansökan accepterad",
        f"Din ansökan för uppdraget {title} har accepterats.",
        "/my-schedule",
        email_kind="shiftApplicationAccepted",
        payload={"shift_title": title},
        type="application",
    )
    for applicant_id in rejected:
        create_and_send_notification(
            applicant_id,
            "Ansökan avböjd",
            f"Uppdraget {title} har tillsatts av en annan sökande.",
            "/my-applications",
            email_kind="shiftApplicationRejected",
            payload={"shift_title": title},
            type="application",
        )
    return rejected


def reject_posting_application(employer: Dict, application_id: int) -> None:
    application = _get_application_for_owner(employer, application_id)
    if not db.set_posting_application_status(application_id, "rejected", only_if="pending"):
        raise BusinessRuleError("Ansökan är inte längre väntande.")
    create_and_send_notification(
        application["applicant_id"],
        "Ansökan avböjd",
        f"Din ansökan för uppdraget {application['posting_title']} har avböjts.",
        "/my-applications",
        email_kind="shiftApplicationRejected",
        payload={"shift_title": application["posting_title"]},
        type="application",
    )


def list_posting_applications(employer: Dict, posting_id: int) -> List[Dict]:
    posting = _get_posting_or_404(posting_id)
    _require_owner_or_admin(employer, posting)
    return db.list_posting_applications(posting_id)
